"""Certificate number generation."""

from __future__ import annotations

import re
import secrets
from datetime import datetime

from coursework.db.store import utcnow

NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Za-z0-9]+)-(?P<millis>\d+)-(?P<token>[0-9A-F]{6})$")


def generate_certificate_number(prefix: str, now: datetime | None = None) -> str:
    """
    Build ``PREFIX-<epoch millis>-<6 hex>``.

    The millisecond part keeps numbers roughly ordered by issue time; the
    random part separates certificates issued in the same millisecond.
    """
    now = now or utcnow()
    millis = int(now.timestamp() * 1000)
    return f"{prefix}-{millis}-{secrets.token_hex(3).upper()}"
