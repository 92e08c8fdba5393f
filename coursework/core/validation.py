"""Translate pydantic draft validation into the engine's ValidationError."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from coursework.core.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def parse_draft(model: type[M], data: M | dict[str, Any]) -> M:
    """Validate ``data`` against ``model``; accepts an instance as-is."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        problems = [
            {"field": ".".join(str(p) for p in err["loc"]), "problem": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError(
            f"invalid {model.__name__}: {len(problems)} problem(s)",
            problems=problems,
        ) from None
