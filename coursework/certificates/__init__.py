"""Certificate requests, admin review and numbering."""

from .models import Certificate, CertificateDocument, CertificateStats, CertificateStatus
from .numbering import generate_certificate_number
from .workflow import CertificateWorkflow

__all__ = [
    "Certificate",
    "CertificateDocument",
    "CertificateStats",
    "CertificateStatus",
    "CertificateWorkflow",
    "generate_certificate_number",
]
