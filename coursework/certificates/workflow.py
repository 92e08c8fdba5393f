"""
Certificate Workflow.

pending -> verified | rejected, both terminal. A student holds at most one
non-rejected certificate per course: requests are created under the unique
key ``student:course`` and a rejection releases that key in the same write.
Certificate numbers are reserved in their own collection keyed by the
number, so two verifications can never issue the same one.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from config import Settings, get_settings
from coursework.catalog.service import CourseCatalog
from coursework.certificates.models import (
    Certificate,
    CertificateDocument,
    CertificateStats,
    CertificateStatus,
)
from coursework.certificates.numbering import generate_certificate_number
from coursework.core.auth import Principal, Role, authorize
from coursework.core.errors import (
    AlreadyVerified,
    CertificateRejected,
    DuplicatePending,
    DuplicateRequest,
    InvalidState,
    LMSError,
    MissingReason,
    NotCompleted,
    NotFound,
    PreconditionFailed,
    StorageUnavailable,
    ValidationError,
)
from coursework.db.store import (
    CERTIFICATE_NUMBERS,
    CERTIFICATES,
    SERVER_TIMESTAMP,
    USERS,
    DocumentStore,
)
from coursework.enrollment.manager import EnrollmentManager, student_id_of
from coursework.enrollment.models import Enrollment

# Fresh numbers drawn before giving up on reserving an unused one
NUMBER_ATTEMPTS = 5


def certificate_key(student_id: str, course_id: str) -> str:
    return f"{student_id}:{course_id}"


class CertificateWorkflow:
    """Request, review and read certificates."""

    def __init__(
        self,
        store: DocumentStore,
        catalog: CourseCatalog,
        enrollments: EnrollmentManager,
        settings: Settings | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.enrollments = enrollments
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Student side
    # ------------------------------------------------------------------

    def request_certificate(self, student: Principal | str, course_id: str) -> Certificate:
        """
        Ask for a certificate for a completed course.

        Raises:
            NotCompleted: no completed enrollment for the course
            DuplicatePending / AlreadyVerified: a live certificate exists
                (attached as ``existing``)
            CertificateRejected: a previous request was rejected and
                resubmission is disabled
        """
        student_id = student_id_of(student, "request_certificate")
        enrollment = self._completed_enrollment(student_id, course_id)
        if enrollment is None:
            raise NotCompleted(
                f"student {student_id} has not completed course {course_id}",
                course_id=course_id,
            )
        if not self.settings.certificate_allow_resubmission:
            rejected = self.store.list(
                CERTIFICATES,
                {
                    "studentId": student_id,
                    "courseId": course_id,
                    "status": CertificateStatus.REJECTED.value,
                },
                limit=1,
            )
            if rejected:
                raise CertificateRejected(
                    f"certificate for course {course_id} was rejected",
                    existing=Certificate.from_dict(rejected[0]),
                )

        name, email = self._student_identity(student_id, enrollment)
        course = self.catalog.find_course(course_id)
        data = {
            "studentId": student_id,
            "courseId": course_id,
            "studentName": name,
            "studentEmail": email,
            "courseName": course.title if course else enrollment.course_name,
            "completedAt": enrollment.completed_at,
            "requestedAt": SERVER_TIMESTAMP,
            "status": CertificateStatus.PENDING.value,
            "verifiedBy": None,
            "verifiedAt": None,
            "certificateNumber": None,
            "rejectionReason": None,
        }
        try:
            certificate_id = self.store.create(
                CERTIFICATES, data, unique_key=certificate_key(student_id, course_id)
            )
        except DuplicateRequest as e:
            existing = Certificate.from_dict(e.existing) if e.existing else None
            if existing is not None and existing.status is CertificateStatus.VERIFIED:
                raise AlreadyVerified(
                    f"certificate for course {course_id} is already verified", existing=existing
                ) from None
            raise DuplicatePending(
                f"certificate for course {course_id} is already pending review", existing=existing
            ) from None

        logger.info("Certificate {} requested by {} for course {}", certificate_id, student_id, course_id)
        return self.get_certificate(certificate_id)

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    def verify_certificate(self, actor: Principal, certificate_id: str) -> Certificate:
        authorize(actor, "verify_certificate")
        self._require_pending(certificate_id)
        number, reservation_id = self._reserve_number(certificate_id)
        try:
            record = self._review(
                certificate_id,
                {
                    "status": CertificateStatus.VERIFIED.value,
                    "certificateNumber": number,
                    "verifiedBy": actor.user_id,
                    "verifiedAt": SERVER_TIMESTAMP,
                },
            )
        except LMSError:
            self.store.delete(CERTIFICATE_NUMBERS, reservation_id)
            raise
        logger.info("Certificate {} verified as {} by {}", certificate_id, number, actor.user_id)
        return Certificate.from_dict(record)

    def reject_certificate(self, actor: Principal, certificate_id: str, reason: str) -> Certificate:
        authorize(actor, "reject_certificate")
        reason = (reason or "").strip()
        if not reason:
            raise MissingReason("a rejection reason is required")
        self._require_pending(certificate_id)
        record = self._review(
            certificate_id,
            {
                "status": CertificateStatus.REJECTED.value,
                "rejectionReason": reason,
                "verifiedBy": actor.user_id,
                "verifiedAt": SERVER_TIMESTAMP,
            },
            release_key=True,
        )
        logger.info("Certificate {} rejected by {}", certificate_id, actor.user_id)
        return Certificate.from_dict(record)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_certificate(self, certificate_id: str) -> Certificate:
        return Certificate.from_dict(self.store.get(CERTIFICATES, certificate_id))

    def list_certificates(
        self,
        actor: Principal,
        status: CertificateStatus | str | None = None,
    ) -> list[Certificate]:
        """Admins see every certificate; students only their own."""
        filters: dict[str, Any] = {}
        if actor.role is Role.STUDENT:
            filters["studentId"] = actor.user_id
        else:
            authorize(actor, "list_all_certificates")
        if status is not None:
            try:
                filters["status"] = CertificateStatus(status).value
            except ValueError:
                raise ValidationError(f"unknown certificate status {status!r}") from None
        records = self.store.list(CERTIFICATES, filters, order_by="requestedAt", descending=True)
        return [Certificate.from_dict(r) for r in records]

    def certificate_stats(self, actor: Principal) -> CertificateStats:
        stats = CertificateStats()
        for certificate in self.list_certificates(actor):
            stats.total += 1
            if certificate.status is CertificateStatus.PENDING:
                stats.pending += 1
            elif certificate.status is CertificateStatus.VERIFIED:
                stats.verified += 1
            else:
                stats.rejected += 1
        return stats

    def render_data(self, certificate_id: str) -> CertificateDocument:
        """Data for printing a certificate. Only verified certificates render."""
        certificate = self.get_certificate(certificate_id)
        if certificate.status is not CertificateStatus.VERIFIED or not certificate.certificate_number:
            raise InvalidState(
                f"certificate {certificate_id} is {certificate.status.value}, not verified",
                status=certificate.status,
            )
        return CertificateDocument(
            certificate_number=certificate.certificate_number,
            student_name=certificate.student_name,
            course_name=certificate.course_name,
            completed_at=certificate.completed_at,
            verified_at=certificate.verified_at,
            verified_by=certificate.verified_by,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _completed_enrollment(self, student_id: str, course_id: str) -> Enrollment | None:
        for enrollment in self.enrollments.enrollments_for(student_id, course_id):
            if enrollment.completed:
                return enrollment
        return None

    def _student_identity(self, student_id: str, enrollment: Enrollment) -> tuple[str, str]:
        """(name, email) from the users record, else the enrollment profile."""
        try:
            user = self.store.get(USERS, student_id)
        except NotFound:
            user = {}
        profile = enrollment.profile
        email = user.get("email") or profile.get("email") or ""
        name = (
            user.get("name")
            or user.get("displayName")
            or user.get("email")
            or profile.get("studentName")
            or email
        )
        return name, email

    def _require_pending(self, certificate_id: str) -> Certificate:
        certificate = self.get_certificate(certificate_id)
        if certificate.status.is_terminal:
            raise InvalidState(
                f"certificate {certificate_id} is already {certificate.status.value}",
                status=certificate.status,
            )
        return certificate

    def _review(self, certificate_id: str, patch: dict[str, Any], release_key: bool = False) -> dict[str, Any]:
        try:
            return self.store.update(
                CERTIFICATES,
                certificate_id,
                patch,
                precondition={"status": CertificateStatus.PENDING.value},
                release_key=release_key,
            )
        except PreconditionFailed:
            logger.warning("Certificate {} was reviewed concurrently", certificate_id)
            raise InvalidState(f"certificate {certificate_id} was reviewed concurrently") from None

    def _reserve_number(self, certificate_id: str) -> tuple[str, str]:
        """Claim a fresh certificate number. Returns (number, reservation id)."""
        prefix = self.settings.certificate_number_prefix
        for _ in range(NUMBER_ATTEMPTS):
            number = generate_certificate_number(prefix)
            try:
                reservation_id = self.store.create(
                    CERTIFICATE_NUMBERS,
                    {"certificateNumber": number, "certificateId": certificate_id, "issuedAt": SERVER_TIMESTAMP},
                    unique_key=number,
                )
            except DuplicateRequest:
                logger.warning("Certificate number {} already issued, drawing another", number)
                continue
            return number, reservation_id
        raise StorageUnavailable(
            f"no unused certificate number after {NUMBER_ATTEMPTS} draws",
            attempts=NUMBER_ATTEMPTS,
        )
