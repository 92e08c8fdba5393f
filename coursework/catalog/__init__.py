"""Course catalog: course definitions and their learning materials."""

from .models import Course, CourseDraft, Difficulty, Material, MaterialDraft, MaterialType
from .service import CourseCatalog

__all__ = [
    "Course",
    "CourseCatalog",
    "CourseDraft",
    "Difficulty",
    "Material",
    "MaterialDraft",
    "MaterialType",
]
