"""Course catalog entities and drafts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class MaterialType(str, Enum):
    DOCUMENT = "document"
    VIDEO = "video"
    PRESENTATION = "presentation"
    AUDIO = "audio"


@dataclass
class Material:
    """A learning material embedded in a course, in display order."""

    id: str
    title: str
    type: MaterialType
    url: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type.value,
            "url": self.url,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Material:
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            type=MaterialType(data.get("type", MaterialType.DOCUMENT.value)),
            url=data.get("url", ""),
            description=data.get("description"),
        )


@dataclass
class Course:
    id: str
    title: str
    description: str
    category: str
    difficulty: Difficulty
    duration_hours: int
    created_by: str
    created_at: datetime | None = None
    is_active: bool = True
    materials: list[Material] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "difficulty": self.difficulty.value,
            "durationHours": self.duration_hours,
            "materials": [m.to_dict() for m in self.materials],
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "isActive": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Course:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            category=data.get("category", ""),
            difficulty=Difficulty(data.get("difficulty", Difficulty.BEGINNER.value)),
            duration_hours=int(data.get("durationHours", 1)),
            created_by=data.get("createdBy", ""),
            created_at=data.get("createdAt"),
            is_active=bool(data.get("isActive", True)),
            materials=[Material.from_dict(m) for m in data.get("materials", [])],
        )


# =============================================================================
# Drafts (validated input)
# =============================================================================


class MaterialDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    type: MaterialType = MaterialType.DOCUMENT
    url: str = Field(..., min_length=1)
    description: str | None = None


class CourseDraft(BaseModel):
    """Fields an admin/teacher supplies when creating a course."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    difficulty: Difficulty = Difficulty.BEGINNER
    duration_hours: int = Field(..., ge=1, alias="durationHours")
    materials: list[MaterialDraft] = Field(default_factory=list)

