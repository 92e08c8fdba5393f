"""Assessment definitions, results and their drafts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

OPTIONS_PER_QUESTION = 4

# Display titles for results whose assessment or course was removed
UNKNOWN_ASSESSMENT = "Unknown Assessment"
UNKNOWN_COURSE = "Unknown Course"

OptionText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


@dataclass
class Question:
    question_text: str
    options: list[str]
    correct_option_index: int
    points: int = 1

    def to_dict(self, include_answer: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "questionText": self.question_text,
            "options": list(self.options),
            "points": self.points,
        }
        if include_answer:
            data["correctOptionIndex"] = self.correct_option_index
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        return cls(
            question_text=data.get("questionText", ""),
            options=list(data.get("options", [])),
            correct_option_index=int(data.get("correctOptionIndex", 0)),
            points=int(data.get("points", 1)),
        )


@dataclass
class Assessment:
    """A timed multiple-choice assessment. Immutable after creation."""

    id: str
    course_id: str
    title: str
    questions: list[Question]
    time_limit_minutes: int
    description: str = ""
    created_by: str | None = None
    created_at: datetime | None = None

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60

    def to_dict(self, include_answers: bool = True) -> dict[str, Any]:
        """``include_answers=False`` is the view handed to students taking it."""
        return {
            "id": self.id,
            "courseId": self.course_id,
            "title": self.title,
            "description": self.description,
            "questions": [q.to_dict(include_answers) for q in self.questions],
            "timeLimitMinutes": self.time_limit_minutes,
            "totalPoints": self.total_points,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Assessment:
        return cls(
            id=data["id"],
            course_id=data["courseId"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            questions=[Question.from_dict(q) for q in data.get("questions", [])],
            time_limit_minutes=int(data.get("timeLimitMinutes", 1)),
            created_by=data.get("createdBy"),
            created_at=data.get("createdAt"),
        )


@dataclass
class AssessmentResult:
    """The single stored outcome of one student's attempt."""

    id: str
    student_id: str
    assessment_id: str
    course_id: str
    answers: dict[int, int]
    score: int
    total_points: int
    time_spent_seconds: int
    completed_at: datetime | None = None
    auto_submitted: bool = False

    @property
    def percentage(self) -> float:
        if self.total_points <= 0:
            return 0.0
        return 100.0 * self.score / self.total_points

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "assessmentId": self.assessment_id,
            "courseId": self.course_id,
            "answers": {str(k): v for k, v in self.answers.items()},
            "score": self.score,
            "totalPoints": self.total_points,
            "percentage": self.percentage,
            "completedAt": self.completed_at,
            "timeSpentSeconds": self.time_spent_seconds,
            "autoSubmitted": self.auto_submitted,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssessmentResult:
        # percentage is derived; a stored value is never trusted
        return cls(
            id=data["id"],
            student_id=data["studentId"],
            assessment_id=data["assessmentId"],
            course_id=data.get("courseId", ""),
            answers={int(k): int(v) for k, v in (data.get("answers") or {}).items()},
            score=int(data.get("score", 0)),
            total_points=int(data.get("totalPoints", 0)),
            time_spent_seconds=int(data.get("timeSpentSeconds", 0)),
            completed_at=data.get("completedAt"),
            auto_submitted=bool(data.get("autoSubmitted", False)),
        )


@dataclass
class CompletedAssessment:
    """A result joined with display titles (placeholders when missing)."""

    result: AssessmentResult
    assessment_title: str
    course_title: str

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.result.to_dict(),
            "assessmentTitle": self.assessment_title,
            "courseTitle": self.course_title,
        }


# =============================================================================
# Drafts (validated input)
# =============================================================================


class QuestionDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    question_text: str = Field(..., min_length=1, alias="questionText")
    options: list[OptionText] = Field(
        ..., min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION
    )
    correct_option_index: int = Field(
        ..., ge=0, le=OPTIONS_PER_QUESTION - 1, alias="correctOptionIndex"
    )
    points: int = Field(1, ge=1)


class AssessmentDraft(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    course_id: str = Field(..., min_length=1, alias="courseId")
    title: str = Field(..., min_length=1)
    description: str = ""
    questions: list[QuestionDraft] = Field(..., min_length=1)
    time_limit_minutes: int | None = Field(None, ge=1, alias="timeLimitMinutes")
