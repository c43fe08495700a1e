"""
Pydantic models for tests, review records and ledger entries

Stored blobs use the portal's camelCase keys; attributes are snake_case.
"""
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class StoredModel(BaseModel):
    """Base for models read from / written to the document store"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ===== Question Schemas =====
class TrueFalseQuestion(StoredModel):
    id: str
    type: Literal["tf"] = "tf"
    text: str = ""
    answer: bool
    explanation: Optional[str] = None


class MultipleChoiceQuestion(StoredModel):
    id: str
    type: Literal["mc"] = "mc"
    text: str = ""
    options: List[str] = Field(default_factory=list)
    correct_index: int = 0


class MultiSelectOption(StoredModel):
    text: str = ""
    correct: bool = Field(
        default=False,
        validation_alias=AliasChoices("correct", "isCorrect", "is_correct"),
    )


class MultiSelectQuestion(StoredModel):
    id: str
    type: Literal["ms"] = "ms"
    text: str = ""
    options: List[MultiSelectOption] = Field(default_factory=list)


class FreeResponseQuestion(StoredModel):
    id: str
    type: Literal["des"] = "des"
    prompt: str = ""
    sample_answer: Optional[str] = None


Question = Annotated[
    Union[
        TrueFalseQuestion,
        MultipleChoiceQuestion,
        MultiSelectQuestion,
        FreeResponseQuestion,
    ],
    Field(discriminator="type"),
]


class Test(StoredModel):
    """Immutable test definition supplied by the authoring side"""
    model_config = ConfigDict(frozen=True)
    __test__ = False

    id: str
    title: str = ""
    description: Optional[str] = None
    topic: Optional[str] = None
    course_id: Optional[str] = None
    section_id: Optional[str] = None
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)
    total_points: Optional[float] = None
    created_at: Optional[int] = None

    @field_validator("questions", mode="before")
    @classmethod
    def _questions_default(cls, value: Any) -> Any:
        return value or []

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def resolved_total_points(self) -> float:
        """Declared total points, or one point per question"""
        if self.total_points:
            return self.total_points
        return float(self.question_count)


# ===== Review / Ledger Schemas =====
class ReviewRecord(StoredModel):
    """One upload attempt; history is append-only per test"""
    test_id: str
    uploaded_at: int
    student_name: str = ""
    student_id: Optional[str] = None
    course_id: Optional[str] = None
    section_id: Optional[str] = None
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    topic: Optional[str] = None
    score: Optional[float] = None
    total_questions: Optional[int] = None
    total_points: Optional[float] = None
    same_document: bool = False
    coverage: float = Field(default=0.0, ge=0.0, le=1.0)
    student_found: bool = False
    file_name: Optional[str] = None
    answer_key: bool = False
    degraded: bool = False
    manually_assigned: bool = False


class GradeEntry(StoredModel):
    """Ledger unit; one per (test_id, student_id)"""
    id: str = ""
    test_id: str
    student_id: str
    student_name: str = ""
    score: float
    course_id: Optional[str] = None
    section_id: Optional[str] = None
    subject_id: Optional[str] = None
    title: str = ""
    graded_at: Optional[int] = None

    @model_validator(mode="after")
    def _stable_id(self) -> "GradeEntry":
        if not self.id:
            self.id = f"{self.test_id}-{self.student_id}"
        return self


class RosterStudent(StoredModel):
    id: str
    username: str = ""
    display_name: str = Field(
        default="",
        validation_alias=AliasChoices("displayName", "display_name", "name"),
    )

    @property
    def label(self) -> str:
        return self.display_name or self.username or self.id
