"""Career schemas shared by the extraction and synchronization services."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serializing field names in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CorrelativeRef(CamelModel):
    """Reference to another subject of the same career.

    Attributes:
        code: Code of the referenced subject.
        name: Name of the referenced subject, empty when unknown.
    """

    code: str
    name: str = ""


class Correlatives(CamelModel):
    """Prerequisite links of a subject.

    Attributes:
        previous: Subjects that must be completed before this one.
        next: Subjects that require this one.
    """

    previous: List[CorrelativeRef] = Field(default_factory=list)
    next: List[CorrelativeRef] = Field(default_factory=list)


class Subject(CamelModel):
    """A course inside a career's curriculum.

    Attributes:
        id: Catalog id of the subject, the code unless the page says otherwise.
        code: Catalog code (e.g., "95.01").
        name: Subject name.
        year: Curriculum year (1-based).
        semester: Semester within the year (1-based).
        is_optional: Whether the subject is an elective.
        correlatives: Prerequisite links resolved against the career.
    """

    id: str
    code: str
    name: str
    year: int = Field(default=1, ge=1)
    semester: int = Field(default=1, ge=1)
    is_optional: bool = False
    correlatives: Correlatives = Field(default_factory=Correlatives)


class Faculty(CamelModel):
    """Faculty offering a career."""

    id: str = ""
    name: str = ""


class Plan(CamelModel):
    """Study plan identity as printed on the catalog banner."""

    id: str = ""
    year: str = ""


class Career(CamelModel):
    """A degree program scraped from a single catalog page.

    Attributes:
        id: External career id, empty when it cannot be extracted.
        name: Career title, empty when it cannot be extracted.
        faculty: Faculty identity.
        plan: Study plan identity.
        subjects: Subjects ordered by (year, semester).
        total_years: Highest subject year, 0 when there are no subjects.
        safe: Set by the caller once the career may be persisted.
    """

    id: str = ""
    name: str = ""
    faculty: Faculty = Field(default_factory=Faculty)
    plan: Plan = Field(default_factory=Plan)
    subjects: List[Subject] = Field(default_factory=list)
    total_years: int = 0
    safe: bool = False

    def subject_by_code(self) -> Dict[str, Subject]:
        """Map subject codes to subjects, first occurrence wins."""
        by_code: Dict[str, Subject] = {}
        for subject in self.subjects:
            by_code.setdefault(subject.code, subject)
        return by_code

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the career in its external camelCase shape."""
        return self.model_dump(by_alias=True)


def utc_timestamp() -> str:
    """Current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat()


class SyncStats(CamelModel):
    """Counters collected by one synchronization run."""

    total_subjects: int = 0
    valid_subjects: int = 0
    subjects_inserted: int = 0
    relations_inserted: int = 0
    relations_failed: int = 0
    batch_fallbacks: int = 0
    prerequisites_inserted: int = 0
    prerequisites_missing: int = 0
    errors: int = 0
    error_details: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    timestamp: str = Field(default_factory=utc_timestamp)


class SyncReport(CamelModel):
    """Outcome of a synchronization run.

    Attributes:
        success: True when no error was accumulated.
        message: Human-readable summary.
        stats: Counters and error details.
    """

    success: bool
    message: str
    stats: SyncStats = Field(default_factory=SyncStats)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the report as a flat camelCase object."""
        return self.model_dump(by_alias=True, exclude_none=True)
