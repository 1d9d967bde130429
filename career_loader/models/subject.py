"""Subject model representing catalog courses."""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from career_loader.models.base import BaseModel


class Subject(BaseModel):
    """Subject model shared across careers.

    Subjects are identified by their catalog code; the numeric
    ``subjectid`` is assigned by the database on insert, so callers only
    learn it from the insert result or from a lookup by code.

    Attributes:
        subjectid: Storage-assigned identifier
        code: Catalog code (e.g., "95.01"), unique
        name: Subject name
    """

    __tablename__ = "subjects"

    subjectid: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (UniqueConstraint("code", name="uq_subjects_code"),)

    def __repr__(self) -> str:
        """String representation of the subject."""
        return f"Subject(subjectid={self.subjectid}, code={self.code!r}, name={self.name!r})"
