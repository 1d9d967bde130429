"""Career-subject association model."""

from sqlalchemy import Boolean, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from career_loader.models.base import BaseModel


class CareerSubject(BaseModel):
    """Placement of a subject inside a career's curriculum.

    Attributes:
        careerid: Career the subject belongs to
        subjectid: Subject placed in the career
        suggested_year: Curriculum year the subject is suggested for
        suggested_quarter: Semester within the suggested year
        is_optional: Whether the subject is an elective
    """

    __tablename__ = "career_subjects"

    careerid: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("careers.careerid", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    subjectid: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("subjects.subjectid", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    suggested_year: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    suggested_quarter: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_optional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
