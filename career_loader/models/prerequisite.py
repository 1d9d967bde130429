"""Prerequisite edge model."""

from sqlalchemy import CheckConstraint, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from career_loader.models.base import BaseModel


class Prerequisite(BaseModel):
    """Directed edge: ``prerequisite_subjectid`` must precede ``subjectid``.

    Edges are scoped to a career, since the same pair of subjects can be
    correlated differently in different curricula.
    """

    __tablename__ = "prerequisites"

    subjectid: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("subjects.subjectid", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    prerequisite_subjectid: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("subjects.subjectid", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    careerid: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("careers.careerid", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )

    __table_args__ = (
        CheckConstraint(
            "subjectid <> prerequisite_subjectid", name="ck_prerequisites_not_self"
        ),
    )
