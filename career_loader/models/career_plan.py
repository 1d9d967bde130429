"""Career plan model."""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from career_loader.models.base import BaseModel


class CareerPlan(BaseModel):
    """Study plan currently published for a career (one row per career)."""

    __tablename__ = "career_plans"

    careerid: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("careers.careerid", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    plan_id: Mapped[str] = mapped_column(String(50), nullable=False)
    plan_year: Mapped[str] = mapped_column(String(10), nullable=False)
