"""Base model class with timestamp tracking."""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from career_loader.utils.db import Base


class BaseModel(Base):
    """Abstract base class for curriculum tables.

    Provides common functionality for all models:
    - Timestamps (created_at, updated_at)
    - Dictionary conversion

    Primary keys are declared by each table, since the curriculum schema
    keys careers by their external catalog id and links tables by
    composite keys.

    Usage:
        class Career(BaseModel):
            __tablename__ = "careers"

            careerid: Mapped[int] = mapped_column(Integer, primary_key=True)
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model instance to dictionary.

        Returns:
            Dictionary representation of the model
        """
        return {
            column.name: getattr(self, column.name) for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        """String representation of the model."""
        attrs = ", ".join(
            f"{key}={repr(value)}"
            for key, value in self.to_dict().items()
            if key not in ("created_at", "updated_at")
        )
        return f"{self.__class__.__name__}({attrs})"
