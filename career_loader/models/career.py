"""Career model representing a degree program."""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from career_loader.models.base import BaseModel


class Career(BaseModel):
    """Career model keyed by the catalog's external career id.

    Attributes:
        careerid: External career id taken from the catalog page (``IdCarrera``)
        name: Career title as shown on the catalog page
        facultyid: Numeric faculty id, when the faculty id is numeric
    """

    __tablename__ = "careers"

    careerid: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    facultyid: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
