"""Pydantic schemas for curriculum data and synchronization reports."""

from career_loader.schemas.career import (
    Career,
    CorrelativeRef,
    Correlatives,
    Faculty,
    Plan,
    Subject,
    SyncReport,
    SyncStats,
)

__all__ = [
    "Career",
    "CorrelativeRef",
    "Correlatives",
    "Faculty",
    "Plan",
    "Subject",
    "SyncReport",
    "SyncStats",
]
