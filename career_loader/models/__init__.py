"""Data models package."""

from career_loader.models.base import BaseModel
from career_loader.models.career import Career
from career_loader.models.career_plan import CareerPlan
from career_loader.models.career_subject import CareerSubject
from career_loader.models.prerequisite import Prerequisite
from career_loader.models.subject import Subject

__all__ = [
    "BaseModel",
    "Career",
    "CareerPlan",
    "CareerSubject",
    "Prerequisite",
    "Subject",
]
