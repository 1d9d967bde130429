"""Business logic services package."""

from career_loader.services.catalog_service import CatalogService
from career_loader.services.correlative_service import CorrelativeService
from career_loader.services.extraction_service import ExtractionService
from career_loader.services.sync_service import CareerSyncService

__all__ = [
    "CatalogService",
    "CorrelativeService",
    "ExtractionService",
    "CareerSyncService",
]
