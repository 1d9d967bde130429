"""Catalog service running the extraction pipeline for one page.

Pipeline: extract the career skeleton from the subject table, overlay the
correlative graph from the tree script, then apply caller-supplied faculty
overrides. Marking the result as safe to persist is left to the caller.
"""

import logging
from typing import Optional

from career_loader.schemas.career import Career
from career_loader.services.correlative_service import CorrelativeService
from career_loader.services.extraction_service import ExtractionService, normalize_text

logger = logging.getLogger(__name__)


class CatalogService:
    """Service turning catalog HTML into a fully built Career.

    Usage:
        career = CatalogService().process(raw_html, faculty_id="FAIN")
        career.safe = True
        report = await CareerSyncService(store).sync(career)

    Attributes:
        extractor: Service extracting the career skeleton.
        correlatives: Service building the correlative graph.
    """

    def __init__(
        self,
        extractor: Optional[ExtractionService] = None,
        correlatives: Optional[CorrelativeService] = None,
    ) -> None:
        self.extractor = extractor or ExtractionService()
        self.correlatives = correlatives or CorrelativeService()

    def process(
        self,
        raw_html: str,
        faculty_id: Optional[str] = None,
        faculty_name: Optional[str] = None,
    ) -> Career:
        """Extract a career and its correlatives from raw catalog HTML.

        Args:
            raw_html: Raw markup of one catalog page.
            faculty_id: Faculty id overriding the extracted one.
            faculty_name: Faculty name overriding the extracted one.

        Returns:
            Career with correlatives populated, not yet marked as safe.
        """
        career = self.extractor.extract(raw_html)
        self.correlatives.build_graph(raw_html, career)

        if faculty_id is not None and faculty_id.strip():
            career.faculty.id = faculty_id.strip()
        if faculty_name is not None and faculty_name.strip():
            career.faculty.name = normalize_text(faculty_name)

        logger.info(
            "Processed catalog page",
            extra={
                "career_id": career.id,
                "faculty_id": career.faculty.id,
                "subjects": len(career.subjects),
            },
        )
        return career
