"""Extraction service turning a catalog page into a Career skeleton.

The catalog page is a legacy ASP.NET listing: a title element for the
career, a banner with the plan identity, and one table whose rows are
either year/semester markers or subject rows (code, name, details).
Extraction never fails on malformed markup; missing pieces degrade to
empty strings and empty lists.
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup

from career_loader.schemas.career import Career, Correlatives, Faculty, Plan, Subject

logger = logging.getLogger(__name__)

WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Trim text and collapse whitespace runs to a single space."""
    if not text:
        return ""
    return WHITESPACE_PATTERN.sub(" ", text).strip()


class ExtractionService:
    """Service extracting career identity and subjects from catalog HTML.

    Usage:
        career = ExtractionService().extract(raw_html)
    """

    CAREER_TITLE_SELECTOR = "#ctl00_ContentPlaceHolderMain_lbl_TituloCarrera"
    FACULTY_TITLE_SELECTOR = (
        "#ctl00_ContentPlaceHolderMain_lbl_TituloFacultad, "
        "#ctl00_ContentPlaceHolderMain_lblTituloFacultad"
    )
    SUBJECT_TABLE_SELECTOR = "#ctl00_ContentPlaceHolderMain_tbl_Materias"
    FORM_SELECTOR = "form#aspnetForm"

    # "Plan: 2008 - Año: 2010" on current pages, "Plan: 2008 (2010)" on older ones
    PLAN_PATTERNS = (
        re.compile(r"Plan:\s*(\w+)\s*-\s*A[ñn]o:\s*(\d+)", re.IGNORECASE),
        re.compile(r"Plan:\s*(\w+)\s*\(\s*(\d+)\s*\)", re.IGNORECASE),
    )
    YEAR_MARKER_PATTERN = re.compile(r"(\d+)\s*[°ºo]\s*A[ÑN]O", re.IGNORECASE)
    SEMESTER_MARKER_PATTERN = re.compile(r"(\d+)\s*[°ºo]\s*CUATRIMESTRE", re.IGNORECASE)
    # Detail buttons call e.g. MostrarOcultar('95011') for subject id "9501"
    DETAIL_ID_PATTERN = re.compile(r"'([^']+)1'")
    HEADER_CODE_TEXT = "código"
    OPTIONAL_MARKER = "optativa"

    def extract(self, raw_html: str) -> Career:
        """Extract a Career skeleton from raw catalog HTML.

        Args:
            raw_html: Raw markup of one catalog page.

        Returns:
            Career with identity, plan, faculty and subjects sorted by
            (year, semester). Correlatives are left empty.
        """
        soup = self._parse(raw_html or "")

        career_id, faculty_id = self._extract_ids(soup, raw_html or "")
        career = Career(
            id=career_id,
            name=self._extract_name(soup),
            faculty=Faculty(id=faculty_id, name=self._extract_faculty_name(soup)),
            plan=self._extract_plan(soup),
        )

        subjects = self._extract_subjects(soup)
        # sorted() is stable, so row order breaks (year, semester) ties
        career.subjects = sorted(subjects, key=lambda s: (s.year, s.semester))
        career.total_years = max((s.year for s in career.subjects), default=0)

        logger.info(
            "Extracted career from catalog page",
            extra={
                "career_id": career.id,
                "career_name": career.name,
                "subjects": len(career.subjects),
                "total_years": career.total_years,
            },
        )
        return career

    @staticmethod
    def _parse(raw_html: str) -> BeautifulSoup:
        try:
            return BeautifulSoup(raw_html, "lxml")
        except ParserRejectedMarkup:
            return BeautifulSoup(raw_html, "html.parser")

    def _extract_name(self, soup: BeautifulSoup) -> str:
        title = soup.select_one(self.CAREER_TITLE_SELECTOR)
        return normalize_text(title.get_text(" ")) if title else ""

    def _extract_faculty_name(self, soup: BeautifulSoup) -> str:
        for element in soup.select(self.FACULTY_TITLE_SELECTOR):
            name = normalize_text(element.get_text(" "))
            if name:
                return name
        return ""

    def _extract_ids(self, soup: BeautifulSoup, raw_html: str) -> Tuple[str, str]:
        """Read IdCarrera/IdFacultad from the form action, else from the markup."""
        career_id = ""
        faculty_id = ""

        form = soup.select_one(self.FORM_SELECTOR)
        if form is not None:
            query = parse_qs(urlsplit(str(form.get("action") or "")).query)
            career_id = query.get("IdCarrera", [""])[0].strip()
            faculty_id = query.get("IdFacultad", [""])[0].strip()

        if not career_id:
            match = re.search(r"IdCarrera=(\d+)", raw_html, re.IGNORECASE)
            career_id = match.group(1) if match else ""
        if not faculty_id:
            match = re.search(r"IdFacultad=(\d+)", raw_html, re.IGNORECASE)
            faculty_id = match.group(1) if match else ""

        return career_id, faculty_id

    def _extract_plan(self, soup: BeautifulSoup) -> Plan:
        candidates: List[str] = [
            element.get_text(" ")
            for element in soup.find_all(class_=re.compile(r"^TablaTitFACU"))
        ]
        candidates.extend(th.get_text(" ") for th in soup.select("table.tabla-contenido th"))
        candidates.append(soup.get_text(" "))

        for text in candidates:
            for pattern in self.PLAN_PATTERNS:
                match = pattern.search(text)
                if match:
                    return Plan(id=match.group(1), year=match.group(2))
        return Plan()

    def _rows(self, soup: BeautifulSoup) -> List[Tag]:
        table = soup.select_one(self.SUBJECT_TABLE_SELECTOR)
        scope = table if table is not None else soup
        return scope.find_all("tr")

    def _is_header_row(self, row: Tag, cells: List[Tag]) -> bool:
        if row.find(class_="TablaCampos") is not None:
            return True
        if row.find("th") is not None:
            return True
        return normalize_text(cells[0].get_text(" ")).lower() == self.HEADER_CODE_TEXT

    def _subject_id(self, cells: List[Tag], code: str) -> str:
        detail_button = cells[2].select_one('input[type="image"]')
        if detail_button is not None:
            match = self.DETAIL_ID_PATTERN.search(str(detail_button.get("onclick") or ""))
            if match:
                return match.group(1)
        return code

    def _extract_subjects(self, soup: BeautifulSoup) -> List[Subject]:
        subjects: List[Subject] = []
        current_year = 1
        current_semester = 1

        for row in self._rows(soup):
            cells = row.find_all("td", recursive=False)

            # Marker rows may be padded with empty cells to the table width
            text = normalize_text(row.get_text(" "))
            year_match = self.YEAR_MARKER_PATTERN.search(text)
            if year_match:
                current_year = max(1, int(year_match.group(1)))
                current_semester = 1
                continue
            semester_match = self.SEMESTER_MARKER_PATTERN.search(text)
            if semester_match:
                current_semester = max(1, int(semester_match.group(1)))
                continue

            if len(cells) < 3 or self._is_header_row(row, cells):
                continue

            code = normalize_text(cells[0].get_text(" "))
            name = normalize_text(cells[1].get_text(" "))
            if not code or not name:
                logger.debug(
                    "Skipping incomplete subject row",
                    extra={"code": code, "subject_name": name},
                )
                continue

            subjects.append(
                Subject(
                    id=self._subject_id(cells, code),
                    code=code,
                    name=name,
                    year=current_year,
                    semester=current_semester,
                    is_optional=self.OPTIONAL_MARKER in name.lower(),
                    correlatives=Correlatives(),
                )
            )

        return subjects
