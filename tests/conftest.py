"""Pytest configuration and shared fixtures."""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

import pytest

from career_loader.config import Settings
from career_loader.schemas.career import (
    Career,
    CorrelativeRef,
    Correlatives,
    Faculty,
    Plan,
    Subject,
)
from career_loader.utils.store import (
    UNIQUE_VIOLATION,
    Row,
    RowStore,
    StoreError,
    StoreResult,
)

PRIMARY_KEYS: Dict[str, Tuple[str, ...]] = {
    "careers": ("careerid",),
    "career_plans": ("careerid",),
    "subjects": ("subjectid",),
    "career_subjects": ("careerid", "subjectid"),
    "prerequisites": ("subjectid", "prerequisite_subjectid", "careerid"),
}


class FakeRowStore(RowStore):
    """In-memory RowStore with the quirks of the real backend.

    - subject upserts with ``ignore_duplicates`` skip existing codes and
      leave them out of the result;
    - codes in ``omit_codes`` are written but missing from the result;
    - career-subject writes with more than ``max_batch`` rows fail whole;
    - career-subject writes touching ``failing_subject_ids`` fail;
    - selects pop one error from ``transient_select_errors`` per call.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, List[Row]] = defaultdict(list)
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self._next_subject_id = 1

        self.failing_tables: Dict[str, StoreError] = {}
        self.failing_selects: Dict[str, StoreError] = {}
        self.transient_select_errors: Dict[str, List[StoreError]] = {}
        self.omit_codes: Set[str] = set()
        self.max_batch: Optional[int] = None
        self.failing_subject_ids: Set[int] = set()
        self.offline = False
        self.raise_on: Optional[str] = None

    def seed_subject(self, code: str, name: str) -> int:
        subject_id = self._next_subject_id
        self._next_subject_id += 1
        self.tables["subjects"].append(
            {"subjectid": subject_id, "code": code, "name": name}
        )
        return subject_id

    def upserts(self, table: str) -> List[Dict[str, Any]]:
        return [
            kwargs for op, name, kwargs in self.calls if op == "upsert" and name == table
        ]

    def selects(self, table: str) -> List[Dict[str, Any]]:
        return [
            kwargs for op, name, kwargs in self.calls if op == "select" and name == table
        ]

    def subject_id(self, code: str) -> Optional[int]:
        for row in self.tables["subjects"]:
            if row["code"] == code:
                return row["subjectid"]
        return None

    async def upsert(
        self,
        table: str,
        rows: Sequence[Row],
        on_conflict: Optional[str] = None,
        ignore_duplicates: bool = False,
    ) -> StoreResult:
        self.calls.append(
            (
                "upsert",
                table,
                {
                    "rows": [dict(row) for row in rows],
                    "on_conflict": on_conflict,
                    "ignore_duplicates": ignore_duplicates,
                },
            )
        )
        if self.raise_on == table:
            raise RuntimeError(f"{table} exploded")
        if table in self.failing_tables:
            return StoreResult(error=self.failing_tables[table])

        if table == "career_subjects":
            if self.max_batch is not None and len(rows) > self.max_batch:
                return StoreResult(error=StoreError("batch too large", code="57014"))
            if any(row["subjectid"] in self.failing_subject_ids for row in rows):
                return StoreResult(
                    error=StoreError("foreign key violation", code="23503")
                )

        if table == "subjects":
            return StoreResult(rows=self._upsert_subjects(rows, ignore_duplicates))

        keys = PRIMARY_KEYS[table]
        written = []
        for row in rows:
            stored = dict(row)
            key = tuple(stored[k] for k in keys)
            self.tables[table] = [
                r for r in self.tables[table] if tuple(r[k] for k in keys) != key
            ]
            self.tables[table].append(stored)
            written.append(dict(stored))
        return StoreResult(rows=written)

    def _upsert_subjects(self, rows: Sequence[Row], ignore_duplicates: bool) -> List[Row]:
        written = []
        for row in rows:
            existing_id = self.subject_id(row["code"])
            if existing_id is not None:
                if not ignore_duplicates:
                    self._rename_subject(existing_id, row["name"])
                    written.append({"subjectid": existing_id, **row})
                continue
            stored = {"subjectid": self._next_subject_id, **row}
            self._next_subject_id += 1
            self.tables["subjects"].append(stored)
            if row["code"] not in self.omit_codes:
                written.append(dict(stored))
        return written

    def _rename_subject(self, subject_id: int, name: str) -> None:
        for row in self.tables["subjects"]:
            if row["subjectid"] == subject_id:
                row["name"] = name

    async def select(
        self,
        table: str,
        columns: Sequence[str],
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> StoreResult:
        self.calls.append(
            (
                "select",
                table,
                {"columns": list(columns), "filters": dict(filters or {}), "limit": limit},
            )
        )
        if self.offline:
            return StoreResult(error=StoreError("connection refused", code="08006"))
        if self.transient_select_errors.get(table):
            return StoreResult(error=self.transient_select_errors[table].pop(0))
        if table in self.failing_selects:
            return StoreResult(error=self.failing_selects[table])

        matched = []
        for row in self.tables[table]:
            if all(
                row.get(key) in value if isinstance(value, list) else row.get(key) == value
                for key, value in (filters or {}).items()
            ):
                matched.append({name: row.get(name) for name in columns})
        if limit:
            matched = matched[:limit]
        return StoreResult(rows=matched)


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    """Create test settings instance."""
    monkeypatch.setenv("DB_HOST", "localhost")
    monkeypatch.setenv("DB_PORT", "5432")
    monkeypatch.setenv("DB_USER", "test_user")
    monkeypatch.setenv("DB_PASSWORD", "test_password")
    monkeypatch.setenv("DB_NAME", "test_db")
    return Settings()


@pytest.fixture
def store() -> FakeRowStore:
    return FakeRowStore()


@pytest.fixture
def unique_violation() -> StoreError:
    return StoreError(
        'duplicate key value violates unique constraint "uq_subjects_code"',
        code=UNIQUE_VIOLATION,
    )


def make_subject(
    code: str,
    name: str,
    year: int = 1,
    semester: int = 1,
    previous: Sequence[str] = (),
    is_optional: bool = False,
) -> Subject:
    return Subject(
        id=code.replace(".", ""),
        code=code,
        name=name,
        year=year,
        semester=semester,
        is_optional=is_optional,
        correlatives=Correlatives(
            previous=[CorrelativeRef(code=other) for other in previous]
        ),
    )


@pytest.fixture
def subject_factory() -> Callable[..., Subject]:
    return make_subject


@pytest.fixture
def career() -> Career:
    """Five-subject career with two prerequisite links, marked safe."""
    return Career(
        id="10",
        name="Ingeniería en Informática",
        faculty=Faculty(id="86", name="Facultad de Ingeniería"),
        plan=Plan(id="2008", year="2010"),
        subjects=[
            make_subject("61.01", "Análisis Matemático I"),
            make_subject("61.08", "Álgebra II"),
            make_subject("61.03", "Análisis Matemático II", semester=2, previous=["61.01"]),
            make_subject("75.40", "Algoritmos y Programación I", semester=2),
            make_subject("75.41", "Algoritmos y Programación II", year=2, previous=["75.40"]),
        ],
        total_years=2,
        safe=True,
    )


SUBJECT_ROW = (
    '<tr><td>{code}</td><td>{name}</td>'
    "<td><input type=\"image\" src=\"lupa.gif\" "
    "onclick=\"MostrarOcultar('{detail}1');return false;\" /></td></tr>"
)

TREE_SCRIPT = """
<script type="text/javascript">
function CreateTree() {{
{trees}
}}
CreateTree();
</script>
"""


def subject_row(code: str, name: str, detail: Optional[str] = None) -> str:
    return SUBJECT_ROW.format(
        code=code, name=name, detail=detail if detail is not None else code.replace(".", "")
    )


def marker_row(text: str) -> str:
    return f'<tr><td colspan="3" class="TablaTitAnio">{text}</td></tr>'


def tree_block(name: str, nodes: Sequence[Tuple[int, int, str]]) -> str:
    adds = "\n".join(f't.add({node}, {parent}, "{label}");' for node, parent, label in nodes)
    return f"t = new ECOTree('t','{name}');\n{adds}\nt.UpdateTree();"


def catalog_page(
    rows: Sequence[str],
    trees: Sequence[str] = (),
    career_id: str = "10",
    faculty_id: str = "86",
    career_name: str = "Ingeniería  en\n Informática",
    faculty_name: str = "Facultad de Ingeniería",
    plan_banner: str = "Plan: 2008 - Año: 2010",
) -> str:
    """Render a catalog page shaped like the real listing."""
    body = "".join(rows)
    script = TREE_SCRIPT.format(trees="\n".join(trees)) if trees else ""
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Plan de Estudios</title></head>
<body>
<form name="aspnetForm" method="post"
      action="PlanDeEstudio.aspx?IdCarrera={career_id}&amp;IdFacultad={faculty_id}"
      id="aspnetForm">
<span id="ctl00_ContentPlaceHolderMain_lbl_TituloFacultad">{faculty_name}</span>
<span id="ctl00_ContentPlaceHolderMain_lbl_TituloCarrera">{career_name}</span>
<table><tr><td class="TablaTitFACU">{plan_banner}</td></tr></table>
<table id="ctl00_ContentPlaceHolderMain_tbl_Materias">
<tr><td class="TablaCampos">Código</td><td class="TablaCampos">Materia</td><td class="TablaCampos">Detalle</td></tr>
{body}
</table>
</form>
{script}
</body>
</html>"""


@pytest.fixture
def page_builder() -> Callable[..., str]:
    return catalog_page


@pytest.fixture
def html_parts():
    """Row and tree helpers for building catalog pages."""

    class Parts:
        subject = staticmethod(subject_row)
        marker = staticmethod(marker_row)
        tree = staticmethod(tree_block)

    return Parts


@pytest.fixture
def catalog_html() -> str:
    """Two-year catalog page with a forward and a reverse tree."""
    rows = [
        marker_row("1° AÑO"),
        marker_row("1° CUATRIMESTRE"),
        subject_row("61.01", "Análisis Matemático I"),
        subject_row("61.08", "Álgebra II"),
        marker_row("2° CUATRIMESTRE"),
        subject_row("61.03", "Análisis Matemático II"),
        subject_row("75.40", "Algoritmos y Programación I"),
        marker_row("2° AÑO"),
        subject_row("75.41", "Algoritmos y Programación II"),
        subject_row("75.99", "Materia Optativa I"),
    ]
    trees = [
        tree_block(
            "Arbol6103",
            [
                (0, -1, "61.03 Análisis Matemático II"),
                (1, 0, "61.01 Análisis Matemático I"),
            ],
        ),
        tree_block(
            "ArbolAnt7540",
            [
                (0, -1, "75.40 Algoritmos y Programación I"),
                (1, 0, "75.41 Algoritmos y Programación II"),
            ],
        ),
    ]
    return catalog_page(rows, trees)

