"""Unit tests for CorrelativeService."""

import logging

import pytest

from career_loader.schemas.career import Career
from career_loader.services.correlative_service import (
    CorrelativeDirection,
    CorrelativeEdge,
    CorrelativeGraph,
    CorrelativeService,
)
from career_loader.services.extraction_service import ExtractionService


@pytest.fixture
def service() -> CorrelativeService:
    return CorrelativeService()


@pytest.fixture
def abc_career(subject_factory) -> Career:
    return Career(
        id="1",
        name="Test",
        subjects=[
            subject_factory("A", "Subject A"),
            subject_factory("B", "Subject B"),
            subject_factory("C", "Subject C"),
        ],
    )


def requires(dependent: str, prerequisite: str) -> CorrelativeEdge:
    return CorrelativeEdge(dependent, prerequisite, CorrelativeDirection.PREVIOUS)


def previous_codes(career: Career, code: str):
    return [ref.code for ref in career.subject_by_code()[code].correlatives.previous]


def next_codes(career: Career, code: str):
    return [ref.code for ref in career.subject_by_code()[code].correlatives.next]


class TestParseEdges:
    """Tests for tree script parsing."""

    def test_forward_tree_node_is_prerequisite_of_parent(self, service, html_parts):
        script = html_parts.tree(
            "Arbol6103",
            [(0, -1, "61.03 Análisis II"), (1, 0, "61.01 Análisis I")],
        )

        edges = service.parse_edges(script)

        assert edges == [
            CorrelativeEdge(
                "61.03 Análisis II", "61.01 Análisis I", CorrelativeDirection.PREVIOUS
            )
        ]

    def test_reverse_tree_node_is_dependent_of_parent(self, service, html_parts):
        script = html_parts.tree(
            "ArbolAnt6101",
            [(0, -1, "61.01"), (1, 0, "61.03"), (2, 0, "62.01")],
        )

        edges = service.parse_edges(script)

        assert edges == [
            CorrelativeEdge("61.03", "61.01", CorrelativeDirection.NEXT),
            CorrelativeEdge("62.01", "61.01", CorrelativeDirection.NEXT),
        ]

    def test_nested_nodes_link_to_their_own_parent(self, service, html_parts):
        script = html_parts.tree(
            "Arbol7541",
            [(0, -1, "75.41"), (1, 0, "75.40"), (2, 1, "75.01")],
        )

        edges = service.parse_edges(script)

        assert [(e.subject_code, e.correlative_code) for e in edges] == [
            ("75.41", "75.40"),
            ("75.40", "75.01"),
        ]

    def test_self_and_orphan_nodes_are_skipped(self, service, html_parts):
        script = html_parts.tree(
            "Arbol1",
            [(0, -1, "A"), (1, 0, "A"), (2, 7, "B"), (3, 0, "")],
        )

        assert service.parse_edges(script) == []

    def test_only_create_tree_body_is_read(self, service, page_builder, html_parts):
        html = page_builder(
            [], trees=[html_parts.tree("Arbol1", [(0, -1, "A"), (1, 0, "B")])]
        )
        html += "<script>{}</script>".format(
            html_parts.tree("Arbol2", [(0, -1, "C"), (1, 0, "D")])
        )

        edges = service.parse_edges(html)

        assert [(e.subject_code, e.correlative_code) for e in edges] == [("A", "B")]

    def test_no_script_gives_no_edges(self, service):
        assert service.parse_edges("<html><body></body></html>") == []
        assert service.parse_edges("") == []


class TestCorrelativeGraph:
    def test_reaches_follows_transitive_edges(self):
        graph = CorrelativeGraph(["A", "B", "C"])
        graph.add_edge("A", "B")
        graph.add_edge("B", "C")

        assert graph.reaches("A", "C") is True
        assert graph.reaches("C", "A") is False
        assert graph.has_edge("A", "B") is True
        assert graph.has_edge("B", "A") is False


class TestApplyEdges:
    """Tests for edge validation and materialization."""

    def test_edges_materialize_both_directions(self, service, abc_career):
        result = service.apply_edges(abc_career, [requires("B", "A"), requires("C", "A")])

        assert result.edges_applied == 2
        assert previous_codes(abc_career, "B") == ["A"]
        assert previous_codes(abc_career, "C") == ["A"]
        assert next_codes(abc_career, "A") == ["B", "C"]
        assert abc_career.subject_by_code()["A"].correlatives.next[0].name == "Subject B"

    def test_mutual_edge_is_rejected_first_wins(self, service, abc_career, caplog):
        with caplog.at_level(logging.WARNING):
            result = service.apply_edges(
                abc_career, [requires("B", "A"), requires("A", "B")]
            )

        assert result.edges_applied == 1
        assert result.edges_rejected == 1
        assert previous_codes(abc_career, "B") == ["A"]
        assert previous_codes(abc_career, "A") == []
        assert "Rejected mutual correlative" in caplog.text

    def test_transitive_cycle_is_rejected(self, service, abc_career, caplog):
        with caplog.at_level(logging.WARNING):
            result = service.apply_edges(
                abc_career,
                [requires("B", "A"), requires("C", "B"), requires("A", "C")],
            )

        assert result.edges_applied == 2
        assert result.edges_rejected == 1
        assert previous_codes(abc_career, "A") == []
        assert next_codes(abc_career, "C") == []
        assert "Rejected cyclic correlative" in caplog.text

    def test_duplicate_edges_are_applied_once(self, service, abc_career):
        result = service.apply_edges(
            abc_career, [requires("B", "A"), requires("B", "A")]
        )

        assert result.edges_found == 2
        assert result.edges_applied == 1
        assert result.edges_rejected == 0
        assert previous_codes(abc_career, "B") == ["A"]

    def test_unknown_codes_are_counted_and_dropped(self, service, abc_career):
        result = service.apply_edges(
            abc_career, [requires("B", "Z"), requires("X", "A"), requires("C", "B")]
        )

        assert result.edges_unresolved == 2
        assert result.edges_applied == 1
        for subject in abc_career.subjects:
            for ref in subject.correlatives.previous + subject.correlatives.next:
                assert ref.code in {"A", "B", "C"}

    def test_labels_resolve_by_leading_code(self, service, subject_factory):
        career = Career(
            id="1",
            subjects=[
                subject_factory("61.01", "Análisis Matemático I"),
                subject_factory("61.03", "Análisis Matemático II"),
            ],
        )

        service.apply_edges(
            career,
            [requires("61.03 Análisis Matemático II", "61.01 - Análisis Matemático I")],
        )

        assert previous_codes(career, "61.03") == ["61.01"]

    def test_applying_twice_gives_same_result(self, service, abc_career):
        edges = [requires("B", "A"), requires("C", "B")]

        service.apply_edges(abc_career, edges)
        first = abc_career.to_dict()
        service.apply_edges(abc_career, edges)

        assert abc_career.to_dict() == first

    def test_no_subject_lists_itself(self, service, abc_career):
        service.apply_edges(abc_career, [requires("A", "A"), requires("B", "A")])

        for subject in abc_career.subjects:
            assert subject.code not in [r.code for r in subject.correlatives.previous]
            assert subject.code not in [r.code for r in subject.correlatives.next]


def test_build_graph_on_catalog_page(service, catalog_html):
    """Test: forward and reverse trees of the page end up on the subjects."""
    career = ExtractionService().extract(catalog_html)

    returned = service.build_graph(catalog_html, career)

    assert returned is career
    assert previous_codes(career, "61.03") == ["61.01"]
    assert next_codes(career, "61.01") == ["61.03"]
    assert previous_codes(career, "75.41") == ["75.40"]
    assert next_codes(career, "75.40") == ["75.41"]
    assert previous_codes(career, "61.08") == []


def test_build_graph_is_consistent(service, catalog_html):
    career = service.build_graph(catalog_html, ExtractionService().extract(catalog_html))
    by_code = career.subject_by_code()

    for subject in career.subjects:
        for ref in subject.correlatives.previous:
            assert subject.code in [r.code for r in by_code[ref.code].correlatives.next]
        for ref in subject.correlatives.next:
            assert subject.code in [r.code for r in by_code[ref.code].correlatives.previous]


def test_forward_tree_links_both_subjects(service, page_builder, html_parts):
    html = page_builder(
        [
            html_parts.subject("95.02", "Algoritmos y Programación II"),
            html_parts.subject("95.03", "Algoritmos y Programación III"),
        ],
        trees=[html_parts.tree("Arbol9503", [(0, -1, "95.03"), (1, 0, "95.02")])],
    )
    career = ExtractionService().extract(html)

    service.build_graph(html, career)

    assert previous_codes(career, "95.03") == ["95.02"]
    assert next_codes(career, "95.02") == ["95.03"]
    assert career.subject_by_code()["95.03"].correlatives.previous[0].name == (
        "Algoritmos y Programación II"
    )
