"""Correlative graph builder.

Catalog pages draw each subject's prerequisite tree client-side with an
ECOTree script. Every tree block names a subject and lists
``t.add(nodeId, parentId, "label")`` triples. In a forward tree
(``Arbol<code>``) a node's label is a prerequisite of its parent's label;
in a reverse tree (``ArbolAnt<code>``) a node's label is a dependent of its
parent's label. Edges are resolved against the subjects extracted from the
table, checked for mutual and cyclic conflicts in arrival order, and
materialized as each subject's ``correlatives``.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set

from career_loader.schemas.career import Career, CorrelativeRef

logger = logging.getLogger(__name__)


class CorrelativeDirection(str, Enum):
    """How a tree edge relates a node to its parent."""

    PREVIOUS = "previous"  # node is a prerequisite of its parent
    NEXT = "next"  # node is a dependent of its parent


@dataclass(frozen=True)
class CorrelativeEdge:
    """Directed fact: ``correlative_code`` must precede ``subject_code``."""

    subject_code: str
    correlative_code: str
    direction: CorrelativeDirection


@dataclass
class GraphBuildResult:
    """Summary of one graph build."""

    edges_found: int = 0
    edges_applied: int = 0
    edges_rejected: int = 0
    edges_unresolved: int = 0


class CorrelativeGraph:
    """Prerequisite graph keyed by subject code.

    ``prev[code]`` holds the codes that must precede ``code`` and
    ``next[code]`` the codes that must follow it. Both are insertion-ordered
    so materialized lists follow edge arrival order.
    """

    def __init__(self, codes: List[str]) -> None:
        self.prev: Dict[str, Dict[str, None]] = {code: {} for code in codes}
        self.next: Dict[str, Dict[str, None]] = {code: {} for code in codes}

    def has_edge(self, prerequisite: str, dependent: str) -> bool:
        return dependent in self.next[prerequisite]

    def reaches(self, start: str, target: str) -> bool:
        """Whether ``target`` is reachable from ``start`` along ``next`` edges."""
        seen: Set[str] = set()
        stack = [start]
        while stack:
            node = stack.pop()
            for following in self.next[node]:
                if following == target:
                    return True
                if following not in seen:
                    seen.add(following)
                    stack.append(following)
        return False

    def add_edge(self, prerequisite: str, dependent: str) -> None:
        self.prev[dependent][prerequisite] = None
        self.next[prerequisite][dependent] = None


class CorrelativeService:
    """Service building the correlative graph of an extracted career.

    Usage:
        career = ExtractionService().extract(raw_html)
        CorrelativeService().build_graph(raw_html, career)
    """

    SCRIPT_PATTERN = re.compile(
        r"function\s+CreateTree\s*\(\s*\)\s*\{(.*?)\}\s*CreateTree\s*\(\s*\)\s*;",
        re.DOTALL,
    )
    TREE_PATTERN = re.compile(
        r"t\s*=\s*new\s+ECOTree\(\s*'t'\s*,\s*'([^']*)'\s*\)\s*;(.*?)t\.UpdateTree",
        re.DOTALL,
    )
    NODE_PATTERN = re.compile(r't\.add\(\s*(\d+)\s*,\s*(-?\d+)\s*,\s*"([^"]*)"')
    CODE_TOKEN_PATTERN = re.compile(r"^[\w.]+")
    REVERSE_TREE_PREFIX = "ArbolAnt"
    ROOT_PARENT_ID = "-1"

    def parse_edges(self, raw_html: str) -> List[CorrelativeEdge]:
        """Parse every tree block of the page into directed edges.

        Args:
            raw_html: Raw markup of the catalog page.

        Returns:
            Edges in source order, normalized so ``subject_code`` is the
            dependent and ``correlative_code`` the prerequisite. Labels are
            returned as written; resolution happens in ``apply_edges``.
        """
        raw_html = raw_html or ""
        script = self.SCRIPT_PATTERN.search(raw_html)
        source = script.group(1) if script else raw_html

        edges: List[CorrelativeEdge] = []
        for tree_name, tree_body in self.TREE_PATTERN.findall(source):
            direction = (
                CorrelativeDirection.NEXT
                if tree_name.startswith(self.REVERSE_TREE_PREFIX)
                else CorrelativeDirection.PREVIOUS
            )
            nodes = self.NODE_PATTERN.findall(tree_body)
            labels = {node_id: label.strip() for node_id, _, label in nodes}

            for node_id, parent_id, _ in nodes:
                if parent_id == self.ROOT_PARENT_ID:
                    continue
                label = labels[node_id]
                parent_label = labels.get(parent_id)
                if not parent_label or not label or label == parent_label:
                    continue

                if direction is CorrelativeDirection.PREVIOUS:
                    edges.append(CorrelativeEdge(parent_label, label, direction))
                else:
                    edges.append(CorrelativeEdge(label, parent_label, direction))

        return edges

    def _resolve(self, label: str, codes: Set[str]) -> Optional[str]:
        if label in codes:
            return label
        token = self.CODE_TOKEN_PATTERN.match(label)
        if token and token.group(0) in codes:
            return token.group(0)
        return None

    def build_graph(self, raw_html: str, career: Career) -> Career:
        """Attach correlatives parsed from the tree script to the career.

        Args:
            raw_html: Raw markup of the catalog page.
            career: Career extracted from the same page; mutated in place.

        Returns:
            The same career, with correlatives populated.
        """
        self.apply_edges(career, self.parse_edges(raw_html))
        return career

    def apply_edges(
        self, career: Career, edges: List[CorrelativeEdge]
    ) -> GraphBuildResult:
        """Validate edges in order and materialize the surviving ones.

        Correlatives already on the subjects are replaced, so applying the
        same edges twice gives the same result.

        Args:
            career: Career whose subjects define the valid codes.
            edges: Edges in arrival order.

        Returns:
            GraphBuildResult with edge counters.
        """
        subjects = career.subject_by_code()
        codes = set(subjects)
        graph = CorrelativeGraph(list(subjects))
        result = GraphBuildResult()

        for edge in edges:
            result.edges_found += 1
            dependent = self._resolve(edge.subject_code, codes)
            prerequisite = self._resolve(edge.correlative_code, codes)
            if dependent is None or prerequisite is None:
                result.edges_unresolved += 1
                continue
            if dependent == prerequisite:
                continue

            if graph.has_edge(prerequisite, dependent):
                continue

            if graph.has_edge(dependent, prerequisite):
                logger.warning(
                    "Rejected mutual correlative",
                    extra={
                        "subject_code": dependent,
                        "correlative_code": prerequisite,
                        "reason": "mutual",
                    },
                )
                result.edges_rejected += 1
                continue

            if graph.reaches(dependent, prerequisite):
                logger.warning(
                    "Rejected cyclic correlative",
                    extra={
                        "subject_code": dependent,
                        "correlative_code": prerequisite,
                        "reason": "cycle",
                    },
                )
                result.edges_rejected += 1
                continue

            graph.add_edge(prerequisite, dependent)
            result.edges_applied += 1

        for subject in career.subjects:
            code = subject.code
            subject.correlatives.previous = [
                CorrelativeRef(code=other, name=subjects[other].name)
                for other in graph.prev[code]
            ]
            subject.correlatives.next = [
                CorrelativeRef(code=other, name=subjects[other].name)
                for other in graph.next[code]
            ]

        logger.info(
            "Built correlative graph",
            extra={
                "career_id": career.id,
                "edges_found": result.edges_found,
                "edges_applied": result.edges_applied,
                "edges_rejected": result.edges_rejected,
                "edges_unresolved": result.edges_unresolved,
            },
        )
        return result
