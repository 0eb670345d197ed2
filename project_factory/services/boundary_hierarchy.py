from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence

from project_factory.core.config import settings
from project_factory.core.errors import raise_error
from project_factory.schemas.boundary import BoundaryNode
from project_factory.services.boundary_codes import ChildParentMap, ElementKey

logger = logging.getLogger(__name__)


@dataclass
class BoundaryRow:
    """Hierarchy cells of one sheet row, left to right, plus its code cell if filled."""

    elements: list[ElementKey]
    code: str | None = None
    row_number: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def _check_depth(depth: int, max_depth: int | None) -> None:
    limit = settings.MAX_HIERARCHY_DEPTH if max_depth is None else max_depth
    if depth > limit:
        raise_error(
            "COMMON",
            400,
            "VALIDATION_ERROR",
            f"Boundary hierarchy is deeper than the allowed {limit} levels",
        )


def build_path_list(tree: Sequence[BoundaryNode], *, max_depth: int | None = None) -> list[str]:
    """Pre-order list of comma-joined code paths, one per node."""
    paths: list[str] = []

    def _walk(nodes: Sequence[BoundaryNode], chain: list[str], depth: int) -> None:
        _check_depth(depth, max_depth)
        for node in nodes:
            node_chain = chain + [node.code]
            paths.append(",".join(node_chain))
            if node.children:
                _walk(node.children, node_chain, depth + 1)

    _walk(tree, [], 1)
    return paths


def build_child_parent_map(rows: Iterable[Sequence[ElementKey]]) -> ChildParentMap:
    child_parent: ChildParentMap = {}
    for row in rows:
        for index, element in enumerate(row):
            if element in child_parent:
                continue
            child_parent[element] = row[index - 1] if index > 0 else None
    return child_parent


def extract_codes(tree: Sequence[BoundaryNode] | None, *, max_depth: int | None = None) -> set[str]:
    codes: set[str] = set()

    def _walk(nodes: Sequence[BoundaryNode], depth: int) -> None:
        _check_depth(depth, max_depth)
        for node in nodes:
            codes.add(node.code)
            _walk(node.children, depth + 1)

    _walk(tree or [], 1)
    return codes


def generate_hierarchy(definitions: Sequence[Mapping[str, Any]]) -> list[str]:
    """Order boundary types root first from `boundaryType`/`parentBoundaryType` pairs."""
    parent_of = {
        str(item.get("boundaryType")): (
            str(item["parentBoundaryType"]) if item.get("parentBoundaryType") else None
        )
        for item in definitions
        if item.get("boundaryType")
    }
    ordered: list[str] = []

    for boundary_type in parent_of:
        chain: list[str] = []
        current: str | None = boundary_type
        while current is not None and current not in ordered and current not in chain:
            chain.append(current)
            current = parent_of.get(current)
        ordered.extend(reversed(chain))
    return ordered


def filter_boundary_tree(
    tree: Sequence[BoundaryNode],
    filters: Mapping[str, Any] | None,
    *,
    max_depth: int | None = None,
) -> list[BoundaryNode]:
    """
    Restrict a tree to the boundaries selected in campaign filters.

    Selected nodes keep their ancestors. A selection with `includeAllChildren`
    keeps its whole subtree; otherwise only descendants that are themselves
    selected survive.
    """
    selections = {
        str(item.get("code")): bool(item.get("includeAllChildren"))
        for item in (filters or {}).get("boundaries") or []
        if item.get("code")
    }
    if not selections:
        return list(tree)

    def _prune(node: BoundaryNode, depth: int) -> BoundaryNode | None:
        _check_depth(depth, max_depth)
        include_all = selections.get(node.code)
        if include_all:
            return node
        children = [
            kept for kept in (_prune(child, depth + 1) for child in node.children) if kept is not None
        ]
        if include_all is None and not children:
            return None
        return node.model_copy(update={"children": children})

    return [kept for kept in (_prune(node, 1) for node in tree) if kept is not None]


def path_rows_from_tree(
    tree: Sequence[BoundaryNode],
    *,
    max_depth: int | None = None,
) -> list[list[str]]:
    """Code chains for every node, split back out of `build_path_list`."""
    return [path.split(",") for path in build_path_list(tree, max_depth=max_depth)]


def child_parent_map_from_tree(
    tree: Sequence[BoundaryNode],
    level_headers: Sequence[str],
    name_of: Callable[[str], str] = lambda code: code,
    *,
    max_depth: int | None = None,
) -> ChildParentMap:
    """ChildParentMap the sheet rendered from `tree` should parse back into."""
    rows: list[list[ElementKey]] = []
    for chain in path_rows_from_tree(tree, max_depth=max_depth):
        rows.append(
            [ElementKey.of(level_headers[index], name_of(code)) for index, code in enumerate(chain)]
        )
    return build_child_parent_map(rows)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def records_to_boundary_rows(
    records: Iterable[Mapping[str, Any]],
    level_columns: Sequence[str],
    code_column: str,
    *,
    row_number_key: str = "!row#number!",
) -> list[BoundaryRow]:
    """
    Convert parsed sheet records into hierarchy rows.

    Level cells are read in `level_columns` order and blank cells end the
    chain. Columns outside the hierarchy are kept in `extra`.
    """
    level_set = set(level_columns)
    rows: list[BoundaryRow] = []
    for record in records:
        elements: list[ElementKey] = []
        for column in level_columns:
            value = record.get(column)
            if _is_blank(value):
                break
            elements.append(ElementKey.of(column, value))
        if not elements:
            continue
        code_value = record.get(code_column)
        extra = {
            key: value
            for key, value in record.items()
            if key not in level_set and key not in {code_column, row_number_key}
        }
        rows.append(
            BoundaryRow(
                elements=elements,
                code=None if _is_blank(code_value) else str(code_value).strip(),
                row_number=record.get(row_number_key),
                extra=extra,
            )
        )
    return rows


def split_boundary_rows(rows: Iterable[BoundaryRow]) -> tuple[list[BoundaryRow], list[BoundaryRow]]:
    """Separate rows that already carry a boundary code from those that need one."""
    with_code: list[BoundaryRow] = []
    without_code: list[BoundaryRow] = []
    for row in rows:
        (with_code if row.code else without_code).append(row)
    return with_code, without_code
