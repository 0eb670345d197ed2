from __future__ import annotations

from typing import Any, Mapping, Sequence

from project_factory.core.config import settings
from project_factory.schemas.boundary import BoundaryNode
from project_factory.services.boundary_hierarchy import path_rows_from_tree
from project_factory.services.localization_service import (
    get_localized_headers,
    get_localized_name,
)
from project_factory.services.sheet_service import SheetData, create_sheet_data

FACILITY_CODE_HEADER = "HCM_ADMIN_CONSOLE_FACILITY_CODE"


def level_header_keys(levels: Sequence[str], hierarchy_type: str) -> list[str]:
    return [f"{hierarchy_type}_{level}".upper() for level in levels]


def level_headers(
    levels: Sequence[str],
    hierarchy_type: str,
    localization_map: Mapping[str, str] | None = None,
) -> list[str]:
    return get_localized_headers(level_header_keys(levels, hierarchy_type), localization_map)


def boundary_type_by_header(
    levels: Sequence[str],
    hierarchy_type: str,
    localization_map: Mapping[str, str] | None = None,
) -> dict[str, str]:
    return dict(zip(level_headers(levels, hierarchy_type, localization_map), levels))


def reduce_levels(levels: Sequence[str], tree: Sequence[BoundaryNode]) -> list[str]:
    """Levels from the tree's root type downwards."""
    if not tree or tree[0].boundary_type not in levels:
        return list(levels)
    return list(levels[levels.index(tree[0].boundary_type):])


def boundary_sheet_data(
    tree: Sequence[BoundaryNode],
    levels: Sequence[str],
    hierarchy_type: str,
    localization_map: Mapping[str, str] | None = None,
    *,
    include_target: bool = False,
    tab_name: str | None = None,
) -> SheetData:
    """
    One row per boundary node: localized names padded to the level count,
    then the node's code (and an empty target cell when requested).
    """
    reduced = reduce_levels(levels, tree)
    headers = level_headers(reduced, hierarchy_type, localization_map)
    headers.append(get_localized_name(settings.BOUNDARY_CODE_HEADER, localization_map))
    if include_target:
        headers.append(settings.TARGET_COLUMN_HEADER)

    rows: list[list[Any]] = []
    for chain in path_rows_from_tree(tree):
        names = [get_localized_name(code, localization_map) for code in chain]
        names.extend([""] * max(0, len(reduced) - len(names)))
        row: list[Any] = names[: len(reduced)] + [chain[-1]]
        if include_target:
            row.append("")
        rows.append(row)

    name = get_localized_name(tab_name or settings.BOUNDARY_TAB, localization_map)
    return create_sheet_data(headers, rows, name)


def facility_sheet_data(
    facilities: Sequence[Mapping[str, Any]],
    required_columns: Sequence[str],
    localization_map: Mapping[str, str] | None = None,
) -> SheetData:
    headers = get_localized_headers([FACILITY_CODE_HEADER, *required_columns], localization_map)
    rows = [
        [
            facility.get("id"),
            facility.get("name"),
            facility.get("usage"),
            "Permanent" if facility.get("isPermanent") else "Temporary",
            facility.get("storageCapacity"),
            "",
        ][: len(headers)]
        for facility in facilities
    ]
    return create_sheet_data(headers, rows, get_localized_name(settings.FACILITY_TAB, localization_map))


def user_sheet_data(
    required_columns: Sequence[str],
    localization_map: Mapping[str, str] | None = None,
) -> SheetData:
    headers = get_localized_headers(required_columns, localization_map)
    return create_sheet_data(headers, [], get_localized_name(settings.USER_TAB, localization_map))
