from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from project_factory.core.flow_logging import flow_info

logger = logging.getLogger(__name__)

# Parent suffix stripped when the parent itself hangs under a grandparent:
# "ROOT_05_ALPHA" -> "ROOT".
_ORDINAL_SUFFIX_RE = re.compile(r"^(?P<prefix>.*)_\d{2,}_[^_].*$")


@dataclass(frozen=True)
class ElementKey:
    """A distinct cell value at one hierarchy column of an uploaded sheet."""

    key: str
    value: str

    @classmethod
    def of(cls, key: object, value: object) -> "ElementKey":
        return cls(str(key).strip(), str(value).strip())


ChildParentMap = dict[ElementKey, "ElementKey | None"]
ElementCodesMap = dict[ElementKey, str]
CountMap = dict[str, int]


def _pad_sequence(sequence: int) -> str:
    return str(int(sequence)).zfill(2)


def trim_parent_code(parent_code: str, parent_name: str | None = None) -> str:
    """
    Drop the parent's own `_NN_NAME` segment so codes stay rooted at the grandparent.

    With `parent_name` the exact `_NN_<NAME>` suffix is removed, which keeps
    names like "Zone_10_B" intact. Without it the last `_NN_` segment is cut.
    """
    code = parent_code.strip()
    if parent_name:
        suffix = re.escape(str(parent_name).strip().upper())
        exact = re.match(rf"^(?P<prefix>.+)_\d{{2,}}_{suffix}$", code)
        if exact:
            return exact.group("prefix")
    match = _ORDINAL_SUFFIX_RE.match(code)
    if match and match.group("prefix"):
        return match.group("prefix")
    head, sep, _ = code.rpartition("_")
    return head if sep else code


def generate_element_code(
    sequence: int,
    parent_code: str,
    element_name: str,
    *,
    parent_has_parent: bool = False,
    parent_name: str | None = None,
) -> str:
    prefix = trim_parent_code(parent_code, parent_name) if parent_has_parent else parent_code
    code = f"{prefix.upper()}_{_pad_sequence(sequence)}_{str(element_name).upper()}"
    return code.strip()


def fallback_element_code(hierarchy_type: str, element_name: str) -> str:
    # Two names sharing their first two characters get the same code here.
    return f"{hierarchy_type}_".upper() + str(element_name)[:2].upper()


def unique_column_elements(rows: Iterable[Sequence[ElementKey]]) -> list[list[ElementKey]]:
    columns: list[list[ElementKey]] = []
    seen: list[set[ElementKey]] = []
    for row in rows:
        for index, element in enumerate(row):
            if index >= len(columns):
                columns.append([])
                seen.append(set())
            if element not in seen[index]:
                seen[index].add(element)
                columns[index].append(element)
    return columns


def assign_element_codes(
    rows: Sequence[Sequence[ElementKey]],
    child_parent_map: ChildParentMap,
    element_codes: ElementCodesMap,
    count_map: CountMap,
    hierarchy_type: str,
) -> ElementCodesMap:
    """
    Give every element without a code its generated code, column by column.

    Sibling ordinals come from `count_map` (keyed by the parent's code), so the
    result depends on the order rows were discovered in. Elements already in
    `element_codes` are left alone.
    """
    for column in unique_column_elements(rows):
        for element in column:
            if element in element_codes:
                continue

            parent = child_parent_map.get(element)
            parent_code = element_codes.get(parent) if parent is not None else None
            if parent_code is None:
                code = fallback_element_code(hierarchy_type, element.value)
                flow_info(
                    logger,
                    "boundary_code_fallback key=%s value=%s code=%s",
                    element.key,
                    element.value,
                    code,
                    category="boundary_codes",
                )
                element_codes[element] = code
                continue

            count_map[parent_code] = count_map.get(parent_code, 0) + 1
            grandparent = child_parent_map.get(parent)
            code = generate_element_code(
                count_map[parent_code],
                parent_code,
                element.value,
                parent_has_parent=grandparent is not None,
                parent_name=parent.value,
            )
            flow_info(
                logger,
                "boundary_code_generated key=%s value=%s parent=%s code=%s",
                element.key,
                element.value,
                parent_code,
                code,
                category="boundary_codes",
            )
            element_codes[element] = code
    return element_codes
