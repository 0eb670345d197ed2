from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Mapping, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from project_factory.core.errors import raise_error
from project_factory.services.localization_service import get_localized_name

logger = logging.getLogger(__name__)

ROW_NUMBER_KEY = "!row#number!"
SHEET_NAME_KEY = "!sheet#name!"

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")
_INVALID_TAB_CHARS_RE = re.compile(r"[\[\]:*?/\\]")
_MAX_TAB_NAME = 31
_README_WRAP_AT = 100
_README_WIDTH = 130
_HEADER_FONT = Font(bold=True)


@dataclass
class SheetData:
    name: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)

    def records(self) -> list[dict[str, Any]]:
        return [dict(zip(self.headers, row)) for row in self.rows]


def coerce_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return ""
        if _NUMERIC_RE.match(text):
            return float(text) if "." in text else int(text)
        return value
    return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _open_workbook(content: bytes):
    try:
        return load_workbook(BytesIO(content), data_only=True)
    except (zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        logger.error("workbook_open_failed bytes=%s error=%s", len(content), exc)
        raise_error("FILE", 400, "INVALID_FILE_FORMAT", str(exc))


def _parse_logic(parse_config: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    if not parse_config:
        return []
    config = parse_config.get("parseArrayConfig", parse_config)
    return list(config.get("parseLogic") or [])


def _validate_columns(ws, parse_config, localization_map) -> None:
    for column_config in _parse_logic(parse_config):
        sheet_column = column_config.get("sheetColumn")
        expected = get_localized_name(column_config.get("sheetColumnName"), localization_map)
        if not sheet_column or not expected:
            continue
        actual = ws[f"{sheet_column}1"].value
        if actual != expected:
            raise_error(
                "FILE",
                400,
                "INVALID_COLUMNS",
                f"Invalid format: Expected '{expected}' in the first row of column {sheet_column}.",
            )


def _rows_from_worksheet(
    ws,
    *,
    with_row_number: bool,
    sheet_name: str | None = None,
) -> list[dict[str, Any]]:
    raw_rows = list(ws.iter_rows(values_only=True))
    if not raw_rows:
        return []

    headers = ["" if cell is None else str(cell).strip() for cell in raw_rows[0]]
    records: list[dict[str, Any]] = []
    for index, values in enumerate(raw_rows[1:], start=1):
        if all(_is_blank(value) for value in values):
            continue
        record: dict[str, Any] = {}
        for position, header in enumerate(headers):
            if not header:
                continue
            value = values[position] if position < len(values) else None
            record[header] = coerce_cell(value)
        if not any(value != "" for value in record.values()):
            continue
        if with_row_number:
            record[ROW_NUMBER_KEY] = index
        if sheet_name is not None:
            record[SHEET_NAME_KEY] = sheet_name
        records.append(record)
    return records


def parse_sheet(
    content: bytes,
    sheet_name: str,
    *,
    with_row_number: bool = False,
    parse_config: Mapping[str, Any] | None = None,
    localization_map: Mapping[str, str] | None = None,
) -> list[dict[str, Any]]:
    """
    Read one tab into records keyed by its header row.

    Numeric-looking strings become numbers and blank cells become "".
    Rows with no value at all are dropped.
    """
    localized_name = get_localized_name(sheet_name, localization_map)
    workbook = _open_workbook(content)
    if localized_name not in workbook.sheetnames:
        raise_error(
            "FILE",
            400,
            "INVALID_SHEETNAME",
            f'Sheet with name "{localized_name}" is not present in the file.',
        )
    ws = workbook[localized_name]
    _validate_columns(ws, parse_config, localization_map)
    records = _rows_from_worksheet(ws, with_row_number=with_row_number)
    logger.info("sheet_parsed sheet=%s rows=%s", localized_name, len(records))
    return records


def parse_target_workbook(
    content: bytes,
    *,
    with_row_number: bool = True,
    with_sheet_name: bool = True,
    localization_map: Mapping[str, str] | None = None,
) -> dict[str, list[dict[str, Any]]]:
    """Parse every tab after the first (the cover sheet) into {tab name: records}."""
    workbook = _open_workbook(content)
    data_tabs = workbook.sheetnames[1:]
    if not data_tabs:
        expected = get_localized_name("HCM_ADMIN_CONSOLE_BOUNDARY_DATA", localization_map)
        raise_error("FILE", 400, "INVALID_SHEETNAME", f'Sheet with name "{expected}" is not present in the file.')

    result: dict[str, list[dict[str, Any]]] = {}
    for tab in data_tabs:
        result[tab] = _rows_from_worksheet(
            workbook[tab],
            with_row_number=with_row_number,
            sheet_name=tab if with_sheet_name else None,
        )
    logger.info("target_workbook_parsed tabs=%s", len(result))
    return result


def sanitize_tab_name(name: str, taken: set[str] | None = None) -> str:
    base = _INVALID_TAB_CHARS_RE.sub("_", str(name)).strip().strip("'") or "Sheet"
    candidate = base[:_MAX_TAB_NAME]
    if taken is None:
        return candidate
    suffix = 1
    while candidate.lower() in {existing.lower() for existing in taken}:
        tail = f"_{suffix}"
        candidate = base[: _MAX_TAB_NAME - len(tail)] + tail
        suffix += 1
    taken.add(candidate)
    return candidate


def create_sheet_data(headers: Sequence[str], rows: Sequence[Sequence[Any]], sheet_name: str) -> SheetData:
    return SheetData(name=sheet_name, headers=list(headers), rows=[list(row) for row in rows])


def _write_tab(ws, sheet: SheetData) -> None:
    ws.append(sheet.headers)
    ws.freeze_panes = "A2"
    for row in sheet.rows:
        ws.append(list(row))

    widths = [len(str(header)) for header in sheet.headers]
    for row in sheet.rows:
        for index, value in enumerate(row):
            if index >= len(widths):
                widths.append(0)
            widths[index] = max(widths[index], len("" if value is None else str(value)))
    for index, width in enumerate(widths, start=1):
        ws.cell(row=1, column=index).font = _HEADER_FONT
        ws.column_dimensions[get_column_letter(index)].width = max(14, min(60, width + 5))


def wrap_readme_text(text: str, limit: int = _README_WRAP_AT) -> str:
    remaining = text
    lines: list[str] = []
    while len(remaining) > limit:
        break_at = remaining.rfind(" ", 0, limit + 1)
        if break_at <= 0:
            break_at = limit
        lines.append(remaining[:break_at])
        remaining = remaining[break_at:].strip()
    lines.append(remaining)
    return "\n".join(lines)


def readme_lines(
    readme_config: Mapping[str, Any],
    localization_map: Mapping[str, str] | None = None,
) -> list[str]:
    lines: list[str] = []
    for text in readme_config.get("texts") or []:
        lines.append(get_localized_name(text.get("header"), localization_map))
        step = 1
        for description in text.get("descriptions") or []:
            body = wrap_readme_text(get_localized_name(description.get("text"), localization_map))
            if description.get("isStepRequired"):
                body = f"Step {step}: {body}"
                step += 1
            lines.append(body)
        lines.extend(["", "", "", ""])
    return lines


def append_readme_sheet(
    workbook: Workbook,
    heading: str,
    readme_config: Mapping[str, Any],
    localization_map: Mapping[str, str] | None = None,
    *,
    sheet_name: str = "HCM_README_SHEETNAME",
) -> None:
    title = sanitize_tab_name(get_localized_name(sheet_name, localization_map), set(workbook.sheetnames))
    ws = workbook.create_sheet(title)
    ws.append([heading])
    ws.append([""])
    ws.append([""])
    for line in readme_lines(readme_config, localization_map):
        ws.append([line])
    ws["A1"].font = _HEADER_FONT
    for cell in ws["A"]:
        cell.alignment = Alignment(wrap_text=True, vertical="top")
    ws.column_dimensions["A"].width = _README_WIDTH


def build_workbook(
    sheets: Sequence[SheetData],
    *,
    readme: tuple[str, Mapping[str, Any]] | None = None,
    localization_map: Mapping[str, str] | None = None,
    readme_sheet_name: str = "HCM_README_SHEETNAME",
) -> bytes:
    """Render tabs (readme first when given) and return the xlsx bytes."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    if readme is not None:
        heading, readme_config = readme
        append_readme_sheet(
            workbook,
            heading,
            readme_config,
            localization_map,
            sheet_name=readme_sheet_name,
        )

    taken = set(workbook.sheetnames)
    for sheet in sheets:
        ws = workbook.create_sheet(sanitize_tab_name(sheet.name, taken))
        _write_tab(ws, sheet)

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def should_split(records: Sequence[Mapping[str, Any]], split_column: str, threshold: int) -> bool:
    if not any(split_column in record for record in records):
        return False
    populated = sum(1 for record in records if not _is_blank(record.get(split_column)))
    return populated >= threshold


def split_boundary_sheet(
    sheet: SheetData,
    split_column: str,
    code_column: str,
) -> list[SheetData]:
    """
    Main tab with every row, followed by one tab per distinct split value.

    Split tabs keep the columns up to and including `split_column`, plus the
    code column. A split value is told apart by its ancestors, so two
    districts sharing a name under different provinces get separate tabs
    (the second one suffixed).
    """
    if split_column not in sheet.headers or code_column not in sheet.headers:
        return [sheet]

    split_index = sheet.headers.index(split_column)
    code_index = sheet.headers.index(code_column)
    kept = list(range(split_index + 1))
    if code_index not in kept:
        kept.append(code_index)
    truncated_headers = [sheet.headers[index] for index in kept]

    # path up to the split column -> rows
    tabs: dict[tuple[str, ...], list[list[Any]]] = {}
    for row in sheet.rows:
        value = row[split_index] if split_index < len(row) else None
        if _is_blank(value):
            continue
        path = tuple(
            "" if _is_blank(row[index]) else str(row[index]).strip()
            for index in range(split_index + 1)
        )
        tabs.setdefault(path, []).append(
            [row[index] if index < len(row) else "" for index in kept]
        )

    taken = {sheet.name}
    result = [sheet]
    for path, rows in tabs.items():
        result.append(SheetData(name=sanitize_tab_name(path[-1], taken), headers=truncated_headers, rows=rows))
    logger.info("boundary_sheet_split column=%s tabs=%s", split_column, len(tabs))
    return result
