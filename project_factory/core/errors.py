from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# module -> code -> default message
ERROR_CODES: dict[str, dict[str, str]] = {
    "COMMON": {
        "VALIDATION_ERROR": "Validation error",
        "INTERNAL_SERVER_ERROR": "Internal server error",
        "NOT_FOUND": "Resource not found",
        "UNKNOWN_ERROR": "Unknown error. Check logs",
        "INVALID_PAGINATION": "Invalid pagination",
        "KAFKA_ERROR": "Some error occured in kafka",
    },
    "FILE": {
        "INVALID_SHEETNAME": "Invalid sheet name",
        "INVALID_COLUMNS": "Columns are not matching with the expected columns",
        "INVALID_FILE": "Unable to read the uploaded file",
        "DOWNLOAD_URL_NOT_FOUND": "Not any download url returned for given fileStoreId",
        "UPLOAD_ERROR": "Error while uploading the file",
        "INVALID_FILE_FORMAT": "The uploaded file is not a valid excel file",
    },
    "BOUNDARY": {
        "INTERNAL_SERVER_ERROR": "Boundary service error",
        "BOUNDARY_RELATIONSHIP_CREATE_ERROR": "Error while creating boundary relationship",
        "BOUNDARY_ENTITY_CREATE_ERROR": "Error while creating boundary entities",
        "BOUNDARY_SEARCH_ERROR": "Error while searching boundaries",
        "BOUNDARY_HIERARCHY_NOT_FOUND": "Boundary hierarchy definition not found",
        "BOUNDARY_DATA_NOT_FOUND": "Boundary data not found for the given hierarchy",
    },
    "MDMS": {
        "INVALID_README_CONFIG": "Invalid readme config",
        "MDMS_DATA_NOT_FOUND_ERROR": "Mdms data not found",
        "SCHEMA_NOT_FOUND": "Schema not found in mdms",
    },
    "FACILITY": {
        "FACILITY_SEARCH_FAILED": "Search failed for facility. Check logs",
    },
    "LOCALIZATION": {
        "LOCALIZATION_FETCH_FAILED": "Localization messages could not be fetched",
        "LOCALIZATION_UPSERT_FAILED": "Localization messages could not be upserted",
    },
}


def _capitalize(text: str | None) -> str | None:
    if not text:
        return text
    return text[0].upper() + text[1:]


@dataclass
class ProjectFactoryError(Exception):
    module: str
    code: str
    message: str
    status_code: int = 500
    description: str | None = None
    params: list[Any] = field(default_factory=list)

    def __str__(self) -> str:
        if self.description:
            return f"{self.message}: {self.description}"
        return self.message

    def to_detail(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "description": self.description,
            "params": list(self.params),
        }


def resolve_error(module: str, code: str) -> tuple[str, str]:
    """Return (code, message) from the table; unknown codes map to UNKNOWN_ERROR."""
    message = ERROR_CODES.get(module, {}).get(code)
    if message is None:
        return "UNKNOWN_ERROR", ERROR_CODES["COMMON"]["UNKNOWN_ERROR"]
    return code, message


def build_error(
    module: str = "COMMON",
    status: int = 500,
    code: str = "UNKNOWN_ERROR",
    description: str | None = None,
) -> ProjectFactoryError:
    resolved_code, message = resolve_error(module, code)
    if resolved_code == "UNKNOWN_ERROR":
        status = 500
    return ProjectFactoryError(
        module=module,
        code=resolved_code,
        message=_capitalize(message) or message,
        status_code=status,
        description=_capitalize(description),
    )


def raise_error(
    module: str = "COMMON",
    status: int = 500,
    code: str = "UNKNOWN_ERROR",
    description: str | None = None,
) -> None:
    error = build_error(module, status, code, description)
    logger.error(
        "project_factory_error module=%s code=%s status=%s description=%s",
        module,
        error.code,
        error.status_code,
        error.description,
    )
    raise error


def error_response(
    code: str = "INTERNAL_SERVER_ERROR",
    message: str = "Some Error Occured!!",
    description: str | None = None,
    params: list[Any] | None = None,
) -> dict[str, Any]:
    return {
        "ResponseInfo": None,
        "Errors": [
            {
                "code": code,
                "message": message,
                "description": description,
                "params": list(params or []),
            }
        ],
    }


def error_message(exc: BaseException) -> str:
    """Message stored on failed job records."""
    if isinstance(exc, ProjectFactoryError):
        return str(exc)
    text = str(exc).strip()
    while text.startswith("Error:"):
        text = text[6:].strip()
    return text or exc.__class__.__name__
