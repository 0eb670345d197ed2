from __future__ import annotations

from typing import Any

import pytest
import requests

from project_factory.core.cache import TTLCache
from project_factory.core.errors import ProjectFactoryError
from project_factory.services.boundary_registry_client import BoundaryRegistryClient
from project_factory.services.filestore_client import FileStoreClient
from project_factory.services.localization_service import LocalizationService, boundary_localization_module
from project_factory.services.mdms_client import MdmsClient


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, content: bytes = b"") -> None:
        self._payload = payload
        self.status_code = status_code
        self.content = content
        self.text = "" if payload is None else str(payload)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses: list[FakeResponse]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def request(self, method, url, *, params=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "json": json})
        return self._responses.pop(0)

    def post(self, url, **kwargs):
        self.calls.append({"method": "POST", "url": url, **kwargs})
        return self._responses.pop(0)

    def get(self, url, **kwargs):
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self._responses.pop(0)


def test_registry_search_joins_codes_and_drops_empty_params():
    session = FakeSession(
        [
            FakeResponse({"Boundary": [{"code": "MZ"}]}),
            FakeResponse({"TenantBoundary": []}),
        ]
    )
    client = BoundaryRegistryClient(base_url="http://registry.test", session=session, request_info={"apiId": "x"})

    assert client.search_boundaries("mz", ["MZ", "MZ_01_NAMPULA"]) == [{"code": "MZ"}]
    client.search_boundary_relationships("mz", "ADMIN", "MZ", include_children=False)

    assert session.calls[0]["params"] == {"tenantId": "mz", "codes": "MZ, MZ_01_NAMPULA"}
    assert session.calls[0]["json"] == {"RequestInfo": {"apiId": "x"}}
    assert session.calls[1]["params"] == {"tenantId": "mz", "hierarchyType": "ADMIN", "codes": "MZ"}
    assert client.relationship_create_url.startswith("http://registry.test/")


def test_registry_hierarchy_definition_unwraps_first_hierarchy():
    session = FakeSession(
        [FakeResponse({"BoundaryHierarchy": [{"boundaryHierarchy": [{"boundaryType": "Pais"}]}]})]
    )
    client = BoundaryRegistryClient(base_url="http://registry.test", session=session)

    assert client.search_hierarchy_definition("mz", "ADMIN") == [{"boundaryType": "Pais"}]


def test_registry_http_errors_propagate():
    session = FakeSession([FakeResponse({"Errors": []}, status_code=500)])
    client = BoundaryRegistryClient(base_url="http://registry.test", session=session)

    with pytest.raises(requests.HTTPError):
        client.create_boundary_relationship("mz", "ADMIN", "MZ", None, "Pais")


def test_localization_messages_are_cached_until_upsert():
    session = FakeSession(
        [
            FakeResponse({"messages": [{"code": "MZ", "message": "Mozambique"}]}),
            FakeResponse({"messages": []}),
            FakeResponse({"messages": [{"code": "MZ", "message": "Moçambique"}]}),
        ]
    )
    cache = TTLCache(60)
    service = LocalizationService(cache, base_url="http://localization.test", session=session)
    module = boundary_localization_module("ADMIN")

    assert service.fetch_messages("mz", "pt_MZ", module) == {"MZ": "Mozambique"}
    assert service.fetch_messages("mz", "pt_MZ", module) == {"MZ": "Mozambique"}
    assert len(session.calls) == 1

    service.upsert_boundary_names("mz", "ADMIN", "pt_MZ", {"MZ": "Moçambique"})
    upsert = session.calls[1]["json"]
    assert upsert["messages"] == [{"code": "MZ", "message": "Moçambique", "module": module, "locale": "pt_MZ"}]

    assert service.fetch_messages("mz", "pt_MZ", module) == {"MZ": "Moçambique"}
    assert len(session.calls) == 3


def test_localization_fetch_failure_is_a_domain_error():
    session = FakeSession([FakeResponse(None)])
    service = LocalizationService(TTLCache(60), base_url="http://localization.test", session=session)

    with pytest.raises(ProjectFactoryError) as exc_info:
        service.fetch_messages("mz", "pt_MZ", "rainmaker-boundary-admin")
    assert exc_info.value.code == "LOCALIZATION_FETCH_FAILED"


def test_mdms_readme_config_selects_type():
    configs = [{"type": "user", "texts": []}, {"type": "facilityWithBoundary", "texts": [{"header": "H"}]}]
    session = FakeSession(
        [
            FakeResponse({"MdmsRes": {"HCM-ADMIN-CONSOLE": {"ReadMeConfig": configs}}}),
            FakeResponse({"MdmsRes": {"HCM-ADMIN-CONSOLE": {"ReadMeConfig": configs}}}),
        ]
    )
    client = MdmsClient(base_url="http://mdms.test", session=session)

    assert client.get_readme_config("mz", "facilityWithBoundary")["texts"] == [{"header": "H"}]
    with pytest.raises(ProjectFactoryError) as exc_info:
        client.get_readme_config("mz", "boundary")
    assert exc_info.value.code == "INVALID_README_CONFIG"


def test_filestore_upload_and_resolve_errors():
    session = FakeSession(
        [
            FakeResponse({"files": [{"fileStoreId": "fs-9"}]}),
            FakeResponse({"files": []}),
            FakeResponse({"fileStoreIds": []}),
        ]
    )
    client = FileStoreClient(base_url="http://filestore.test", session=session)

    assert client.upload(b"xlsx", "mz", "boundary.xlsx") == "fs-9"
    assert session.calls[0]["data"]["tenantId"] == "mz"
    with pytest.raises(ProjectFactoryError) as upload_error:
        client.upload(b"xlsx", "mz")
    assert upload_error.value.code == "UPLOAD_ERROR"
    with pytest.raises(ProjectFactoryError) as url_error:
        client.resolve_url("mz", "fs-missing")
    assert url_error.value.code == "DOWNLOAD_URL_NOT_FOUND"
