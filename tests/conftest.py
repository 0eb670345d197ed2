from __future__ import annotations

import os
import sys
from io import BytesIO
from typing import Any

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from project_factory.db.base import Base
from project_factory.db.session import get_db
from project_factory.main import create_app
from project_factory.services.clients import AppServices

# Ensure all models are registered with SQLAlchemy metadata
import project_factory.models  # noqa: F401


HIERARCHY_DEFINITION = [
    {"boundaryType": "Pais", "parentBoundaryType": None},
    {"boundaryType": "Provincia", "parentBoundaryType": "Pais"},
    {"boundaryType": "Distrito", "parentBoundaryType": "Provincia"},
]


class FakeRegistry:
    """In-memory boundary registry recording every call."""

    relationship_create_url = "http://registry.test/boundary-relationships/_create"

    def __init__(self, hierarchy: list[dict[str, Any]] | None = None) -> None:
        self.hierarchy = list(HIERARCHY_DEFINITION if hierarchy is None else hierarchy)
        self.entities: set[str] = set()
        # code -> (parent code, boundary type), in insertion order
        self.related: dict[str, tuple[str | None, str]] = {}
        # codes that never show up in single-code relationship lookups
        self.hidden: set[str] = set()
        self.fail_relationship_for: set[str] = set()
        self.search_calls: list[list[str]] = []
        self.create_calls: list[list[dict[str, Any]]] = []
        self.relationship_lookups: list[str] = []
        self.relationship_creates: list[dict[str, Any]] = []

    def add_related(self, code: str, parent: str | None, boundary_type: str) -> None:
        self.entities.add(code)
        self.related[code] = (parent, boundary_type)

    def _node(self, code: str) -> dict[str, Any]:
        return {
            "code": code,
            "boundaryType": self.related[code][1],
            "children": [
                self._node(child) for child, (parent, _type) in self.related.items() if parent == code
            ],
        }

    def search_boundaries(self, tenant_id, codes):
        self.search_calls.append(list(codes))
        return [{"code": code, "tenantId": tenant_id} for code in codes if code in self.entities]

    def create_boundaries(self, tenant_id, boundaries):
        self.create_calls.append(list(boundaries))
        self.entities.update(item["code"] for item in boundaries)
        return {"Boundary": list(boundaries)}

    def search_boundary_relationships(self, tenant_id, hierarchy_type, codes=None, *, include_children=True):
        if codes is None:
            roots = [code for code, (parent, _type) in self.related.items() if parent is None]
            return {"TenantBoundary": [{"boundary": [self._node(code) for code in roots]}]}
        self.relationship_lookups.append(codes)
        if codes in self.related and codes not in self.hidden:
            return {
                "TenantBoundary": [
                    {"boundary": [{"code": codes, "boundaryType": self.related[codes][1], "children": []}]}
                ]
            }
        return {"TenantBoundary": []}

    def create_boundary_relationship(self, tenant_id, hierarchy_type, code, parent_code, boundary_type):
        if code in self.fail_relationship_for:
            raise RuntimeError(f"registry rejected {code}")
        self.relationship_creates.append(
            {"code": code, "parent": parent_code, "boundaryType": boundary_type}
        )
        self.related[code] = (parent_code, boundary_type)
        return {
            "TenantBoundary": [
                {"boundary": [{"code": code, "boundaryType": boundary_type, "children": []}]}
            ]
        }

    def search_hierarchy_definition(self, tenant_id, hierarchy_type):
        return list(self.hierarchy)


class FakeFileStore:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    def put(self, filestore_id: str, content: bytes) -> str:
        self.files[filestore_id] = content
        return filestore_id

    def upload(self, content, tenant_id, filename="template.xlsx"):
        return self.put(f"fs-{len(self.files) + 1}", content)

    def resolve_url(self, tenant_id, filestore_id):
        return f"memory://{filestore_id}"

    def download(self, url):
        return self.files[url.split("://", 1)[1]]


class FakeMdms:
    readme_config = {
        "texts": [
            {
                "header": "How to fill the sheet",
                "descriptions": [
                    {"text": "Open the data tab.", "isStepRequired": True},
                    {"text": "Do not rename columns.", "isStepRequired": False},
                    {"text": "Upload the file.", "isStepRequired": True},
                ],
            }
        ]
    }
    required_columns = {
        "facility": [
            "HCM_ADMIN_CONSOLE_FACILITY_NAME",
            "HCM_ADMIN_CONSOLE_FACILITY_TYPE",
            "HCM_ADMIN_CONSOLE_FACILITY_STATUS",
            "HCM_ADMIN_CONSOLE_FACILITY_CAPACITY",
            "HCM_ADMIN_CONSOLE_BOUNDARY_CODE_MANDATORY",
        ],
        "user": ["HCM_ADMIN_CONSOLE_USER_NAME", "HCM_ADMIN_CONSOLE_USER_PHONE_NUMBER"],
    }

    def get_readme_config(self, tenant_id, resource_type):
        return self.readme_config

    def get_required_columns(self, tenant_id, schema_code):
        return list(self.required_columns[schema_code])


class FakeFacility:
    def __init__(self) -> None:
        self.facilities = [
            {"id": "F-1", "name": "Warehouse A", "usage": "Storage", "isPermanent": True, "storageCapacity": 100},
            {"id": "F-2", "name": "Clinic B", "usage": "Health", "isPermanent": False, "storageCapacity": 20},
        ]

    def search_all(self, tenant_id):
        return list(self.facilities)


class FakeLocalization:
    def __init__(self) -> None:
        self.messages: dict[str, str] = {}
        self.upserts: list[dict[str, Any]] = []

    def localization_map(self, tenant_id, locale, hierarchy_type=None):
        return dict(self.messages)

    def upsert_boundary_names(self, tenant_id, hierarchy_type, locale, names_by_code):
        self.upserts.append(
            {"tenantId": tenant_id, "hierarchyType": hierarchy_type, "locale": locale, "names": dict(names_by_code)}
        )


class FakeClients:
    def __init__(self) -> None:
        self.registry_client = FakeRegistry()
        self.filestore_client = FakeFileStore()
        self.mdms_client = FakeMdms()
        self.facility_client = FakeFacility()
        self.localization_client = FakeLocalization()

    def registry(self, request_info):
        return self.registry_client

    def filestore(self):
        return self.filestore_client

    def mdms(self, request_info):
        return self.mdms_client

    def facility(self, request_info):
        return self.facility_client

    def localization(self, request_info):
        return self.localization_client


class RecordingEventBus:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def publish(self, topic, key, payload):
        self.events.append((topic, key, payload))

    def topics(self) -> list[str]:
        return [topic for topic, _key, _payload in self.events]


class ImmediateExecutor:
    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, task, *args, **kwargs):
        self.submitted += 1
        task(*args, **kwargs)


def xlsx_bytes(sheets: dict[str, list[list[Any]]]) -> bytes:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for name, rows in sheets.items():
        sheet = workbook.create_sheet(name)
        for row in rows:
            sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db_session(engine):
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_clients():
    return FakeClients()


@pytest.fixture
def event_bus():
    return RecordingEventBus()


@pytest.fixture
def services(engine, fake_clients, event_bus):
    return AppServices(
        clients=fake_clients,
        event_bus=event_bus,
        session_factory=sessionmaker(autocommit=False, autoflush=False, bind=engine),
        sleep=lambda _seconds: None,
    )


@pytest.fixture(scope="function")
def client(engine, db_session, services):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    fastapi_app = create_app(services)

    def _override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()
