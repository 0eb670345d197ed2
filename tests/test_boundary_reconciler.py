from __future__ import annotations

import pytest

from conftest import FakeRegistry
from project_factory.core.errors import ProjectFactoryError
from project_factory.services.boundary_codes import ElementKey
from project_factory.services.boundary_hierarchy import BoundaryRow
from project_factory.services.boundary_reconciler import (
    BoundaryReconciler,
    ReconcileRequest,
    ReconcileState,
)

HEADER_TYPES = {"ADMIN_PAIS": "Pais", "ADMIN_PROVINCIA": "Provincia", "ADMIN_DISTRITO": "Distrito"}


def _row(*values: str, code: str | None = None) -> BoundaryRow:
    keys = list(HEADER_TYPES)
    return BoundaryRow(
        elements=[ElementKey(keys[index], value) for index, value in enumerate(values)],
        code=code,
    )


def _request(rows: list[BoundaryRow]) -> ReconcileRequest:
    return ReconcileRequest(
        tenant_id="mz",
        hierarchy_type="ADMIN",
        rows=rows,
        boundary_type_by_header=dict(HEADER_TYPES),
        request_info={"apiId": "test"},
        resource_details_id="details-1",
        user_uuid="user-1",
    )


class _SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def test_reconcile_creates_entities_then_relationships_parent_first():
    registry = FakeRegistry()
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())
    rows = [
        _row("Mozambique", code="MZ"),
        _row("Mozambique", "Nampula", "Ribaue"),
        _row("Mozambique", "Nampula", "Lalaua"),
        _row("Mozambique", "Niassa"),
    ]

    result = reconciler.reconcile(_request(rows))

    assert reconciler.state == ReconcileState.COMPLETED
    assert result.created_entities == [
        "MZ",
        "MZ_01_NAMPULA",
        "MZ_02_NIASSA",
        "MZ_01_RIBAUE",
        "MZ_02_LALAUA",
    ]
    created = [item["code"] for item in registry.relationship_creates]
    assert created == result.created_relationships == result.created_entities
    assert registry.relationship_creates[0] == {"code": "MZ", "parent": None, "boundaryType": "Pais"}
    assert registry.relationship_creates[3] == {
        "code": "MZ_01_RIBAUE",
        "parent": "MZ_01_NAMPULA",
        "boundaryType": "Distrito",
    }
    assert result.child_parent_codes["MZ_02_LALAUA"] == "MZ_01_NAMPULA"
    assert result.names_by_code()["MZ_02_NIASSA"] == "Niassa"


def test_reconcile_records_one_activity_per_relationship():
    registry = FakeRegistry()
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())

    result = reconciler.reconcile(_request([_row("Mozambique", "Nampula", code="MZ_01_NAMPULA")]))

    assert len(result.activities) == len(result.created_relationships) == 2
    activity = result.activities[1].to_payload()
    assert activity["url"] == FakeRegistry.relationship_create_url
    assert activity["status"] == 200
    assert activity["resourceDetailsId"] == "details-1"
    assert activity["auditDetails"]["createdBy"] == "user-1"
    assert activity["requestPayload"]["BoundaryRelationship"]["code"] == "MZ_01_NAMPULA"
    assert activity["requestPayload"]["BoundaryRelationship"]["parent"] == "ADMIN_MO"


def test_reconcile_everything_present_is_a_validation_error_without_creates():
    registry = FakeRegistry()
    registry.add_related("MZ", None, "Pais")
    registry.add_related("MZ_01_NAMPULA", "MZ", "Provincia")
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())

    with pytest.raises(ProjectFactoryError) as exc_info:
        reconciler.reconcile(
            _request([_row("Mozambique", code="MZ"), _row("Mozambique", "Nampula", code="MZ_01_NAMPULA")])
        )

    assert exc_info.value.module == "COMMON"
    assert exc_info.value.code == "VALIDATION_ERROR"
    assert exc_info.value.status_code == 400
    assert registry.create_calls == []
    assert registry.relationship_creates == []
    assert reconciler.state == ReconcileState.FAILED


def test_reconcile_fails_when_parent_never_becomes_visible():
    registry = FakeRegistry()
    registry.add_related("MZ", None, "Pais")
    registry.hidden.add("MZ")
    sleep = _SleepRecorder()
    reconciler = BoundaryReconciler(registry, sleep=sleep)

    with pytest.raises(ProjectFactoryError) as exc_info:
        reconciler.reconcile(_request([_row("Mozambique", code="MZ"), _row("Mozambique", "Nampula")]))

    assert exc_info.value.module == "BOUNDARY"
    assert exc_info.value.code == "INTERNAL_SERVER_ERROR"
    assert "MZ" in (exc_info.value.description or "")
    assert registry.relationship_creates == []
    assert registry.relationship_lookups == ["MZ"] * 7
    assert sleep.calls == [1.0] * 6
    # Entity creation is not rolled back.
    assert "MZ_01_NAMPULA" in registry.entities


def test_confirm_parent_returns_once_parent_appears():
    registry = FakeRegistry()
    registry.add_related("MZ", None, "Pais")
    registry.hidden.add("MZ")
    sleep = _SleepRecorder()

    def _reveal(seconds: float) -> None:
        sleep(seconds)
        if len(sleep.calls) == 2:
            registry.hidden.clear()

    reconciler = BoundaryReconciler(registry, sleep=_reveal, retry_interval_seconds=0.5)
    reconciler.confirm_parent("mz", "ADMIN", "MZ")

    assert registry.relationship_lookups == ["MZ", "MZ", "MZ"]
    assert sleep.calls == [0.5, 0.5]


def test_reconcile_chunks_search_and_create_calls():
    registry = FakeRegistry()
    rows = [_row("Mozambique", code="MZ")] + [_row("Mozambique", f"Province {index}") for index in range(45)]
    reconciler = BoundaryReconciler(registry, create_chunk_size=10, sleep=_SleepRecorder())

    result = reconciler.reconcile(_request(rows))

    assert [len(chunk) for chunk in registry.search_calls] == [20, 20, 6]
    assert [len(chunk) for chunk in registry.create_calls] == [10, 10, 10, 10, 6]
    assert len(result.created_relationships) == 46


def test_reconcile_default_create_chunk_is_larger_than_search_chunk():
    registry = FakeRegistry()
    rows = [_row("Mozambique", code="MZ")] + [_row("Mozambique", f"Province {index}") for index in range(45)]

    BoundaryReconciler(registry, sleep=_SleepRecorder()).reconcile(_request(rows))

    assert len(registry.search_calls) == 3
    assert len(registry.create_calls) == 1


def test_reconcile_stops_at_first_relationship_failure():
    registry = FakeRegistry()
    registry.fail_relationship_for.add("MZ_01_NAMPULA")
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())

    with pytest.raises(RuntimeError):
        reconciler.reconcile(
            _request([_row("Mozambique", "Nampula", code="MZ_01_NAMPULA"), _row("Mozambique", "Niassa")])
        )

    assert [item["code"] for item in registry.relationship_creates] == ["ADMIN_MO"]
    assert reconciler.state == ReconcileState.FAILED


def test_reconcile_wraps_entity_creation_failures():
    class BrokenRegistry(FakeRegistry):
        def create_boundaries(self, tenant_id, boundaries):
            raise RuntimeError("registry down")

    registry = BrokenRegistry()
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())

    with pytest.raises(ProjectFactoryError) as exc_info:
        reconciler.reconcile(_request([_row("Mozambique", code="MZ")]))

    assert exc_info.value.module == "COMMON"
    assert exc_info.value.code == "INTERNAL_SERVER_ERROR"
    assert registry.relationship_creates == []


def test_reconcile_rejects_two_elements_sharing_a_generated_code():
    registry = FakeRegistry()
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())

    with pytest.raises(ProjectFactoryError) as exc_info:
        reconciler.reconcile(_request([_row("Mozambique", code="MZ"), _row("Mozambique", "Nampula", "Nampula")]))

    assert exc_info.value.module == "COMMON"
    assert exc_info.value.code == "VALIDATION_ERROR"
    assert exc_info.value.status_code == 400
    description = exc_info.value.description or ""
    assert "MZ_01_NAMPULA" in description
    assert "ADMIN_PROVINCIA" in description and "ADMIN_DISTRITO" in description
    assert registry.search_calls == []
    assert registry.create_calls == []
    assert registry.relationship_creates == []
    assert reconciler.state == ReconcileState.FAILED


def test_reconcile_same_named_cousins_become_one_boundary():
    registry = FakeRegistry()
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())
    rows = [
        _row("Mozambique", code="MZ"),
        _row("Mozambique", "Nampula", "Centro"),
        _row("Mozambique", "Niassa", "Centro"),
    ]

    reconciler.reconcile(_request(rows))

    assert registry.relationship_creates == [
        {"code": "MZ", "parent": None, "boundaryType": "Pais"},
        {"code": "MZ_01_NAMPULA", "parent": "MZ", "boundaryType": "Provincia"},
        {"code": "MZ_02_NIASSA", "parent": "MZ", "boundaryType": "Provincia"},
        {"code": "MZ_01_CENTRO", "parent": "MZ_01_NAMPULA", "boundaryType": "Distrito"},
    ]


def test_reconcile_mixes_existing_codes_with_new_boundaries():
    registry = FakeRegistry()
    registry.add_related("MZ", None, "Pais")
    registry.add_related("MZ_01_NAMPULA", "MZ", "Provincia")
    registry.add_related("MZ_01_RIBAUE", "MZ_01_NAMPULA", "Distrito")
    reconciler = BoundaryReconciler(registry, sleep=_SleepRecorder())
    rows = [
        _row("Mozambique", code="MZ"),
        _row("Mozambique", "Nampula", code="MZ_01_NAMPULA"),
        _row("Mozambique", "Niassa"),
        _row("Mozambique", "Nampula", "Ribaue", code="MZ_01_RIBAUE"),
        _row("Mozambique", "Nampula", "Lalaua"),
        _row("Mozambique", "Niassa", "Lichinga"),
    ]

    result = reconciler.reconcile(_request(rows))

    assert registry.search_calls == [
        ["MZ", "MZ_01_NAMPULA", "MZ_01_NIASSA", "MZ_01_RIBAUE", "MZ_01_LALAUA", "MZ_01_LICHINGA"]
    ]
    assert result.created_entities == ["MZ_01_NIASSA", "MZ_01_LALAUA", "MZ_01_LICHINGA"]
    assert registry.relationship_creates == [
        {"code": "MZ_01_NIASSA", "parent": "MZ", "boundaryType": "Provincia"},
        {"code": "MZ_01_LALAUA", "parent": "MZ_01_NAMPULA", "boundaryType": "Distrito"},
        {"code": "MZ_01_LICHINGA", "parent": "MZ_01_NIASSA", "boundaryType": "Distrito"},
    ]
    assert registry.relationship_lookups == ["MZ", "MZ_01_NAMPULA", "MZ_01_NIASSA"]
    assert result.count_map == {"MZ": 1, "MZ_01_NAMPULA": 1, "MZ_01_NIASSA": 1}
