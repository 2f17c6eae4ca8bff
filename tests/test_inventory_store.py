"""
Inventory store: document persistence, serialized transactions, audit log
ordering and the optional blob mirror.
"""

import json
import threading
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import NotFoundError
from app.database.inventory_store import InventoryStore
from app.database.local_file import LocalFileBackend
from app.modules.inventory.models import (
    AuditResult, Deployment, DeploymentStatus, InventoryDocument, LifecycleAction
)


def _deployment(deployment_id: str = "d-1", **overrides) -> Deployment:
    fields = dict(
        id=deployment_id,
        ticket_number="T-1",
        resource_type="vnet",
        resource_name="x",
        config={"name": "x"},
        status=DeploymentStatus.PROVISIONING,
        created_at="2024-05-01T12:00:00.000Z",
        updated_at="2024-05-01T12:00:00.000Z",
    )
    fields.update(overrides)
    return Deployment(**fields)


def test_new_store_creates_empty_inventory(tmp_path):
    path = tmp_path / "nested" / "inventory.json"
    store = InventoryStore(LocalFileBackend(str(path)))

    assert path.exists()
    assert json.loads(path.read_text()) == {"resources": [], "history": []}
    doc = store.read()
    assert doc.resources == [] and doc.history == []


def test_existing_inventory_is_not_overwritten(tmp_path):
    path = tmp_path / "inventory.json"
    first = InventoryStore(LocalFileBackend(str(path)))
    with first.transaction() as doc:
        doc.resources.append(_deployment())

    second = InventoryStore(LocalFileBackend(str(path)))
    assert [r.id for r in second.read().resources] == ["d-1"]


def test_document_is_stored_with_camel_case_fields(store, app_settings):
    with store.transaction() as doc:
        doc.resources.append(_deployment(status=DeploymentStatus.UPDATE_FAILED))

    with open(app_settings.inventory_path) as f:
        raw = json.load(f)
    resource = raw["resources"][0]
    assert resource["ticketNumber"] == "T-1"
    assert resource["resourceType"] == "vnet"
    assert resource["status"] == "update-failed"
    assert resource["changeHistory"] == []
    assert resource["lastUpdatedAt"] is None


def test_read_returns_private_copy(store):
    with store.transaction() as doc:
        doc.resources.append(_deployment())

    copy = store.read()
    copy.resources[0].status = DeploymentStatus.FAILED
    assert store.read().resources[0].status == DeploymentStatus.PROVISIONING


def test_transaction_is_not_written_when_block_raises(store):
    with pytest.raises(RuntimeError):
        with store.transaction() as doc:
            doc.resources.append(_deployment())
            raise RuntimeError("abort")

    assert store.read().resources == []


def test_nested_transactions_share_the_outer_document(store):
    with store.transaction() as outer:
        outer.resources.append(_deployment("d-1"))
        with store.transaction() as inner:
            assert inner is outer
            inner.resources.append(_deployment("d-2"))

    assert [r.id for r in store.read().resources] == ["d-1", "d-2"]


def test_concurrent_transactions_do_not_lose_updates(store):
    with store.transaction() as doc:
        doc.resources.append(_deployment())

    def append_logs(worker: int):
        for i in range(10):
            with store.transaction() as doc:
                doc.find("d-1").logs.append(f"{worker}-{i}")

    threads = [threading.Thread(target=append_logs, args=(w,)) for w in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.get_deployment("d-1").logs) == 50


def test_append_audit_inserts_newest_first(store):
    first = store.append_audit("d-1", LifecycleAction.PROVISION, "alice", {"name": "x"}, AuditResult.SUCCESS)
    second = store.append_audit("d-1", LifecycleAction.UPDATE, None, None, AuditResult.FAILURE)

    history = store.list_history()
    assert [e.id for e in history] == [second.id, first.id]
    assert history[0].actor == "system"
    assert history[0].result == AuditResult.FAILURE
    assert history[1].changes == {"name": "x"}
    assert history[0].timestamp > history[1].timestamp


def test_get_deployment_not_found(store):
    with pytest.raises(NotFoundError) as exc:
        store.get_deployment("missing")
    assert exc.value.message == "Resource not found"
    assert exc.value.status_code == 404


def test_write_mirrors_after_local_save(tmp_path):
    mirror = MagicMock()
    mirror.load.return_value = None
    store = InventoryStore(LocalFileBackend(str(tmp_path / "inventory.json")), mirror=mirror)

    with store.transaction() as doc:
        doc.resources.append(_deployment())

    uploaded = mirror.save.call_args[0][0]
    assert InventoryDocument.model_validate_json(uploaded).resources[0].id == "d-1"


def test_mirror_upload_failure_keeps_local_write(tmp_path):
    mirror = MagicMock()
    mirror.load.return_value = None
    mirror.save.side_effect = ConnectionError("blob unavailable")
    store = InventoryStore(LocalFileBackend(str(tmp_path / "inventory.json")), mirror=mirror)

    with store.transaction() as doc:
        doc.resources.append(_deployment())

    assert store.get_deployment("d-1").id == "d-1"


def test_hydrates_local_file_from_mirror(tmp_path):
    remote = InventoryDocument(resources=[_deployment("remote-1")])
    mirror = MagicMock()
    mirror.load.return_value = remote.model_dump_json(by_alias=True).encode("utf-8")
    path = tmp_path / "inventory.json"

    store = InventoryStore(LocalFileBackend(str(path)), mirror=mirror)

    assert store.get_deployment("remote-1").resource_type == "vnet"
    assert "remote-1" in path.read_text()


def test_mirror_load_failure_falls_back_to_local(tmp_path):
    mirror = MagicMock()
    mirror.load.side_effect = ConnectionError("blob unavailable")

    store = InventoryStore(LocalFileBackend(str(tmp_path / "inventory.json")), mirror=mirror)

    assert store.read().resources == []
