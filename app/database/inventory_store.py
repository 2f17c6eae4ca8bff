import threading
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional

from app.config import settings
from app.core.clock import new_id, utc_now
from app.core.exceptions import NotFoundError
from app.database.local_file import LocalFileBackend
from app.database.mirror import build_inventory_mirror
from app.modules.inventory.models import (
    AuditEntry, AuditResult, Deployment, InventoryDocument, LifecycleAction
)

logger = logging.getLogger(__name__)


class InventoryStore:
    """
    Owns the inventory document (deployments + audit history).

    All mutation goes through transaction(), which serializes read-modify-write
    cycles behind one re-entrant lock so a log flush from a job can never
    clobber a concurrent request (and vice versa). Every write lands in the
    local file first and is then mirrored to blob storage when configured.
    """

    def __init__(
        self,
        backend: LocalFileBackend,
        mirror=None,
        clock: Callable[[], str] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ):
        self.backend = backend
        self.mirror = mirror
        self.clock = clock
        self.id_factory = id_factory
        self._lock = threading.RLock()
        self._active: Optional[InventoryDocument] = None
        self._hydrate()

    def _hydrate(self):
        """Seed the local file from the mirror (if any), or create an empty inventory."""
        remote = None
        if self.mirror is not None:
            try:
                remote = self.mirror.load()
            except Exception as e:
                logger.warning(f"Could not load inventory from mirror: {str(e)}")
        if remote:
            InventoryDocument.model_validate_json(remote)
            self.backend.save(remote)
            logger.info("Inventory hydrated from blob mirror")
        elif not self.backend.exists():
            self.backend.save(self._serialize(InventoryDocument()))
            logger.info(f"Created empty inventory at {self.backend.path}")

    @staticmethod
    def _serialize(doc: InventoryDocument) -> bytes:
        return doc.model_dump_json(by_alias=True, indent=2).encode("utf-8")

    def read(self) -> InventoryDocument:
        """Return a private copy of the current document."""
        with self._lock:
            data = self.backend.load()
        if not data:
            return InventoryDocument()
        return InventoryDocument.model_validate_json(data)

    def write(self, doc: InventoryDocument) -> None:
        """Replace the whole document (local file, then mirror)."""
        data = self._serialize(doc)
        with self._lock:
            self.backend.save(data)
            if self.mirror is not None:
                try:
                    self.mirror.save(data)
                except Exception as e:
                    logger.error(f"Inventory mirror upload failed: {str(e)}")

    @contextmanager
    def transaction(self) -> Iterator[InventoryDocument]:
        """
        Serialized read-modify-write. Yields the document; it is written back
        when the block exits without an exception. Nested transactions share
        the outer document and only the outermost one writes.
        """
        with self._lock:
            if self._active is not None:
                yield self._active
                return
            doc = self.read()
            self._active = doc
            try:
                yield doc
            finally:
                self._active = None
            self.write(doc)

    def new_audit_entry(
        self,
        deployment_id: str,
        action: LifecycleAction,
        actor: Optional[str],
        changes: Any,
        result: AuditResult,
    ) -> AuditEntry:
        return AuditEntry(
            id=self.id_factory(),
            deployment_id=deployment_id,
            action=LifecycleAction(action),
            actor=actor or "system",
            changes=changes,
            result=AuditResult(result),
            timestamp=self.clock(),
        )

    def append_audit(
        self,
        deployment_id: str,
        action: LifecycleAction,
        actor: Optional[str],
        changes: Any,
        result: AuditResult,
    ) -> AuditEntry:
        """Insert an audit entry at the head of history (newest first)."""
        entry = self.new_audit_entry(deployment_id, action, actor, changes, result)
        with self.transaction() as doc:
            doc.history.insert(0, entry)
        return entry

    def get_deployment(self, deployment_id: str) -> Deployment:
        deployment = self.read().find(deployment_id)
        if deployment is None:
            raise NotFoundError("Resource not found")
        return deployment

    def list_history(self) -> List[AuditEntry]:
        return self.read().history


class InventoryStoreClient:
    _store: InventoryStore = None

    @classmethod
    def get_store(cls) -> InventoryStore:
        if cls._store is None:
            cls._store = InventoryStore(
                LocalFileBackend(settings.inventory_path),
                mirror=build_inventory_mirror(settings),
            )
        return cls._store

    @classmethod
    def reset_store(cls):
        cls._store = None


def get_inventory_store() -> InventoryStore:
    return InventoryStoreClient.get_store()
