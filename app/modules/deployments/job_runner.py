import logging
from typing import Any, Callable, Dict, List, Optional

from app.core.clock import utc_now
from app.database.inventory_store import InventoryStore
from app.modules.inventory.models import AuditResult, DeploymentStatus, LifecycleAction

logger = logging.getLogger(__name__)

SUCCESS_STATUS = {
    LifecycleAction.PROVISION: DeploymentStatus.DEPLOYED,
    LifecycleAction.UPDATE: DeploymentStatus.DEPLOYED,
    LifecycleAction.DECOMMISSION: DeploymentStatus.DECOMMISSIONED,
}

FAILURE_STATUS = {
    LifecycleAction.PROVISION: DeploymentStatus.FAILED,
    LifecycleAction.UPDATE: DeploymentStatus.UPDATE_FAILED,
    LifecycleAction.DECOMMISSION: DeploymentStatus.FAILED,
}


class JobRunner:
    """
    Executes one lifecycle action out of band and reflects the outcome into
    the inventory.

    Log lines are timestamped and buffered; every `flush_every` lines (and once
    more at the end) the buffer replaces the deployment's logs wholesale. The
    job owns the terminal status write and the audit entry for its action.
    run() never raises.
    """

    def __init__(
        self,
        store: InventoryStore,
        executor,
        flush_every: int = 3,
        clock: Callable[[], str] = utc_now,
    ):
        self.store = store
        self.executor = executor
        self.flush_every = max(1, flush_every)
        self.clock = clock

    def run(self, deployment_id: str, action: LifecycleAction, changes: Any = None) -> None:
        action = LifecycleAction(action)
        log_buffer: List[str] = []

        def log_callback(line: str):
            if not line or not str(line).strip():
                return
            log_buffer.append(f"[{self.clock()}] {line}")
            if len(log_buffer) % self.flush_every == 0:
                self._flush_logs(deployment_id, log_buffer)

        try:
            log_callback(f"→ Action: {action.value.upper()}")
            deployment = self.store.get_deployment(deployment_id)
            outputs = self.executor.execute(deployment, action, deployment.workspace_dir, log_callback)
        except Exception as e:
            logger.error(f"Deployment {deployment_id} {action.value} failed: {str(e)}")
            log_buffer.append(f"[{self.clock()}] ✗ Error: {str(e)}")
            self._finish(deployment_id, action, changes, log_buffer, AuditResult.FAILURE)
            return

        log_callback(f"✓ {action.value} complete")
        self._finish(deployment_id, action, changes, log_buffer, AuditResult.SUCCESS, outputs)
        logger.info(f"Deployment {deployment_id} {action.value} completed successfully")

    def _flush_logs(self, deployment_id: str, log_buffer: List[str]) -> None:
        try:
            with self.store.transaction() as doc:
                resource = doc.find(deployment_id)
                if resource is not None:
                    resource.logs = list(log_buffer)
        except Exception as e:
            logger.error(f"Error updating logs for {deployment_id}: {str(e)}")

    def _finish(
        self,
        deployment_id: str,
        action: LifecycleAction,
        changes: Any,
        log_buffer: List[str],
        result: AuditResult,
        outputs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Terminal status, final log flush and audit entry in one write."""
        try:
            with self.store.transaction() as doc:
                now = self.clock()
                resource = doc.find(deployment_id)
                if resource is not None:
                    resource.logs = list(log_buffer)
                    resource.updated_at = now
                    if result == AuditResult.SUCCESS:
                        resource.status = SUCCESS_STATUS[action]
                        if action == LifecycleAction.DECOMMISSION:
                            resource.decommissioned_at = now
                        else:
                            resource.outputs = outputs or {}
                        if action == LifecycleAction.UPDATE:
                            resource.last_updated_at = now
                    else:
                        # outputs of the last good apply are kept
                        resource.status = FAILURE_STATUS[action]
                else:
                    logger.warning(f"Deployment {deployment_id} vanished from inventory before {action.value} finished")
                doc.history.insert(
                    0,
                    self.store.new_audit_entry(deployment_id, action, "system", changes, result),
                )
        except Exception:
            logger.exception(f"Failed to record {action.value} result for deployment {deployment_id}")
