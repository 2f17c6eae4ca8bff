import threading
import logging
from typing import Any, Callable, Dict, Optional

from app.config.resource_types import get_immutable_fields, get_number_fields, is_known_resource_type
from app.core.clock import new_id, utc_now
from app.core.exceptions import (
    AlreadyInProgressError, InvalidStateError, NoChangeError, NotFoundError, ValidationError
)
from app.database.inventory_store import InventoryStore
from app.modules.deployments.diff import NOT_SET, compute_diff, merge_config
from app.modules.deployments.job_runner import JobRunner
from app.modules.deployments.schemas import (
    ActionResponse, DeploymentStatusResponse, PlanResponse, ProvisionResponse
)
from app.modules.inventory.models import (
    ChangeRecord, Deployment, DeploymentStatus, InventoryDocument, LifecycleAction
)
from app.modules.terraform.generator import DERIVED_TAGS, build_tags
from app.modules.terraform.workspace import TerraformWorkspace

logger = logging.getLogger(__name__)

JOB_RUNNING = (DeploymentStatus.PROVISIONING, DeploymentStatus.UPDATING)
DECOMMISSION_STARTED = (DeploymentStatus.DECOMMISSIONING, DeploymentStatus.DECOMMISSIONED)


def _run_in_thread(func: Callable, *args, **kwargs) -> None:
    threading.Thread(target=func, args=args, kwargs=kwargs, daemon=True).start()


UNSAFE_SEQUENCES = ('"', "\n", "\r", "${", "%{")


def _check_values(values: Optional[Dict[str, Any]], label: str) -> None:
    """Values end up in generated Terraform; quotes, line breaks and template sequences are refused."""
    for key, value in (values or {}).items():
        items = value if isinstance(value, list) else [value]
        for item in [key, *items]:
            if isinstance(item, str) and any(s in item for s in UNSAFE_SEQUENCES):
                raise ValidationError(f"{label} '{key}' contains characters that are not allowed")


def _check_numbers(resource_type: str, config: Dict[str, Any]) -> None:
    for field in get_number_fields(resource_type) & set(config):
        value = config[field]
        if value is None or value == "":
            continue
        try:
            float(str(value))
        except ValueError:
            raise ValidationError(f"Field '{field}' must be a number")


def _find_or_raise(doc: InventoryDocument, deployment_id: str) -> Deployment:
    resource = doc.find(deployment_id)
    if resource is None:
        raise NotFoundError("Resource not found")
    return resource


class DeploymentService:
    """
    Lifecycle tracker: validates each request against the deployment's status,
    commits the pre-state (status, change history, Terraform workspace) and
    then hands the action to the job runner through `dispatch`.

    `dispatch(func, *args)` must not wait for func; routes pass
    BackgroundTasks.add_task, other callers get a daemon thread.
    """

    def __init__(
        self,
        store: InventoryStore,
        runner: JobRunner,
        workspace: TerraformWorkspace,
        dispatch: Optional[Callable[..., Any]] = None,
        clock: Callable[[], str] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ):
        self.store = store
        self.runner = runner
        self.workspace = workspace
        self.dispatch = dispatch or _run_in_thread
        self.clock = clock
        self.id_factory = id_factory

    def provision(
        self,
        resource_type: Optional[str],
        config: Optional[Dict[str, Any]],
        ticket_number: Optional[str],
        environment: Optional[str] = None,
        tags: Optional[Dict[str, Any]] = None,
        requested_by: Optional[str] = None,
    ) -> ProvisionResponse:
        """Create a deployment in `provisioning` and start the provision job"""
        if not resource_type or not config or not ticket_number:
            raise ValidationError("resourceType, config, and ticketNumber are required")
        if not is_known_resource_type(resource_type):
            raise ValidationError(f"Unknown resource type: {resource_type}")
        _check_values(config, "Field")
        _check_values(tags, "Tag")
        _check_values({"ticketNumber": ticket_number, "environment": environment}, "Field")
        _check_numbers(resource_type, config)

        deployment_id = self.id_factory()
        timestamp = self.clock()
        environment = environment or "dev"
        actor = requested_by or "unknown"

        deployment = Deployment(
            id=deployment_id,
            ticket_number=ticket_number,
            resource_type=resource_type,
            resource_name=config.get("name"),
            environment=environment,
            config=dict(config),
            tags=build_tags(ticket_number, environment, deployment_id, tags, clock=self.clock),
            status=DeploymentStatus.PROVISIONING,
            requested_by=actor,
            created_at=timestamp,
            updated_at=timestamp,
            workspace_dir=self.workspace.path_for(deployment_id),
            change_history=[
                ChangeRecord(
                    action=LifecycleAction.PROVISION,
                    timestamp=timestamp,
                    actor=actor,
                    ticket=ticket_number,
                    changes=dict(config),
                )
            ],
        )
        self.workspace.write(deployment)

        with self.store.transaction() as doc:
            doc.resources.append(deployment)

        logger.info(f"Provisioning {resource_type} deployment {deployment_id} (ticket {ticket_number})")
        self.dispatch(self.runner.run, deployment_id, LifecycleAction.PROVISION, dict(config))
        return ProvisionResponse(
            deployment_id=deployment_id,
            status=DeploymentStatus.PROVISIONING,
            message="Provisioning started",
        )

    def update(
        self,
        deployment_id: str,
        config: Optional[Dict[str, Any]],
        ticket_number: Optional[str] = None,
        tags: Optional[Dict[str, Any]] = None,
        requested_by: Optional[str] = None,
    ) -> ActionResponse:
        """Apply a config change to a deployed resource"""
        _check_values(config, "Field")
        _check_values(tags, "Tag")
        _check_values({"ticketNumber": ticket_number}, "Field")
        with self.store.transaction() as doc:
            resource = _find_or_raise(doc, deployment_id)
            if resource.status != DeploymentStatus.DEPLOYED:
                raise InvalidStateError(f"Cannot update resource in status: {resource.status.value}")

            new_config = merge_config(resource.config, config)
            diff = compute_diff(resource.config, new_config)
            if not diff:
                raise NoChangeError("No changes detected")
            locked = get_immutable_fields(resource.resource_type) & set(diff)
            if locked:
                raise ValidationError(f"Immutable fields cannot be changed: {', '.join(sorted(locked))}")
            _check_numbers(resource.resource_type, new_config)

            now = self.clock()
            ticket = ticket_number or resource.ticket_number
            kept_tags = {k: v for k, v in resource.tags.items() if k not in DERIVED_TAGS}
            resource.config = new_config
            resource.tags = build_tags(
                ticket, resource.environment, resource.id,
                {**kept_tags, **(tags or {})}, clock=self.clock,
            )
            resource.status = DeploymentStatus.UPDATING
            resource.updated_at = now
            resource.change_history.append(
                ChangeRecord(
                    action=LifecycleAction.UPDATE,
                    timestamp=now,
                    actor=requested_by or "unknown",
                    ticket=ticket,
                    diff=diff,
                )
            )
            resource.workspace_dir, _ = self.workspace.write(resource)

        logger.info(f"Updating deployment {deployment_id}: {', '.join(diff)}")
        self.dispatch(self.runner.run, deployment_id, LifecycleAction.UPDATE, diff)
        return ActionResponse(
            id=deployment_id,
            status=DeploymentStatus.UPDATING,
            diff=diff,
            message="Update started",
        )

    def decommission(
        self,
        deployment_id: str,
        ticket_number: Optional[str] = None,
        requested_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ActionResponse:
        """Destroy the resource; the record stays in the inventory as decommissioned"""
        reason = reason or "Manual decommission"
        with self.store.transaction() as doc:
            resource = _find_or_raise(doc, deployment_id)
            if resource.status in DECOMMISSION_STARTED:
                raise AlreadyInProgressError(f"Already {resource.status.value}")
            if resource.status in JOB_RUNNING:
                raise InvalidStateError(f"Cannot decommission resource while {resource.status.value}")

            now = self.clock()
            resource.status = DeploymentStatus.DECOMMISSIONING
            resource.updated_at = now
            resource.change_history.append(
                ChangeRecord(
                    action=LifecycleAction.DECOMMISSION,
                    timestamp=now,
                    actor=requested_by or "unknown",
                    ticket=ticket_number or resource.ticket_number,
                    reason=reason,
                )
            )

        logger.info(f"Decommissioning deployment {deployment_id}: {reason}")
        self.dispatch(self.runner.run, deployment_id, LifecycleAction.DECOMMISSION, {"reason": reason})
        return ActionResponse(
            id=deployment_id,
            status=DeploymentStatus.DECOMMISSIONING,
            message="Decommission started",
        )

    def plan(self, deployment_id: str, proposed_config: Optional[Dict[str, Any]]) -> PlanResponse:
        """Preview the diff an update would apply. No state changes."""
        resource = self.store.get_deployment(deployment_id)
        new_config = merge_config(resource.config, proposed_config)
        return PlanResponse(
            diff=compute_diff(resource.config, new_config, missing=NOT_SET),
            old_config=resource.config,
            new_config=new_config,
        )

    def get_status(self, deployment_id: str) -> DeploymentStatusResponse:
        resource = self.store.get_deployment(deployment_id)
        return DeploymentStatusResponse(
            status=resource.status,
            logs=resource.logs,
            updated_at=resource.updated_at,
            outputs=resource.outputs,
        )
