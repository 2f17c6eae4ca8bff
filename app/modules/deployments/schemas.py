from typing import Any, Dict, List, Optional

from app.modules.inventory.models import CamelModel, DeploymentStatus


class ProvisionRequest(CamelModel):
    resource_type: Optional[str] = None
    config: Optional[Dict[str, Any]] = None
    ticket_number: Optional[str] = None
    environment: Optional[str] = None
    tags: Optional[Dict[str, Any]] = None
    requested_by: Optional[str] = None


class UpdateRequest(CamelModel):
    config: Optional[Dict[str, Any]] = None
    ticket_number: Optional[str] = None
    tags: Optional[Dict[str, Any]] = None
    requested_by: Optional[str] = None


class DecommissionRequest(CamelModel):
    ticket_number: Optional[str] = None
    requested_by: Optional[str] = None
    reason: Optional[str] = None


class PlanRequest(CamelModel):
    config: Optional[Dict[str, Any]] = None


class ProvisionResponse(CamelModel):
    deployment_id: str
    status: DeploymentStatus
    message: str


class ActionResponse(CamelModel):
    id: str
    status: DeploymentStatus
    message: str
    diff: Optional[Dict[str, Dict[str, Any]]] = None


class PlanResponse(CamelModel):
    diff: Dict[str, Dict[str, Any]]
    old_config: Dict[str, Any]
    new_config: Dict[str, Any]


class DeploymentStatusResponse(CamelModel):
    status: DeploymentStatus
    logs: List[str]
    updated_at: Optional[str] = None
    outputs: Dict[str, Any]
