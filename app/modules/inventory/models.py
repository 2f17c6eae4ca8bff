# Inventory document: inventory.json (local file, optionally mirrored to blob storage)
# Fields are snake_case in Python and camelCase on disk / over the API.

"""
Expected document structure:
- resources: list of deployments
    - id: uuid
    - ticketNumber, resourceType (vm | storage | aks | sql | keyvault | vnet), resourceName, environment
    - config: object - form values, immutable fields per resource type
    - tags: object - ticket, environment, managed_by, deployment_id, created_at + custom tags
    - status: provisioning | deployed | updating | update-failed | decommissioning | decommissioned | failed
    - requestedBy, workspaceDir
    - outputs: object - terraform outputs of the last successful apply
    - logs: string[] - "[<iso timestamp>] <line>", replaced wholesale on every flush
    - changeHistory: {action, timestamp, actor, ticket, changes | diff | reason}[]
    - createdAt, updatedAt, lastUpdatedAt (nullable), decommissionedAt (nullable)
- history: audit entries, newest first
    - id, deploymentId, action, actor, changes, result (success | failure), timestamp
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeploymentStatus(str, Enum):
    PROVISIONING = "provisioning"
    DEPLOYED = "deployed"
    UPDATING = "updating"
    UPDATE_FAILED = "update-failed"
    DECOMMISSIONING = "decommissioning"
    DECOMMISSIONED = "decommissioned"
    FAILED = "failed"


class LifecycleAction(str, Enum):
    PROVISION = "provision"
    UPDATE = "update"
    DECOMMISSION = "decommission"


class AuditResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ChangeRecord(CamelModel):
    action: LifecycleAction
    timestamp: str
    actor: str
    ticket: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None
    diff: Optional[Dict[str, Dict[str, Any]]] = None
    reason: Optional[str] = None


class Deployment(CamelModel):
    id: str
    ticket_number: str
    resource_type: str
    resource_name: Optional[str] = None
    environment: str = "dev"
    config: Dict[str, Any] = Field(default_factory=dict)
    tags: Dict[str, Any] = Field(default_factory=dict)
    status: DeploymentStatus
    requested_by: str = "unknown"
    created_at: str
    updated_at: str
    last_updated_at: Optional[str] = None
    decommissioned_at: Optional[str] = None
    workspace_dir: Optional[str] = None
    outputs: Dict[str, Any] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    change_history: List[ChangeRecord] = Field(default_factory=list)


class AuditEntry(CamelModel):
    id: str
    deployment_id: str
    action: LifecycleAction
    actor: str = "system"
    changes: Optional[Any] = None
    result: AuditResult
    timestamp: str


class InventoryDocument(CamelModel):
    resources: List[Deployment] = Field(default_factory=list)
    history: List[AuditEntry] = Field(default_factory=list)

    def find(self, deployment_id: str) -> Optional[Deployment]:
        return next((r for r in self.resources if r.id == deployment_id), None)
