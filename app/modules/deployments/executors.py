"""
Executors run a lifecycle action for a deployment and report progress through
a log callback. They return the Terraform outputs (name -> value) and raise
ExecutionError when the action fails; the job runner turns that into status.
"""
import os
import random
import time
import logging
from typing import Any, Callable, Dict, Optional

import requests

from app.config import Settings
from app.core.exceptions import ExecutionError
from app.database.mirror import build_blob_storage
from app.modules.deployments.terraform_deployer import TerraformCliExecutor
from app.modules.inventory.models import Deployment, LifecycleAction
from app.modules.terraform.generator import storage_account_name
from app.modules.terraform.workspace import WORKSPACE_FILES

logger = logging.getLogger(__name__)

DEMO_SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"

DEMO_STEPS = {
    LifecycleAction.PROVISION: [
        "Initializing provider plugins...",
        "Terraform initialized",
        "Configuration valid",
        "Plan: 1 to add, 0 to change, 0 to destroy",
        "Apply complete! Resources: 1 added, 0 changed, 0 destroyed.",
    ],
    LifecycleAction.UPDATE: [
        "Initializing provider plugins...",
        "Terraform initialized",
        "Configuration valid",
        "Plan: 0 to add, 2 to change, 0 to destroy",
        "Apply complete! Resources: 0 added, 2 changed, 0 destroyed.",
    ],
    LifecycleAction.DECOMMISSION: [
        "Initializing provider plugins...",
        "Terraform initialized",
        "Plan: 0 to add, 0 to change, 1 to destroy",
        "Destroy complete! Resources: 1 destroyed.",
    ],
}


def _demo_outputs(deployment: Deployment) -> Dict[str, Any]:
    """Outputs shaped like the real outputs.tf of each resource type."""
    config = deployment.config or {}
    name = config.get("name") or deployment.id[:8]
    rg = f"/subscriptions/{DEMO_SUBSCRIPTION_ID}/resourceGroups/rg-{name}-{deployment.environment}"
    provider = f"{rg}/providers"
    if deployment.resource_type == "vm":
        return {
            "vm_id": f"{provider}/Microsoft.Compute/virtualMachines/{name}",
            "private_ip": "10.0.1.4",
        }
    if deployment.resource_type == "storage":
        account = storage_account_name(name)
        return {
            "storage_id": f"{provider}/Microsoft.Storage/storageAccounts/{account}",
            "blob_endpoint": f"https://{account}.blob.core.windows.net/",
        }
    if deployment.resource_type == "aks":
        return {
            "cluster_id": f"{provider}/Microsoft.ContainerService/managedClusters/{name}",
            "kube_config": "(sensitive)",
        }
    if deployment.resource_type == "sql":
        return {
            "server_fqdn": f"{name}-server.database.windows.net",
            "db_id": f"{provider}/Microsoft.Sql/servers/{name}-server/databases/{name}",
        }
    if deployment.resource_type == "keyvault":
        return {
            "vault_uri": f"https://{name}.vault.azure.net/",
            "vault_id": f"{provider}/Microsoft.KeyVault/vaults/{name}",
        }
    if deployment.resource_type == "vnet":
        return {
            "vnet_id": f"{provider}/Microsoft.Network/virtualNetworks/{name}",
            "address_space": [config.get("addressSpace") or "10.0.0.0/16"],
        }
    return {}


class DemoExecutor:
    """Simulates the Terraform steps with a randomized delay per step."""

    def __init__(self, settings: Settings, sleep: Callable[[float], None] = time.sleep):
        self.delay_min = settings.demo_step_delay_min
        self.delay_max = max(settings.demo_step_delay_max, settings.demo_step_delay_min)
        self.sleep = sleep

    def execute(
        self,
        deployment: Deployment,
        action: LifecycleAction,
        workspace_dir: Optional[str],
        log_callback: Callable[[str], None],
    ) -> Dict[str, Any]:
        for step in DEMO_STEPS[LifecycleAction(action)]:
            self.sleep(random.uniform(self.delay_min, self.delay_max))
            log_callback(step)
        if action == LifecycleAction.DECOMMISSION:
            return {}
        return _demo_outputs(deployment)


class GitHubActionsExecutor:
    """
    Hands the action to CI: uploads the workspace to blob storage and fires a
    repository_dispatch event (terraform-<action>). Terraform itself runs in
    the workflow, so no outputs come back here.
    """

    def __init__(self, settings: Settings, storage=None, session: Optional[requests.Session] = None):
        self.settings = settings
        self.storage = storage
        self.session = session or requests.Session()

    def execute(
        self,
        deployment: Deployment,
        action: LifecycleAction,
        workspace_dir: Optional[str],
        log_callback: Callable[[str], None],
    ) -> Dict[str, Any]:
        token = self.settings.github_token
        repo = self.settings.github_repo
        if not token or not repo:
            raise ExecutionError("GITHUB_TOKEN and GITHUB_REPO env vars are required")

        self._upload_workspace(deployment.id, workspace_dir, log_callback)

        log_callback("→ Triggering GitHub Actions workflow...")
        action = LifecycleAction(action)
        body = {
            "event_type": f"terraform-{action.value}",
            "client_payload": {
                "action": action.value,
                "deployment_id": deployment.id,
                "resource_type": deployment.resource_type,
                "environment": deployment.environment,
                "ticket_number": deployment.ticket_number,
            },
        }
        try:
            response = self.session.post(
                f"{self.settings.github_api_url}/repos/{repo}/dispatches",
                json=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/vnd.github+json",
                    "User-Agent": "TerraPortal/2.0",
                },
                timeout=30,
            )
        except requests.RequestException as e:
            raise ExecutionError(f"GitHub API request failed: {str(e)}")
        if response.status_code != 204:
            raise ExecutionError(f"GitHub API {response.status_code}: {response.text}")

        log_callback("✓ GitHub Actions triggered, Terraform running in CI")
        log_callback("ℹ️  Check GitHub Actions tab for live progress")
        return {}

    def _upload_workspace(self, deployment_id: str, workspace_dir: Optional[str], log_callback):
        if self.storage is None:
            log_callback("⚠ No blob storage configured, workspace not uploaded")
            return
        log_callback("→ Uploading Terraform workspace to blob storage...")
        for name in WORKSPACE_FILES:
            path = os.path.join(workspace_dir or "", name)
            if not os.path.isfile(path):
                continue
            with open(path, "rb") as f:
                content = f.read()
            try:
                self.storage.upload_file(content, f"{deployment_id}/{name}", content_type="text/plain")
            except Exception as e:
                raise ExecutionError(f"Failed to upload {name}: {str(e)}")
            log_callback(f"✓ Uploaded {name}")


def build_executor(settings: Settings):
    mode = (settings.execution_mode or "demo").lower()
    if mode == "demo":
        return DemoExecutor(settings)
    if mode == "github":
        return GitHubActionsExecutor(settings, storage=build_blob_storage(settings, "deployments"))
    if mode == "terraform":
        return TerraformCliExecutor(settings)
    raise ValueError(f"Unknown execution mode '{settings.execution_mode}' (expected demo, github or terraform)")
