import os
import logging
from typing import Dict, List, Optional, Tuple

from app.config import Settings
from app.modules.inventory.models import Deployment
from app.modules.terraform.generator import render_workspace
from app.modules.terraform.validator import TerraformValidator

logger = logging.getLogger(__name__)

WORKSPACE_FILES = ("main.tf", "variables.tf", "outputs.tf")


class TerraformWorkspace:
    """Renders and writes the per-deployment Terraform directory."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.base_dir = os.path.abspath(settings.deployments_dir)

    def path_for(self, deployment_id: str) -> str:
        return os.path.join(self.base_dir, deployment_id)

    def backend_for(self, deployment_id: str) -> Optional[Dict[str, str]]:
        # Demo runs never init a real backend
        if self.settings.demo_mode:
            return None
        return self.settings.get_backend_config(deployment_id)

    def render(self, deployment: Deployment) -> Dict[str, str]:
        return render_workspace(
            deployment.resource_type,
            deployment.config,
            deployment.tags,
            deployment.id,
            deployment.environment,
            self.backend_for(deployment.id),
        )

    def write(self, deployment: Deployment) -> Tuple[str, List[str]]:
        """Write main.tf, variables.tf and outputs.tf; returns (workspace_dir, validation issues)."""
        files = self.render(deployment)
        is_valid, issues = TerraformValidator.validate(files)
        if not is_valid:
            logger.warning(f"Generated Terraform for {deployment.id} has errors: {issues}")
        elif issues:
            logger.info(f"Generated Terraform for {deployment.id} has warnings: {issues}")

        workspace_dir = deployment.workspace_dir or self.path_for(deployment.id)
        os.makedirs(workspace_dir, exist_ok=True)
        for name, content in files.items():
            with open(os.path.join(workspace_dir, name), "w") as f:
                f.write(content)
        logger.info(f"Wrote Terraform workspace to {workspace_dir}")
        return workspace_dir, issues
