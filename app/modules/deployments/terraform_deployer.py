import subprocess
import os
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from app.config import Settings
from app.core.exceptions import ExecutionError
from app.modules.inventory.models import Deployment, LifecycleAction

logger = logging.getLogger(__name__)


class TerraformCliExecutor:
    """Runs the Terraform CLI against a deployment's generated workspace."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.binary = settings.terraform_binary
        self.timeout = settings.terraform_timeout

    def _get_terraform_env(self) -> dict:
        """
        Environment for the Terraform subprocess. Credentials go through
        ARM_* variables, never command line args.
        """
        env = os.environ.copy()
        credentials = {
            "ARM_TENANT_ID": self.settings.arm_tenant_id,
            "ARM_CLIENT_ID": self.settings.arm_client_id,
            "ARM_CLIENT_SECRET": self.settings.arm_client_secret,
            "ARM_SUBSCRIPTION_ID": self.settings.arm_subscription_id,
        }
        env.update({k: v for k, v in credentials.items() if v})
        env["TF_IN_AUTOMATION"] = "1"
        return env

    def execute(
        self,
        deployment: Deployment,
        action: LifecycleAction,
        workspace_dir: str,
        log_callback: Callable[[str], None],
    ) -> Dict[str, Any]:
        if not workspace_dir or not os.path.isdir(workspace_dir):
            raise ExecutionError(f"Terraform workspace not found: {workspace_dir}")

        env = self._get_terraform_env()
        init_cmd = [self.binary, "init", "-input=false", "-no-color"]
        for key, value in self.settings.get_backend_config(deployment.id).items():
            init_cmd.append(f"-backend-config={key}={value}")
        self._run(init_cmd, workspace_dir, env, log_callback, "init")

        if action == LifecycleAction.DECOMMISSION:
            self._run(
                [self.binary, "destroy", "-auto-approve", "-input=false", "-no-color"],
                workspace_dir, env, log_callback, "destroy",
            )
            return {}

        self._run(
            [self.binary, "apply", "-auto-approve", "-input=false", "-no-color"],
            workspace_dir, env, log_callback, "apply",
        )
        return self._extract_output_values(self._read_outputs(workspace_dir, env))

    def _run(
        self,
        cmd: List[str],
        cwd: str,
        env: dict,
        log_callback: Callable[[str], None],
        step: str,
    ) -> None:
        """Run one Terraform command, streaming combined stdout/stderr line by line."""
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                env=env,
                bufsize=1,
            )
        except FileNotFoundError:
            raise ExecutionError("Terraform not found. Please install Terraform from https://www.terraform.io/downloads")

        def stream_output():
            for line in iter(proc.stdout.readline, ''):
                if line.strip():
                    log_callback(line.rstrip())

        stream_thread = threading.Thread(target=stream_output)
        stream_thread.start()
        try:
            proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
            raise ExecutionError(f"Terraform {step} timed out after {self.timeout}s")
        finally:
            stream_thread.join(timeout=5)

        if proc.returncode != 0:
            raise ExecutionError(f"Terraform {step} failed with return code {proc.returncode}")
        logger.info(f"Terraform {step} completed in {cwd}")

    def _read_outputs(self, cwd: str, env: dict) -> Dict[str, Any]:
        result = subprocess.run(
            [self.binary, "output", "-json"],
            cwd=cwd,
            capture_output=True,
            text=True,
            env=env,
            timeout=60,
        )
        if result.returncode != 0 or not result.stdout:
            return {}
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("Failed to parse Terraform outputs")
            return {}

    @staticmethod
    def _extract_output_values(raw_output: Dict[str, Any]) -> Dict[str, Any]:
        """
        Flatten `terraform output -json` to name -> value.
        Sensitive outputs are masked; they stay readable through terraform itself.
        """
        if not raw_output or not isinstance(raw_output, dict):
            return {}
        flat = {}
        for key, entry in raw_output.items():
            if isinstance(entry, dict) and "value" in entry:
                flat[key] = "(sensitive)" if entry.get("sensitive") else entry["value"]
            else:
                flat[key] = entry
        return flat
