import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.config import Settings
from app.core.exceptions import ExecutionError
from app.modules.deployments.executors import (
    DEMO_STEPS, DemoExecutor, GitHubActionsExecutor, build_executor
)
from app.modules.deployments.terraform_deployer import TerraformCliExecutor
from app.modules.inventory.models import Deployment, DeploymentStatus, LifecycleAction


def _deployment(resource_type="vnet", config=None, workspace_dir=None):
    return Deployment(
        id="d-1",
        ticket_number="T-1",
        resource_type=resource_type,
        config=config or {"name": "x", "addressSpace": "10.0.0.0/16"},
        status=DeploymentStatus.PROVISIONING,
        created_at="2024-05-01T12:00:00.000Z",
        updated_at="2024-05-01T12:00:00.000Z",
        workspace_dir=workspace_dir,
    )


def _github_settings(**overrides):
    fields = dict(github_token="ghp_test", github_repo="org/infra", execution_mode="github", _env_file=None)
    fields.update(overrides)
    return Settings(**fields)


# ============================================
# DEMO
# ============================================

def test_demo_executor_emits_steps_and_outputs():
    delays = []
    executor = DemoExecutor(Settings(_env_file=None), sleep=delays.append)
    lines = []

    outputs = executor.execute(_deployment(), LifecycleAction.PROVISION, None, lines.append)

    assert lines == DEMO_STEPS[LifecycleAction.PROVISION]
    assert len(delays) == len(lines)
    assert all(1.2 <= d <= 2.2 for d in delays)
    assert set(outputs) == {"vnet_id", "address_space"}


def test_demo_executor_decommission_has_no_outputs():
    executor = DemoExecutor(Settings(_env_file=None), sleep=lambda _: None)
    lines = []

    outputs = executor.execute(_deployment(), LifecycleAction.DECOMMISSION, None, lines.append)

    assert outputs == {}
    assert lines[-1] == "Destroy complete! Resources: 1 destroyed."


@pytest.mark.parametrize(
    "resource_type, expected",
    [
        ("vm", {"vm_id", "private_ip"}),
        ("storage", {"storage_id", "blob_endpoint"}),
        ("aks", {"cluster_id", "kube_config"}),
        ("sql", {"server_fqdn", "db_id"}),
        ("keyvault", {"vault_uri", "vault_id"}),
        ("vnet", {"vnet_id", "address_space"}),
    ],
)
def test_demo_outputs_match_output_names(resource_type, expected):
    from app.modules.terraform.generator import output_names

    executor = DemoExecutor(Settings(_env_file=None), sleep=lambda _: None)
    outputs = executor.execute(
        _deployment(resource_type, {"name": "demo1"}), LifecycleAction.PROVISION, None, lambda _: None
    )

    assert set(outputs) == expected == set(output_names(resource_type))


# ============================================
# GITHUB ACTIONS
# ============================================

def test_github_executor_requires_token_and_repo():
    executor = GitHubActionsExecutor(_github_settings(github_token=None), session=MagicMock())

    with pytest.raises(ExecutionError) as exc:
        executor.execute(_deployment(), LifecycleAction.PROVISION, None, lambda _: None)
    assert "GITHUB_TOKEN" in exc.value.message


def test_github_executor_dispatches_workflow(tmp_path):
    for name in ("main.tf", "variables.tf", "outputs.tf"):
        (tmp_path / name).write_text(f"# {name}\n")
    storage = MagicMock()
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=204, text="")
    executor = GitHubActionsExecutor(_github_settings(), storage=storage, session=session)
    lines = []

    outputs = executor.execute(_deployment(), LifecycleAction.UPDATE, str(tmp_path), lines.append)

    assert outputs == {}
    uploaded = [c.args[1] for c in storage.upload_file.call_args_list]
    assert uploaded == ["d-1/main.tf", "d-1/variables.tf", "d-1/outputs.tf"]
    url = session.post.call_args.args[0]
    assert url == "https://api.github.com/repos/org/infra/dispatches"
    body = session.post.call_args.kwargs["json"]
    assert body["event_type"] == "terraform-update"
    assert body["client_payload"]["deployment_id"] == "d-1"
    assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer ghp_test"
    assert any("GitHub Actions triggered" in line for line in lines)


def test_github_executor_rejected_dispatch():
    session = MagicMock()
    session.post.return_value = MagicMock(status_code=422, text="Unprocessable")
    executor = GitHubActionsExecutor(_github_settings(), session=session)

    with pytest.raises(ExecutionError) as exc:
        executor.execute(_deployment(), LifecycleAction.PROVISION, None, lambda _: None)
    assert exc.value.message == "GitHub API 422: Unprocessable"


def test_github_executor_network_error():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("unreachable")
    executor = GitHubActionsExecutor(_github_settings(), session=session)

    with pytest.raises(ExecutionError):
        executor.execute(_deployment(), LifecycleAction.PROVISION, None, lambda _: None)


# ============================================
# TERRAFORM CLI
# ============================================

def test_terraform_executor_requires_workspace(tmp_path):
    executor = TerraformCliExecutor(Settings(_env_file=None))

    with pytest.raises(ExecutionError):
        executor.execute(_deployment(), LifecycleAction.PROVISION, str(tmp_path / "missing"), lambda _: None)


def test_terraform_output_flattening_masks_sensitive():
    raw = {
        "vnet_id": {"value": "/subscriptions/x", "type": "string", "sensitive": False},
        "kube_config": {"value": "secret", "type": "string", "sensitive": True},
    }

    assert TerraformCliExecutor._extract_output_values(raw) == {
        "vnet_id": "/subscriptions/x",
        "kube_config": "(sensitive)",
    }
    assert TerraformCliExecutor._extract_output_values(None) == {}


def test_terraform_credentials_go_through_environment():
    executor = TerraformCliExecutor(
        Settings(arm_client_id="client", arm_client_secret="secret", _env_file=None)
    )

    env = executor._get_terraform_env()

    assert env["ARM_CLIENT_ID"] == "client"
    assert env["ARM_CLIENT_SECRET"] == "secret"
    assert env["TF_IN_AUTOMATION"] == "1"


@patch("app.modules.deployments.terraform_deployer.subprocess.run")
@patch("app.modules.deployments.terraform_deployer.subprocess.Popen")
def test_terraform_apply_streams_and_reads_outputs(mock_popen, mock_run, tmp_path):
    def fake_process(cmd, **kwargs):
        proc = MagicMock()
        proc.stdout.readline.side_effect = [f"{cmd[1]} running\n", ""]
        proc.returncode = 0
        return proc

    mock_popen.side_effect = fake_process
    mock_run.return_value = subprocess.CompletedProcess(
        args=[], returncode=0, stdout=json.dumps({"vnet_id": {"value": "id-1", "sensitive": False}})
    )
    lines = []

    outputs = TerraformCliExecutor(Settings(_env_file=None)).execute(
        _deployment(), LifecycleAction.PROVISION, str(tmp_path), lines.append
    )

    assert outputs == {"vnet_id": "id-1"}
    assert lines == ["init running", "apply running"]
    init_cmd = mock_popen.call_args_list[0].args[0]
    assert "-backend-config=key=d-1/terraform.tfstate" in init_cmd


@patch("app.modules.deployments.terraform_deployer.subprocess.Popen")
def test_terraform_failure_raises(mock_popen, tmp_path):
    proc = MagicMock()
    proc.stdout.readline.side_effect = ["Error: quota\n", ""]
    proc.returncode = 1
    mock_popen.return_value = proc

    with pytest.raises(ExecutionError) as exc:
        TerraformCliExecutor(Settings(_env_file=None)).execute(
            _deployment(), LifecycleAction.DECOMMISSION, str(tmp_path), lambda _: None
        )
    assert exc.value.message == "Terraform init failed with return code 1"


# ============================================
# SELECTION
# ============================================

@pytest.mark.parametrize(
    "mode, expected",
    [("demo", DemoExecutor), ("github", GitHubActionsExecutor), ("terraform", TerraformCliExecutor)],
)
def test_build_executor(mode, expected):
    assert isinstance(build_executor(Settings(execution_mode=mode, _env_file=None)), expected)


def test_build_executor_unknown_mode():
    with pytest.raises(ValueError):
        build_executor(Settings(execution_mode="ansible", _env_file=None))
