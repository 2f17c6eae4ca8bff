import itertools
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.config import Settings
from app.database.inventory_store import InventoryStore
from app.database.local_file import LocalFileBackend
from app.modules.deployments.executors import DemoExecutor
from app.modules.deployments.job_runner import JobRunner
from app.modules.deployments.service import DeploymentService
from app.modules.terraform.workspace import TerraformWorkspace


class TickingClock:
    """Deterministic, strictly increasing ISO timestamps"""

    def __init__(self):
        self._counter = itertools.count()

    def __call__(self) -> str:
        n = next(self._counter)
        return f"2024-05-01T12:{n // 60 % 60:02d}:{n % 60:02d}.000Z"


class SequentialIds:
    def __init__(self, prefix: str = "dep"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter):04d}-0000-0000-000000000000"


class DeferredDispatch:
    """Collects dispatched jobs so a test can observe the state before they run"""

    def __init__(self):
        self.jobs = []

    def __call__(self, func, *args, **kwargs):
        self.jobs.append((func, args, kwargs))

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for func, args, kwargs in jobs:
            func(*args, **kwargs)


def inline_dispatch(func, *args, **kwargs):
    func(*args, **kwargs)


class FailingExecutor:
    def __init__(self, message: str = "boom", lines=("Initializing provider plugins...",)):
        self.message = message
        self.lines = lines
        self.calls = []

    def execute(self, deployment, action, workspace_dir, log_callback):
        self.calls.append((deployment.id, action))
        for line in self.lines:
            log_callback(line)
        raise RuntimeError(self.message)


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        inventory_path=str(tmp_path / "inventory.json"),
        deployments_dir=str(tmp_path / "deployments"),
        execution_mode="demo",
        inventory_mirror="none",
        demo_step_delay_min=0,
        demo_step_delay_max=0,
        _env_file=None,
    )


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store(app_settings, clock):
    return InventoryStore(
        LocalFileBackend(app_settings.inventory_path),
        clock=clock,
        id_factory=SequentialIds("audit"),
    )


@pytest.fixture
def demo_executor(app_settings):
    return DemoExecutor(app_settings, sleep=lambda _: None)


@pytest.fixture
def runner(store, demo_executor, clock):
    return JobRunner(store, demo_executor, flush_every=3, clock=clock)


@pytest.fixture
def workspace(app_settings):
    return TerraformWorkspace(app_settings)


@pytest.fixture
def deferred():
    return DeferredDispatch()


@pytest.fixture
def service(store, runner, workspace, deferred, clock):
    return DeploymentService(
        store, runner, workspace, dispatch=deferred, clock=clock, id_factory=SequentialIds()
    )


@pytest.fixture
def vnet_request():
    return {
        "resource_type": "vnet",
        "config": {
            "name": "x",
            "location": "East US",
            "addressSpace": "10.0.0.0/16",
            "dnsServers": "",
        },
        "ticket_number": "T-1",
        "environment": "dev",
        "requested_by": "a",
    }
