"""
Core dependencies: builds the inventory store, executor, job runner and
lifecycle service from the application settings for each request.
"""

import logging
from functools import lru_cache

from fastapi import BackgroundTasks, Depends

from app.config import Settings, settings
from app.database.inventory_store import InventoryStore, get_inventory_store
from app.modules.deployments.executors import build_executor
from app.modules.deployments.job_runner import JobRunner
from app.modules.deployments.service import DeploymentService
from app.modules.terraform.workspace import TerraformWorkspace

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


@lru_cache
def _cached_executor():
    executor = build_executor(settings)
    logger.info(f"Using {type(executor).__name__} (execution_mode={settings.execution_mode})")
    return executor


def get_executor():
    return _cached_executor()


def get_terraform_workspace(app_settings: Settings = Depends(get_settings)) -> TerraformWorkspace:
    return TerraformWorkspace(app_settings)


def get_job_runner(
    store: InventoryStore = Depends(get_inventory_store),
    executor=Depends(get_executor),
    app_settings: Settings = Depends(get_settings),
) -> JobRunner:
    return JobRunner(store, executor, flush_every=app_settings.log_flush_every)


def get_deployment_service(
    background_tasks: BackgroundTasks,
    store: InventoryStore = Depends(get_inventory_store),
    runner: JobRunner = Depends(get_job_runner),
    workspace: TerraformWorkspace = Depends(get_terraform_workspace),
) -> DeploymentService:
    return DeploymentService(store, runner, workspace, dispatch=background_tasks.add_task)
