from typing import Optional

from fastapi import APIRouter, Depends

from app.core.dependencies import get_deployment_service
from app.modules.deployments.schemas import (
    ActionResponse, DecommissionRequest, DeploymentStatusResponse, PlanRequest, PlanResponse,
    ProvisionRequest, ProvisionResponse, UpdateRequest
)
from app.modules.deployments.service import DeploymentService

router = APIRouter(tags=["deployments"])


@router.post("/provision", response_model=ProvisionResponse)
async def provision(
    request: ProvisionRequest,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Create a new resource. Returns immediately; poll /resources/{id}/status for progress."""
    return service.provision(
        resource_type=request.resource_type,
        config=request.config,
        ticket_number=request.ticket_number,
        environment=request.environment,
        tags=request.tags,
        requested_by=request.requested_by,
    )


@router.patch("/resources/{deployment_id}", response_model=ActionResponse, response_model_exclude_none=True)
async def update_resource(
    deployment_id: str,
    request: UpdateRequest,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Modify an existing resource (terraform apply with the new config)"""
    return service.update(
        deployment_id,
        config=request.config,
        ticket_number=request.ticket_number,
        tags=request.tags,
        requested_by=request.requested_by,
    )


@router.delete("/resources/{deployment_id}", response_model=ActionResponse, response_model_exclude_none=True)
async def decommission_resource(
    deployment_id: str,
    request: Optional[DecommissionRequest] = None,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Terraform destroy; the inventory record is kept as decommissioned"""
    request = request or DecommissionRequest()
    return service.decommission(
        deployment_id,
        ticket_number=request.ticket_number,
        requested_by=request.requested_by,
        reason=request.reason,
    )


@router.get("/resources/{deployment_id}/status", response_model=DeploymentStatusResponse)
async def get_resource_status(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
):
    """
    Poll for deployment status.
    Returns current status, logs and outputs.
    """
    return service.get_status(deployment_id)


@router.post("/resources/{deployment_id}/plan", response_model=PlanResponse)
async def plan_resource(
    deployment_id: str,
    request: PlanRequest,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Diff preview before an update (plan only)"""
    return service.plan(deployment_id, request.config)
