from fastapi import APIRouter, Depends

from app.config import Settings
from app.config.resource_types import RESOURCE_TYPES, is_known_resource_type
from app.core.dependencies import get_settings
from app.core.exceptions import ValidationError
from app.modules.terraform.generator import build_tags, render_workspace
from app.modules.terraform.schemas import PreviewRequest, PreviewResponse
from app.modules.terraform.validator import TerraformValidator

router = APIRouter(tags=["terraform"])


@router.get("/resource-types")
async def list_resource_types():
    """Form definitions for the six supported Azure resource types"""
    return RESOURCE_TYPES


@router.post("/preview", response_model=PreviewResponse)
async def preview_terraform(
    request: PreviewRequest,
    app_settings: Settings = Depends(get_settings),
):
    """
    Render main.tf for a form state without creating anything.
    Validation issues are reported, never raised.
    """
    if not is_known_resource_type(request.resource_type):
        raise ValidationError(f"Unknown resource type: {request.resource_type}")
    deployment_id = request.deployment_id or "preview"
    environment = request.environment or "dev"
    backend = None if app_settings.demo_mode else app_settings.get_backend_config(deployment_id)
    tags = build_tags(request.ticket_number, environment, deployment_id, request.tags)
    files = render_workspace(
        request.resource_type, request.config or {}, tags, deployment_id, environment, backend
    )
    is_valid, issues = TerraformValidator.validate(files)
    return PreviewResponse(
        terraform=files["main.tf"],
        validation_passed=is_valid,
        validation_issues=issues,
    )
