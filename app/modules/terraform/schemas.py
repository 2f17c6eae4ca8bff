from typing import Any, Dict, List, Optional

from app.modules.inventory.models import CamelModel


class PreviewRequest(CamelModel):
    resource_type: str
    config: Optional[Dict[str, Any]] = None
    ticket_number: Optional[str] = None
    environment: Optional[str] = None
    tags: Optional[Dict[str, Any]] = None
    deployment_id: Optional[str] = None


class PreviewResponse(CamelModel):
    terraform: str
    validation_passed: bool
    validation_issues: List[str]
