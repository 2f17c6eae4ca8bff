from typing import List

from app.modules.inventory.models import AuditEntry, CamelModel


class HistoryResponse(CamelModel):
    history: List[AuditEntry]
