from fastapi import APIRouter, Depends

from app.database.inventory_store import InventoryStore, get_inventory_store
from app.modules.inventory.models import Deployment, InventoryDocument
from app.modules.inventory.schemas import HistoryResponse

router = APIRouter(tags=["inventory"])


@router.get("/inventory", response_model=InventoryDocument)
async def get_inventory(store: InventoryStore = Depends(get_inventory_store)):
    """Full inventory: every tracked deployment (decommissioned ones included) and the audit history"""
    return store.read()


@router.get("/inventory/{deployment_id}", response_model=Deployment)
async def get_inventory_resource(
    deployment_id: str,
    store: InventoryStore = Depends(get_inventory_store),
):
    return store.get_deployment(deployment_id)


@router.get("/history", response_model=HistoryResponse)
async def get_history(store: InventoryStore = Depends(get_inventory_store)):
    """Audit history, newest first"""
    return HistoryResponse(history=store.list_history())
