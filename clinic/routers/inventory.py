# clinic/routers/inventory.py
from fastapi import APIRouter, Depends, Response, status
from typing import List, Optional

from .. import schemas, security
from ..dependencies import get_repositories, unwrap
from ..storage.base import Repositories

router = APIRouter(
    tags=["Inventory"],
    dependencies=[Depends(security.require_session)],
    responses={404: {"description": "Not found"}},
)

@router.get("/inventory", response_model=List[schemas.InventoryItem])
async def read_inventory(type: Optional[schemas.InventoryType] = None, search: Optional[str] = None,
                         repos: Repositories = Depends(get_repositories)):
    return await repos.inventory.list(item_type=type, search=search)

@router.post("/inventory", response_model=schemas.InventoryItem)
async def save_inventory_item(item: schemas.InventoryItemUpsert, repos: Repositories = Depends(get_repositories)):
    return unwrap(await repos.inventory.save(item))

@router.put("/inventory/{item_id}", response_model=schemas.InventoryItem)
async def update_inventory_item(item_id: str, payload: schemas.InventoryItemUpdate,
                                repos: Repositories = Depends(get_repositories)):
    return unwrap(await repos.inventory.update(item_id, payload))

@router.delete("/inventory/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inventory_item(item_id: str, repos: Repositories = Depends(get_repositories)):
    unwrap(await repos.inventory.delete(item_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
