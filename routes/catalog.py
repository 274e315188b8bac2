# routes/catalog.py

from dataclasses import asdict
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query

import schemas
from dependencies import get_controller
from normalizer import MalformedRecord, coerce_id
from services.sync_controller import Operation, OperationState, SyncController

router = APIRouter(
    prefix="/api/catalog",
    tags=["Catalog"],
)

# ---------- helpers ----------

def _product_id(raw: str) -> schemas.ProductId:
    try:
        return coerce_id(raw)
    except MalformedRecord:
        raise HTTPException(status_code=400, detail=f"Invalid product id: {raw!r}")

def _respond(controller: SyncController, op: Operation) -> schemas.OperationResponse:
    if op.state is OperationState.REFUSED:
        raise HTTPException(status_code=409, detail=f"A {op.action} is already in progress for this product.")
    edit = None
    if controller.edit_session is not None:
        session = controller.edit_session
        edit = {
            "product_id": session.product_id,
            "loading": session.loading,
            "error": session.error,
            "draft": session.draft.model_dump(mode="json") if session.draft else None,
        }
    return schemas.OperationResponse(
        action=op.action,
        state=op.state.value,
        product_id=op.product_id,
        patches=[p.to_dict() for p in controller.projector.drain_patches()],
        notifications=controller.notifier.drain(),
        controls=schemas.ControlsOut(
            disabled=controller.controls.disabled, submit_label=controller.controls.submit_label
        ),
        edit=edit,
    )

# ---------- routes ----------

@router.get("/products", response_model=List[schemas.Product])
async def get_products(controller: SyncController = Depends(get_controller)):
    """
    Current contents of the catalog store, in display order.
    """
    return controller.store.snapshot()

@router.post("/load", response_model=schemas.OperationResponse)
async def load_products(controller: SyncController = Depends(get_controller)):
    op = await controller.load()
    return _respond(controller, op)

@router.post("/start-fresh", response_model=schemas.OperationResponse)
async def start_fresh(controller: SyncController = Depends(get_controller)):
    op = controller.start_fresh()
    return _respond(controller, op)

@router.post("/products", response_model=schemas.OperationResponse)
async def create_product(draft: schemas.ProductDraft, controller: SyncController = Depends(get_controller)):
    op = await controller.create(draft)
    return _respond(controller, op)

@router.get("/products/{product_id}/edit", response_model=schemas.OperationResponse)
async def edit_product(product_id: str, controller: SyncController = Depends(get_controller)):
    op = await controller.begin_edit(_product_id(product_id))
    return _respond(controller, op)

@router.put("/products/{product_id}", response_model=schemas.OperationResponse)
async def update_product(
    product_id: str,
    draft: schemas.ProductDraft,
    controller: SyncController = Depends(get_controller),
):
    op = await controller.update(_product_id(product_id), draft)
    return _respond(controller, op)

@router.delete("/products/{product_id}", response_model=schemas.OperationResponse)
async def delete_product(
    product_id: str,
    confirmed: bool = Query(False, description="Operator acknowledged the delete prompt"),
    controller: SyncController = Depends(get_controller),
):
    op = await controller.delete(_product_id(product_id), confirm=lambda _prompt: confirmed)
    return _respond(controller, op)

@router.post("/connectivity")
async def connectivity_changed(online: bool = Query(...), controller: SyncController = Depends(get_controller)) -> Dict[str, Any]:
    controller.connectivity_changed(online)
    return {"notifications": controller.notifier.drain()}

@router.get("/notifications")
async def get_notifications(controller: SyncController = Depends(get_controller)) -> Dict[str, Any]:
    return {"notifications": controller.notifier.visible()}

@router.delete("/notifications/{notification_id}")
async def dismiss_notification(notification_id: str, controller: SyncController = Depends(get_controller)) -> Dict[str, Any]:
    if not controller.notifier.dismiss(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"status": "ok"}

@router.get("/controls")
async def get_controls(controller: SyncController = Depends(get_controller)) -> Dict[str, Any]:
    return asdict(controller.controls)

@router.post("/editor")
async def open_editor(controller: SyncController = Depends(get_controller)) -> Dict[str, Any]:
    controller.open_create()
    return asdict(controller.controls)

@router.delete("/editor")
async def close_editor(controller: SyncController = Depends(get_controller)) -> Dict[str, Any]:
    controller.close_editor()
    return asdict(controller.controls)
