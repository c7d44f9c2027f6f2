"""Order queue endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from pedeai.db.dependencies import get_app_state, get_current_restaurant
from pedeai.pedidos import Order, normalize_status
from pedeai.state import AppState, OrderLine


router = APIRouter(
    prefix="/api/orders",
    tags=["orders"],
    dependencies=[Depends(get_current_restaurant)],
)


class CreateOrderRequest(BaseModel):
    table: int
    items: List[OrderLine] = Field(min_length=1)
    note: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str = Field(min_length=1)


@router.get("", response_model=List[Order], summary="Orders, newest first")
async def list_orders(
    status: Optional[str] = Query(None, description="Filter by status (any synonym)"),
    table: Optional[int] = Query(None),
    state: AppState = Depends(get_app_state),
):
    orders = state.orders
    if status is not None:
        wanted = normalize_status(status)
        orders = [o for o in orders if o.status == wanted]
    if table is not None:
        orders = [o for o in orders if o.table == table]
    return orders


@router.post("", response_model=Order, status_code=201, summary="Place an order for a table")
async def create_order(request: CreateOrderRequest, state: AppState = Depends(get_app_state)):
    return await state.add_order(request.table, request.items, note=request.note)


@router.patch("/{order_id}/status", response_model=Order)
async def update_status(order_id: int, request: StatusUpdate, state: AppState = Depends(get_app_state)):
    return await state.update_order_status(order_id, request.status)


@router.post("/{order_id}/deliver", response_model=Order, summary="Mark delivered (undoable)")
async def deliver(order_id: int, state: AppState = Depends(get_app_state)):
    return await state.deliver_order(order_id)


@router.delete("/{order_id}", status_code=204)
async def delete_order(order_id: int, state: AppState = Depends(get_app_state)):
    await state.delete_order(order_id)
