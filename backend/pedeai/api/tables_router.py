"""Table grid endpoints: close, resolve alerts, bills."""

from typing import List

from fastapi import APIRouter, Depends

from pedeai.db.dependencies import get_app_state, get_current_restaurant
from pedeai.printing import PrintPayload, PrintResult
from pedeai.state import AppState
from pedeai.tables import Table


router = APIRouter(
    prefix="/api/tables",
    tags=["tables"],
    dependencies=[Depends(get_current_restaurant)],
)


@router.get("", response_model=List[Table])
async def list_tables(state: AppState = Depends(get_app_state)):
    return state.tables


@router.get("/{table_id}", response_model=Table)
async def get_table(table_id: int, state: AppState = Depends(get_app_state)):
    return state.find_table(table_id)


@router.post("/{table_id}/close", response_model=Table, summary="Close the table (undoable)")
async def close_table(table_id: int, state: AppState = Depends(get_app_state)):
    return await state.close_table(table_id)


@router.post("/{table_id}/resolve-alert", response_model=Table, summary="Answer a waiter call or bill request")
async def resolve_alert(table_id: int, state: AppState = Depends(get_app_state)):
    return await state.resolve_alert(table_id)


@router.get("/{table_id}/bill", response_model=PrintPayload)
async def get_bill(table_id: int, state: AppState = Depends(get_app_state)):
    return state.bill_for_table(table_id)


@router.post("/{table_id}/print-bill", response_model=PrintResult)
async def print_bill(table_id: int, state: AppState = Depends(get_app_state)):
    return await state.print_bill(table_id)
