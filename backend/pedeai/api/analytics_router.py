"""Dashboard analytics endpoints."""

from typing import Dict, List

from fastapi import APIRouter, Depends, Query

from pedeai import analytics
from pedeai.db.dependencies import get_app_state, get_current_restaurant
from pedeai.state import AppState


router = APIRouter(
    prefix="/api/analytics",
    tags=["analytics"],
    dependencies=[Depends(get_current_restaurant)],
)


@router.get("/daily", response_model=analytics.DailyMetrics)
async def daily(state: AppState = Depends(get_app_state)):
    return analytics.daily_metrics(state.orders)


@router.get("/weekly", response_model=analytics.PeriodComparison)
async def weekly(state: AppState = Depends(get_app_state)):
    return analytics.weekly_comparison(state.orders)


@router.get("/monthly", response_model=analytics.PeriodComparison)
async def monthly(state: AppState = Depends(get_app_state)):
    return analytics.monthly_comparison(state.orders)


@router.get("/sales-chart")
async def sales_chart(days: int = Query(7, ge=1, le=90), state: AppState = Depends(get_app_state)) -> List[Dict]:
    return analytics.sales_chart(state.orders, days)


@router.get("/peak-hours")
async def peak_hours(state: AppState = Depends(get_app_state)) -> List[Dict]:
    return analytics.peak_hours(state.orders)


@router.get("/occupancy")
async def occupancy(state: AppState = Depends(get_app_state)) -> Dict[str, float]:
    return analytics.table_occupancy(state.tables)


@router.get("/low-stock", response_model=List[analytics.StockAlert])
async def low_stock(state: AppState = Depends(get_app_state)):
    return analytics.low_stock(state.products, state.settings)
