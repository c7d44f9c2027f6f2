"""Product catalog and customer list endpoints."""

from typing import List

from fastapi import APIRouter, Depends

from pedeai.catalog import Customer, Product, ProductInput, ProductUpdate
from pedeai.db.dependencies import get_app_state, get_current_restaurant
from pedeai.state import AppState


router = APIRouter(
    prefix="/api/products",
    tags=["products"],
    dependencies=[Depends(get_current_restaurant)],
)

customers_router = APIRouter(
    prefix="/api/customers",
    tags=["customers"],
    dependencies=[Depends(get_current_restaurant)],
)


@router.get("", response_model=List[Product])
async def list_products(state: AppState = Depends(get_app_state)):
    return state.products


@router.post("", response_model=Product, status_code=201)
async def create_product(request: ProductInput, state: AppState = Depends(get_app_state)):
    return await state.add_product(request)


@router.patch("/{product_id}", response_model=Product)
async def update_product(product_id: int, request: ProductUpdate, state: AppState = Depends(get_app_state)):
    return await state.update_product(product_id, request)


@router.delete("/{product_id}", status_code=204)
async def delete_product(product_id: int, state: AppState = Depends(get_app_state)):
    await state.delete_product(product_id)


@customers_router.get("", response_model=List[Customer])
async def list_customers(state: AppState = Depends(get_app_state)):
    return state.customers
