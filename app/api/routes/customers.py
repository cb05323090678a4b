import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_storage
from app.core.security import Principal, require_admin
from app.domain.schemas import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    RegisterResponse,
    SuccessResponse,
)
from app.repositories import Storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=RegisterResponse)
async def register_customer(
    data: CustomerCreate,
    storage: Storage = Depends(get_storage),
):
    """
    Public customer registration endpoint.

    Creates a new loyalty card. A phone number can only hold one card;
    registering it twice answers 409.
    """
    customer = await storage.customers.create(data.name, data.phone)
    logger.info(f"Registered customer {customer['id']}")
    return RegisterResponse(customer_id=customer["id"])


@router.get("/customers", response_model=list[CustomerResponse])
async def list_customers(
    storage: Storage = Depends(get_storage),
    _: Principal = Depends(require_admin),
):
    """Get all customers (admin only)."""
    return await storage.customers.get_all()


@router.get("/search", response_model=list[CustomerResponse])
async def search_customers(
    q: str = Query("", max_length=255),
    storage: Storage = Depends(get_storage),
    _: Principal = Depends(require_admin),
):
    """Search customers by name or phone (admin only).

    Queries shorter than two characters return an empty list.
    """
    return await storage.customers.search(q)


@router.get("/customer/{customer_id}", response_model=CustomerResponse)
async def get_customer_info(
    customer_id: str,
    storage: Storage = Depends(get_storage),
):
    """Get customer details for the loyalty card page."""
    customer = await storage.customers.get_by_id(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.put("/customer/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str,
    data: CustomerUpdate,
    storage: Storage = Depends(get_storage),
    _: Principal = Depends(require_admin),
):
    """Update a customer's name and phone (admin only)."""
    customer = await storage.customers.update(customer_id, data.name, data.phone)
    logger.info(f"Updated customer {customer_id}")
    return customer


@router.delete("/customer/{customer_id}", response_model=SuccessResponse)
async def delete_customer(
    customer_id: str,
    storage: Storage = Depends(get_storage),
    principal: Principal = Depends(require_admin),
):
    """Delete a customer and their purchase history (admin only)."""
    await storage.customers.delete(customer_id)
    logger.info(f"Customer {customer_id} deleted by {principal.subject}")
    return SuccessResponse(message="Customer deleted successfully")


@router.post("/customer/{customer_id}/reset", response_model=SuccessResponse)
async def reset_customer_purchases(
    customer_id: str,
    storage: Storage = Depends(get_storage),
    principal: Principal = Depends(require_admin),
):
    """Reset a customer's purchase counter to 0 (admin only).

    Manual correction: no history event is logged.
    """
    await storage.customers.reset(customer_id)
    logger.info(f"Customer {customer_id} purchases reset by {principal.subject}")
    return SuccessResponse(message="Customer purchases reset successfully")
