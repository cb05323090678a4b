import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_app_settings, get_storage
from app.core.config import Settings
from app.core.security import Principal, require_admin
from app.domain.schemas import PurchaseEventResponse, PurchaseResponse, StatsResponse
from app.repositories import Storage
from app.services.ledger import purchase_message

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/purchase/{customer_id}", response_model=PurchaseResponse)
async def add_purchase(
    customer_id: str,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
    principal: Principal = Depends(require_admin),
):
    """Record a purchase for a customer (admin only).

    A customer sitting at the reward threshold gets the free coffee instead:
    the counter resets to 0 and a free_coffee event is logged.
    """
    decision = await storage.customers.record_purchase(customer_id, settings.reward_threshold)

    if decision.reward_granted:
        logger.info(f"Free coffee granted to {customer_id} by {principal.subject}")
    else:
        logger.info(
            f"Purchase recorded for {customer_id}: {decision.previous_count} -> {decision.new_count}"
        )

    return PurchaseResponse(
        message=purchase_message(decision),
        new_count=decision.new_count,
        reward_granted=decision.reward_granted,
        reward_ready=decision.reward_ready,
    )


@router.get("/history/{customer_id}", response_model=list[PurchaseEventResponse])
async def get_purchase_history(
    customer_id: str,
    storage: Storage = Depends(get_storage),
):
    """Get a customer's purchase history, newest first."""
    customer = await storage.customers.get_by_id(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return await storage.history.list_for_customer(customer_id)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
    _: Principal = Depends(require_admin),
):
    """Get aggregate stats for the admin dashboard."""
    data = await storage.customers.get_stats(settings.reward_threshold)
    return StatsResponse(**data)
