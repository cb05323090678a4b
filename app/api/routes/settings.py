import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_app_settings, get_storage
from app.core.config import Settings
from app.core.security import Principal, require_admin
from app.domain.schemas import PhoneResponse, PhoneUpdate, SuccessResponse
from app.repositories import Storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/barista-phone", response_model=PhoneResponse)
async def get_barista_phone(
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """Contact phone shown on customer cards."""
    phone = await storage.settings.get_phone(settings.default_contact_phone)
    return PhoneResponse(phone=phone)


@router.post("/barista-phone", response_model=SuccessResponse)
async def update_barista_phone(
    data: PhoneUpdate,
    storage: Storage = Depends(get_storage),
    principal: Principal = Depends(require_admin),
):
    """Update the contact phone (admin only)."""
    await storage.settings.set_phone(data.phone)
    logger.info(f"Barista phone updated by {principal.subject}")
    return SuccessResponse(message="Phone updated successfully")
