from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_app_settings, get_storage
from app.core.config import Settings, get_card_url
from app.domain.schemas import QRCodeResponse
from app.repositories import Storage
from app.services.qr_generator import card_qr_data_url

router = APIRouter()


@router.get("/qr/{customer_id}", response_model=QRCodeResponse)
async def get_customer_qr_code(
    customer_id: str,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    """QR code pointing at the customer's loyalty card page."""
    customer = await storage.customers.get_by_id(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    card_url = get_card_url(customer_id, settings.public_base_url)
    return QRCodeResponse(qr_code=card_qr_data_url(card_url), url=card_url)
