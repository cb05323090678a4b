from fastapi import APIRouter, Depends

from app.api.deps import get_storage
from app.domain.schemas import HealthResponse
from app.repositories import Storage

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(storage: Storage = Depends(get_storage)):
    return HealthResponse(status="ok", storage=storage.backend)
