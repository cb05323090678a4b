from fastapi import Request

from app.core.config import Settings
from app.repositories import Storage


def get_storage(request: Request) -> Storage:
    """Storage backend selected at startup."""
    return request.app.state.storage


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
