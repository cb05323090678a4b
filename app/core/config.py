from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage
    storage_backend: str = "sqlite"  # "sqlite" or "memory"
    database_path: str = "loyalty.db"
    database_timeout: float = 5.0  # Seconds a writer waits on a locked database

    # Loyalty rules
    reward_threshold: int = Field(6, ge=1)
    default_contact_phone: str = "+7 (999) 123-45-67"

    # Auth
    auth_backend: str = "jwt"  # "jwt" or "token"
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"
    admin_api_token: str = ""

    # Server
    public_base_url: str = "http://localhost:8000"
    cors_origins: str = "*"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_card_url(customer_id: str, base_url: str) -> str:
    """
    Get the public loyalty card URL for a customer.

    This is the URL encoded in the customer's QR code.
    """
    return f"{base_url.rstrip('/')}/card.html?id={customer_id}"
