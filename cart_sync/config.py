"""Cart Sync Configuration"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Settings loaded from environment (prefix CART_)"""

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # Remote cart service
    api_base_url: str = "http://localhost:8001/api"
    request_timeout: float = 30.0

    # Local store
    storage_dir: str = ".cart_storage"
    cart_storage_key: str = "cart"
    coupon_storage_key: str = "coupon"

    # Snapshots older than this are refreshed on hydration
    freshness_window_seconds: int = 3600

    # Mock backend
    mock_host: str = "0.0.0.0"
    mock_port: int = 8001

    class Config:
        env_prefix = "CART_"
        env_file = "config/.env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def effective_log_level(self) -> str:
        """Log level, forced to DEBUG in debug mode"""
        return "DEBUG" if self.debug else self.log_level.upper()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
