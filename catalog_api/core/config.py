"""
Configuración centralizada de la aplicación
"""
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # API Settings
    API_TITLE: str = "Product Catalog API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Product catalog backend with image ingestion"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_CONNECT_RETRIES: int = 3
    DB_RETRY_DELAY_SECONDS: float = 1.0

    # Identity provider (HS256 bearer tokens)
    AUTH_SECRET: str = ""

    # CORS - comma-separated string or JSON array
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000,http://localhost:8081"

    # ImageKit
    IMAGEKIT_PUBLIC_KEY: str = ""
    IMAGEKIT_PRIVATE_KEY: str = ""
    IMAGEKIT_URL_ENDPOINT: str = ""
    IMAGEKIT_FOLDER: str = "products"
    IMAGEKIT_TIMEOUT_SECONDS: float = 30.0

    # Image ingestion
    IMAGE_FETCH_TIMEOUT_SECONDS: float = 15.0
    # What to do with file:// references sent by the mobile client:
    # "placeholder" uploads the built-in 1x1 image, "reject" fails the request
    LOCAL_REFERENCE_POLICY: Literal["placeholder", "reject"] = "placeholder"
    CLEANUP_ORPHANED_UPLOADS: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings"""
    return Settings()


settings = get_settings()
