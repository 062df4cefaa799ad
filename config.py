from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    # Document database (server CRUD facade)
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    database_name: Optional[str] = os.getenv("DATABASE_NAME")

    # Durable local mirror
    storage_path: Optional[str] = os.getenv("STORAGE_PATH")
    storage_quota: int = int(os.getenv("STORAGE_QUOTA", "5000000"))

    # Quota recovery
    retention_days: int = int(os.getenv("RETENTION_DAYS", "30"))
    recovery_max_items: int = int(os.getenv("RECOVERY_MAX_ITEMS", "100"))
    max_description_length: int = int(os.getenv("MAX_DESCRIPTION_LENGTH", "500"))

    # Image codec
    image_max_width: int = int(os.getenv("IMAGE_MAX_WIDTH", "800"))
    image_max_height: int = int(os.getenv("IMAGE_MAX_HEIGHT", "800"))
    image_quality: int = int(os.getenv("IMAGE_QUALITY", "70"))

    # Newsletter verification links
    site_url: str = os.getenv("SITE_URL", "http://localhost:3000")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    port: int = int(os.getenv("PORT", "8000"))


settings = Settings()
