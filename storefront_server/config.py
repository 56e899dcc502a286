"""Settings loaded from environment variables."""

import logging
import os
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class StorefrontSettings(BaseModel):
    """Runtime configuration of the storefront servers."""

    backend_url: str = Field(description="Backend project URL")
    backend_key: str = Field(description="Backend anonymous API key")
    admin_password: Optional[str] = None
    messenger_page_id: str = ""
    store_name: str = "H&HBC SHOPPE"
    currency: str = "₱"
    session_file: Optional[str] = None


def load_settings() -> StorefrontSettings:
    """
    Read settings from the environment.

    Environment variable mapping:
    - STOREFRONT_BACKEND_URL → backend_url (required)
    - STOREFRONT_BACKEND_KEY → backend_key (required)
    - STOREFRONT_ADMIN_PASSWORD → admin_password
    - STOREFRONT_MESSENGER_PAGE_ID → messenger_page_id
    - STOREFRONT_STORE_NAME → store_name
    - STOREFRONT_CURRENCY → currency
    - STOREFRONT_SESSION_FILE → session_file

    Raises:
        ValueError: If the backend URL or key is missing
    """
    backend_url = os.environ.get("STOREFRONT_BACKEND_URL")
    backend_key = os.environ.get("STOREFRONT_BACKEND_KEY")
    if not backend_url or not backend_key:
        raise ValueError("STOREFRONT_BACKEND_URL and STOREFRONT_BACKEND_KEY must be set")

    values: dict[str, str] = {"backend_url": backend_url, "backend_key": backend_key}
    for field in ("admin_password", "messenger_page_id", "store_name", "currency", "session_file"):
        value = os.environ.get(f"STOREFRONT_{field.upper()}")
        if value:
            values[field] = value

    settings = StorefrontSettings(**values)
    if not settings.admin_password:
        logger.warning("STOREFRONT_ADMIN_PASSWORD not set, admin tools are disabled")
    if not settings.messenger_page_id:
        logger.warning("STOREFRONT_MESSENGER_PAGE_ID not set, order links will not reach a page")
    return settings
