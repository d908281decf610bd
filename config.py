# ============================================================================
#  config.py — Environment Configuration
#  Version: 2.0.0
#  CHANGES: dotenv loading into a validated SyncConfig model
# ============================================================================
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from errors import ConfigError

logger = logging.getLogger(__name__)

REQUIRED_VARS = ("SHOPIFY_DOMAIN", "SHOPIFY_ADMIN_TOKEN", "SHOPIFY_API_VERSION")


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class SyncConfig(BaseModel):
    domain: str
    token: str
    api_version: str
    location_id: Optional[int] = None
    publication_id: Optional[str] = None
    category_default: Optional[str] = None
    inventory_policy: str = "CONTINUE"
    primary_locale: str = "it"
    price_multiplier: float = 1.0
    default_qty_if_in_stock: Optional[int] = None
    track_inventory: bool = True
    metafield_namespace: str = "legacy"
    option_namespace: str = "linked"
    bulk_min_interval: float = 0.0
    inventory_min_interval: float = 0.6
    max_retries: int = 6
    batch_size: int = 1
    catalog_path: Optional[str] = None
    catalog_url: Optional[str] = None
    catalog_token: Optional[str] = None
    dry_run: bool = False
    insert_only: bool = False
    sync_variants: bool = True
    sync_inventory: bool = True
    sync_translations: bool = True
    sync_images: bool = True

    @classmethod
    def from_env(cls, env_file: str = ".env", **overrides) -> "SyncConfig":
        """Loads env_file (overriding the process env) and validates required variables."""
        load_dotenv(env_file, override=True)

        required_vars = {name: os.getenv(name) for name in REQUIRED_VARS}
        missing = [var for var, value in required_vars.items() if not value]
        if missing:
            logger.error(f"Missing required environment variables: {', '.join(missing)}")
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}", missing=missing)

        location = os.getenv("SHOPIFY_LOCATION_ID")
        values = {
            "domain": required_vars["SHOPIFY_DOMAIN"],
            "token": required_vars["SHOPIFY_ADMIN_TOKEN"].strip(),
            "api_version": required_vars["SHOPIFY_API_VERSION"],
            "location_id": int(location) if location else None,
            "publication_id": os.getenv("SHOPIFY_PUBLICATION_ID") or None,
            "category_default": os.getenv("SHOPIFY_CATEGORY_DEFAULT") or None,
            "inventory_policy": (os.getenv("SHOPIFY_INVENTORY_POLICY") or "CONTINUE").upper(),
            "primary_locale": os.getenv("PRIMARY_LOCALE") or "it",
            "price_multiplier": float(os.getenv("PRICE_MULTIPLIER") or 1.0),
            "default_qty_if_in_stock": int(os.getenv("DEFAULT_QTY_IF_IN_STOCK")) if os.getenv("DEFAULT_QTY_IF_IN_STOCK") else None,
            "track_inventory": _flag(os.getenv("TRACK_INVENTORY"), True),
            "metafield_namespace": os.getenv("METAFIELD_NAMESPACE") or "legacy",
            "option_namespace": os.getenv("OPTION_NAMESPACE") or "linked",
            "bulk_min_interval": float(os.getenv("BULK_MIN_INTERVAL") or 0.0),
            "inventory_min_interval": float(os.getenv("INVENTORY_MIN_INTERVAL") or 0.6),
            "max_retries": int(os.getenv("MAX_RETRIES") or 6),
            "batch_size": int(os.getenv("BATCH_SIZE") or 1),
            "catalog_path": os.getenv("CATALOG_PATH") or None,
            "catalog_url": os.getenv("CATALOG_URL") or None,
            "catalog_token": os.getenv("CATALOG_TOKEN") or None,
            "dry_run": _flag(os.getenv("DRY_RUN")),
            "insert_only": _flag(os.getenv("INSERT_ONLY")),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def log_summary(self):
        logger.info("=" * 80)
        logger.info("Configuration Summary:")
        logger.info(f"  SHOPIFY_DOMAIN: {self.domain}")
        logger.info(f"  SHOPIFY_API_VERSION: {self.api_version}")
        logger.info(f"  SHOPIFY_ADMIN_TOKEN: {'*' * min(len(self.token), 20)}... (hidden)")
        logger.info(f"  LOCATION: {self.location_id}  PRIMARY_LOCALE: {self.primary_locale}")
        logger.info(f"  CATALOG: {self.catalog_path or self.catalog_url}")
        logger.info(f"  DRY_RUN: {self.dry_run}  INSERT_ONLY: {self.insert_only}")
        logger.info("=" * 80)
# ============================================================================
# End of config.py — Version: 2.0.0
# ============================================================================
