"""
Configuration for the revenue battle service.

Configuration is loaded from environment variables once at startup and
passed to components as an immutable value.

Usage:
    from battle.config import load_config, validate_config

    config = load_config()
    validate_config(config)

    secret = config.shopify.webhook_secret
    ttl = config.battle.classification_ttl_seconds
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from battle.exceptions import ConfigurationError


@dataclass(frozen=True)
class ShopifyConfig:
    """Shopify Admin API and webhook configuration."""

    store_domain: str = field(default_factory=lambda: os.getenv("SHOPIFY_STORE_DOMAIN", ""))
    admin_token: str = field(default_factory=lambda: os.getenv("SHOPIFY_ADMIN_TOKEN", ""))
    webhook_secret: str = field(default_factory=lambda: os.getenv("SHOPIFY_WEBHOOK_SECRET", ""))
    api_version: str = field(default_factory=lambda: os.getenv("SHOPIFY_API_VERSION", "2024-01"))
    request_timeout: float = 10.0
    max_concurrent_lookups: int = 5

    def graphql_url(self, shop_domain: str) -> str:
        """Admin GraphQL endpoint for a shop."""
        return f"https://{shop_domain}/admin/api/{self.api_version}/graphql.json"


@dataclass(frozen=True)
class StoreConfig:
    """Redis connection configuration."""

    url: str = field(default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    socket_timeout: float = 5.0


@dataclass(frozen=True)
class BattleConfig:
    """Ledger key layout and classification cache settings."""

    order_key_prefix: str = "battle:order:"
    product_key_prefix: str = "battle:product:"
    shop_key_prefix: str = "battle:shop:"
    totals_key: str = "battle:totals"
    classification_ttl_seconds: int = 86400  # 24 hours

    def order_key(self, order_id: str) -> str:
        return f"{self.order_key_prefix}{order_id}"

    def product_key(self, product_id: str, shop_domain: Optional[str]) -> str:
        return f"{self.product_key_prefix}{shop_domain or 'default'}:{product_id}"

    def shop_token_key(self, shop_domain: str) -> str:
        return f"{self.shop_key_prefix}{shop_domain}:token"


@dataclass(frozen=True)
class WebConfig:
    """HTTP server configuration."""

    host: str = field(default_factory=lambda: os.getenv("WEB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("WEB_PORT", "8080")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text"))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    shopify: ShopifyConfig = field(default_factory=ShopifyConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    battle: BattleConfig = field(default_factory=BattleConfig)
    web: WebConfig = field(default_factory=WebConfig)


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Build configuration from the environment.

    Args:
        env_file: Optional .env path (defaults to python-dotenv discovery)

    Returns:
        Immutable AppConfig
    """
    load_dotenv(env_file)
    return AppConfig()


def validate_config(config: AppConfig) -> None:
    """
    Validate that all required configuration is present.

    Call this on application startup to fail fast with clear error messages
    instead of rejecting every webhook at runtime.

    Raises:
        ConfigurationError: If required configuration is missing
    """
    errors = []

    if not config.shopify.webhook_secret:
        errors.append("SHOPIFY_WEBHOOK_SECRET is required but not set")

    if not config.store.url.startswith(("redis://", "rediss://", "unix://")):
        errors.append(f"REDIS_URL has an unsupported scheme: {config.store.url}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
