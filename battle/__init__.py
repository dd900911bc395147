"""
Core engine for the Sweet vs Savoury revenue battle.

This package turns Shopify order webhooks into a running per-side total:
- classifier: product side lookup with a 24h cache
- contribution: per-order side totals and ledger fragments
- ledger: per-order records and the shared totals hash
- refunds: refund proration
- handlers/router: idempotent event handling with explicit outcomes
- engine: wiring of the above from one AppConfig
"""

from battle.exceptions import (
    BattleError,
    AuthenticationError,
    ClassificationError,
    StoreError,
    ValidationError,
    ConfigurationError,
)

from battle.models import (
    Side,
    WebhookTopic,
    OutcomeStatus,
    HandlerOutcome,
    OrderRecord,
    LineItemRecord,
    TotalsRecord,
    TotalsDelta,
)

from battle.config import AppConfig, load_config, validate_config

__all__ = [
    # Exceptions
    "BattleError",
    "AuthenticationError",
    "ClassificationError",
    "StoreError",
    "ValidationError",
    "ConfigurationError",
    # Models
    "Side",
    "WebhookTopic",
    "OutcomeStatus",
    "HandlerOutcome",
    "OrderRecord",
    "LineItemRecord",
    "TotalsRecord",
    "TotalsDelta",
    # Config
    "AppConfig",
    "load_config",
    "validate_config",
]
