"""
Tests for battle.config module.
"""
import dataclasses

import pytest

from battle.config import AppConfig, BattleConfig, ShopifyConfig, StoreConfig, load_config, validate_config
from battle.exceptions import ConfigurationError


class TestLoadConfig:

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SHOPIFY_WEBHOOK_SECRET", "from-env")
        monkeypatch.setenv("SHOPIFY_API_VERSION", "2024-10")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")

        config = load_config()

        assert config.shopify.webhook_secret == "from-env"
        assert config.shopify.api_version == "2024-10"
        assert config.store.url == "redis://cache:6379/2"

    def test_is_immutable(self, config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.shopify.webhook_secret = "changed"


class TestKeyLayout:

    def test_keys(self):
        keys = BattleConfig()
        assert keys.order_key("1001") == "battle:order:1001"
        assert keys.product_key("55", "shop.myshopify.com") == "battle:product:shop.myshopify.com:55"
        assert keys.product_key("55", None) == "battle:product:default:55"
        assert keys.shop_token_key("shop.myshopify.com") == "battle:shop:shop.myshopify.com:token"
        assert keys.totals_key == "battle:totals"
        assert keys.classification_ttl_seconds == 86400

    def test_graphql_url(self):
        shopify = ShopifyConfig(api_version="2024-01")
        assert shopify.graphql_url("shop.myshopify.com") == (
            "https://shop.myshopify.com/admin/api/2024-01/graphql.json"
        )


class TestValidateConfig:

    def test_valid(self, config):
        validate_config(config)

    def test_missing_webhook_secret(self):
        config = AppConfig(shopify=ShopifyConfig(webhook_secret=""))
        with pytest.raises(ConfigurationError, match="SHOPIFY_WEBHOOK_SECRET"):
            validate_config(config)

    def test_bad_redis_scheme(self):
        config = AppConfig(
            shopify=ShopifyConfig(webhook_secret="x"),
            store=StoreConfig(url="http://localhost:6379"),
        )
        with pytest.raises(ConfigurationError, match="REDIS_URL"):
            validate_config(config)
