"""
Shopify webhook receiver.

Verifies the signature over the raw body, decodes JSON and hands the
payload to the event router. The router's outcome decides the status:
anything but 2xx makes Shopify retry the delivery.
"""
import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from battle.config import AppConfig
from battle.engine import BattleEngine
from battle.exceptions import AuthenticationError
from battle.models import HandlerOutcome, OutcomeStatus
from battle.observability import get_logger
from web.deps import get_config, get_engine
from web.security import require_valid_signature

router = APIRouter(tags=["webhooks"])
logger = get_logger(__name__)

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
TOPIC_HEADER = "X-Shopify-Topic"
SHOP_HEADER = "X-Shopify-Shop-Domain"


def outcome_response(outcome: HandlerOutcome) -> PlainTextResponse:
    """Translate a handler outcome into the HTTP answer Shopify sees."""
    headers = {"X-Battle-Outcome": outcome.status.value}

    if outcome.status == OutcomeStatus.REJECTED:
        return PlainTextResponse(outcome.reason or "Invalid payload", status_code=400, headers=headers)
    if outcome.status == OutcomeStatus.FAILED:
        return PlainTextResponse("Webhook error", status_code=500, headers=headers)
    return PlainTextResponse("OK", status_code=200, headers=headers)


@router.post("/battle-webhook", response_class=PlainTextResponse)
async def battle_webhook(
    request: Request,
    engine: BattleEngine = Depends(get_engine),
    config: AppConfig = Depends(get_config),
):
    """Receive orders/paid, orders/cancelled and refunds/create webhooks."""
    raw_body = await request.body()

    try:
        require_valid_signature(raw_body, request.headers.get(HMAC_HEADER), config.shopify.webhook_secret)
    except AuthenticationError as e:
        return PlainTextResponse(str(e), status_code=401)

    try:
        payload = json.loads(raw_body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON", extra={"body_bytes": len(raw_body)})
        return PlainTextResponse("Invalid JSON", status_code=400)

    outcome = await engine.router.route(
        request.headers.get(TOPIC_HEADER),
        payload,
        request.headers.get(SHOP_HEADER),
    )
    return outcome_response(outcome)
