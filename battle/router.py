"""
Topic-based dispatch of verified webhook payloads.

Usage:
    router = EventRouter(handlers)
    outcome = await router.route("orders/paid", payload, "shop.myshopify.com")
    if not outcome.acknowledged:
        ...  # answer with an error so the sender retries (or stops, on reject)
"""
from typing import Any, Optional

from battle.exceptions import BattleError, ValidationError
from battle.handlers import OrderEventHandlers
from battle.models import HandlerOutcome, OutcomeStatus, WebhookTopic
from battle.observability import get_logger, metrics, Timer
from battle.validators import validate_order_payload, validate_refund_payload

logger = get_logger(__name__)


def _order_id_of(topic: WebhookTopic, payload: Any) -> Optional[str]:
    """Order id for logging, when the payload carries one."""
    if not isinstance(payload, dict):
        return None
    value = payload.get("order_id" if topic == WebhookTopic.REFUNDS_CREATE else "id")
    return str(value) if value not in (None, "") else None


class EventRouter:
    """Dispatches orders/paid, orders/cancelled and refunds/create."""

    def __init__(self, handlers: OrderEventHandlers):
        self.handlers = handlers
        self._routes = {
            WebhookTopic.ORDERS_PAID: (validate_order_payload, handlers.handle_order_paid),
            WebhookTopic.ORDERS_CANCELLED: (validate_order_payload, handlers.handle_order_cancelled),
            WebhookTopic.REFUNDS_CREATE: (validate_refund_payload, handlers.handle_refund_create),
        }

    async def route(
        self,
        topic: Optional[str],
        payload: Any,
        shop_domain: Optional[str],
    ) -> HandlerOutcome:
        """
        Handle one webhook delivery.

        Unknown topics are acknowledged without processing. Validation
        problems become ``rejected``; lookup and store failures become
        ``failed`` so the sender retries.
        """
        parsed = WebhookTopic.parse(topic)
        if parsed is None:
            logger.info(f"Ignoring webhook topic {topic!r}", extra={"topic": topic})
            outcome = HandlerOutcome(OutcomeStatus.IGNORED, "unsupported_topic")
            metrics.record_outcome(str(topic), outcome.status.value)
            return outcome

        validate, handler = self._routes[parsed]
        with Timer(f"webhook {parsed.value}", logger, collector=metrics):
            try:
                outcome = await handler(validate(payload), shop_domain)
            except ValidationError as e:
                logger.warning(
                    f"Rejected {parsed.value} payload: {e}",
                    extra={"topic": parsed.value, "field": e.field}
                )
                outcome = HandlerOutcome(OutcomeStatus.REJECTED, str(e), _order_id_of(parsed, payload))
            except BattleError as e:
                logger.error(
                    f"Failed to handle {parsed.value}: {e}",
                    extra={"topic": parsed.value, "error_type": type(e).__name__},
                    exc_info=True,
                )
                metrics.record_error(type(e).__name__)
                outcome = HandlerOutcome(OutcomeStatus.FAILED, type(e).__name__, _order_id_of(parsed, payload))

        metrics.record_outcome(parsed.value, outcome.status.value)
        logger.info(
            f"Webhook {parsed.value} {outcome.status.value}",
            extra={
                "topic": parsed.value,
                "status": outcome.status.value,
                "reason": outcome.reason,
                "order_id": outcome.order_id,
            }
        )
        return outcome
