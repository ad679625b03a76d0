"""Stripe subscription webhooks -> seller and subscription rows."""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import stripe

from ..pipeline import InputValidationError, PipelineError
from .store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = timedelta(days=30)


def construct_event(payload: bytes, signature: Optional[str], secret: str) -> dict:
    """Verify the Stripe signature and decode the event as a plain dict.

    Handlers read the event with dict access, which ``stripe.Event`` no
    longer supports, so only the signature check goes through the SDK.
    """
    if not signature:
        raise InputValidationError("No signature found")
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            raise InputValidationError("Invalid webhook payload")
    try:
        stripe.WebhookSignature.verify_header(
            payload, signature, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
        )
    except stripe.SignatureVerificationError:
        raise InputValidationError("Webhook signature verification failed")

    try:
        event = json.loads(payload)
    except ValueError:
        raise InputValidationError("Invalid webhook payload")
    if not isinstance(event, dict) or "type" not in event:
        raise InputValidationError("Invalid webhook payload")
    return event


def _iso(timestamp: Optional[int]) -> Optional[str]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


async def handle_checkout_completed(store: RecordStore, session: dict) -> None:
    customer = session.get("customer")
    if not isinstance(customer, str):
        logger.error("No customer found in checkout session %s", session.get("id"))
        return

    sellers = await store.fetch("sellers", {"stripe_customer_id": customer}, limit=1)
    if not sellers:
        logger.error("Seller not found for customer %s", customer)
        return
    seller = sellers[0]

    subscription = session.get("subscription")
    if not isinstance(subscription, str):
        return

    metadata = session.get("metadata") or {}
    await store.update("sellers", seller["id"], {
        "subscription_status": "active",
        "status": "active",
        "current_plan_id": metadata.get("plan_id"),
        "trial_ends_at": None,
    })

    now = datetime.now(timezone.utc)
    await store.upsert("subscriptions", {
        "seller_id": seller["id"],
        "stripe_subscription_id": subscription,
        "plan_id": metadata.get("plan_id"),
        "status": "active",
        "billing_period": metadata.get("billing_period"),
        "current_period_start": now.isoformat(),
        "current_period_end": (now + DEFAULT_PERIOD).isoformat(),
        "cancel_at_period_end": False,
    }, on_conflict="stripe_subscription_id")
    logger.info("Activated subscription %s for seller %s", subscription, seller["id"])


async def handle_subscription_updated(store: RecordStore, subscription: dict) -> None:
    if not isinstance(subscription.get("customer"), str):
        return
    await store.update_where(
        "subscriptions",
        {"stripe_subscription_id": subscription["id"]},
        {
            "status": subscription.get("status"),
            "current_period_start": _iso(subscription.get("current_period_start")),
            "current_period_end": _iso(subscription.get("current_period_end")),
            "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        },
    )


async def handle_subscription_deleted(store: RecordStore, subscription: dict) -> None:
    customer = subscription.get("customer")
    if not isinstance(customer, str):
        return
    await store.update_where(
        "sellers",
        {"stripe_customer_id": customer},
        {"subscription_status": "cancelled", "status": "inactive", "current_plan_id": None},
    )
    await store.update_where(
        "subscriptions",
        {"stripe_subscription_id": subscription["id"]},
        {"status": "canceled"},
    )


async def handle_invoice_paid(store: RecordStore, invoice: dict) -> None:
    logger.info("Invoice payment succeeded: %s", invoice.get("id"))


HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_updated,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_invoice_paid,
}


async def handle_event(store: RecordStore, event: Any) -> bool:
    """Apply one event. Returns False when it failed or was not handled.

    Runs after Stripe already got its 200, so failures are only logged.
    """
    event_type = event["type"]
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("Unhandled event type: %s", event_type)
        return False

    try:
        await handler(store, event["data"]["object"])
    except PipelineError as e:
        logger.error("Stripe event %s (%s) failed: %s", event.get("id"), event_type, e)
        return False
    except Exception:
        logger.exception("Stripe event %s (%s) failed", event.get("id"), event_type)
        return False
    return True
