"""Stripe webhook endpoint."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from ..config import get_settings
from ..dependencies import record_store
from ..services.billing import construct_event, handle_event
from ..services.store import RecordStore

router = APIRouter(tags=["billing"])


@router.post("/billing/webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    store: RecordStore = Depends(record_store),
):
    """Verify a Stripe event and apply it after acknowledging."""
    settings = get_settings()
    if not settings.stripe_webhook_secret:
        raise HTTPException(status_code=500, detail="STRIPE_WEBHOOK_SECRET not configured.")

    payload = await request.body()
    event = construct_event(
        payload, request.headers.get("stripe-signature"), settings.stripe_webhook_secret
    )

    background_tasks.add_task(handle_event, store, event)
    return {"received": True}
