"""Sync routers - Acuity webhook ingestion and on-demand reconciliation"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import ACUITY_API_KEY, ACUITY_WEBHOOK_TOKEN
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...services.acuity_client import AcuityClient, get_acuity_client
from ...webhook_security import verify_acuity_signature, verify_acuity_token
from ..availability.service import AvailabilityService
from .schemas import ReconcileOutcome, parse_webhook_body, to_webhook_event
from .service import SyncService

logger = logging.getLogger(__name__)

webhook_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
router = APIRouter(prefix="/sync", tags=["Sync"])

rate_limit_webhook = create_rate_limiter(limit=120, window_seconds=60, key_prefix="acuity_webhook")
rate_limit_bulk_sync = create_rate_limiter(
    limit=6, window_seconds=3600, key_prefix="sync_bulk", use_ip=False
)
rate_limit_user_sync = create_rate_limiter(limit=10, window_seconds=300, key_prefix="sync_user")


def get_sync_service(
    db: Session = Depends(get_db), client: AcuityClient = Depends(get_acuity_client)
) -> SyncService:
    """Dependency injection for SyncService"""
    return SyncService(db, client, availability=AvailabilityService(client))


@webhook_router.post("/appointment")
async def acuity_appointment_webhook(
    request: Request,
    service: SyncService = Depends(get_sync_service),
    _: None = Depends(rate_limit_webhook),
):
    """
    Receive an Acuity appointment notification.

    Redeliveries are answered with ``alreadySynced`` so Acuity stops retrying.
    Skips (unknown mentee, unmapped type) also answer 200 for the same reason.
    """
    verify_acuity_token(request, ACUITY_WEBHOOK_TOKEN)

    raw = await request.body()
    if not verify_acuity_signature(raw, request.headers.get("X-Acuity-Signature"), ACUITY_API_KEY):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    payload = parse_webhook_body(raw, request.headers.get("content-type"))
    event = to_webhook_event(payload, default_action=request.query_params.get("event"))
    logger.info(f"📥 Acuity webhook: action={event.action} appointment={event.appointment.id}")

    result = await service.handle_webhook(event)
    if result is None:
        return {"message": "Ignored"}

    if result.outcome is ReconcileOutcome.SYNCED:
        return {"success": True, "bookingId": result.booking.id}
    if result.outcome is ReconcileOutcome.ALREADY_SYNCED:
        return {
            "success": True,
            "bookingId": result.booking.id if result.booking else None,
            "alreadySynced": True,
        }
    return {"success": False, "skipped": result.outcome.value}


@router.post("/bulk")
async def sync_all_appointments(
    service: SyncService = Depends(get_sync_service),
    _: None = Depends(rate_limit_bulk_sync),
):
    """Reconcile every Acuity appointment in the rolling bulk window"""
    summary = await service.sync_bulk()
    return {"success": True, "summary": summary.to_dict()}


@router.post("/user")
async def sync_my_appointments(
    current_user: User = Depends(get_current_user),
    service: SyncService = Depends(get_sync_service),
    _: None = Depends(rate_limit_user_sync),
):
    """Reconcile the current user's Acuity appointments"""
    summary = await service.sync_user(current_user)
    return {"success": True, "summary": summary.to_dict()}
