from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.config import Settings, get_settings
from ...core.database import get_db
from ...api.deps import get_basic_admin, get_mail_service
from ...services.mail_service import MailService
from ...services.newsletter_service import NewsletterService
from ...schemas.common import MessageResponse
from ...schemas.newsletter import (
    SubscribeRequest, BroadcastRequest, BroadcastResponse, MailDeliveryResponse
)
from ...models.mail_delivery import DeliveryStatus
from ...models.user import User

router = APIRouter(tags=["Newsletter"])

@router.post("/subscribe", response_model=MessageResponse)
async def subscribe(
    subscribe_data: SubscribeRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mail_service: MailService = Depends(get_mail_service)
):
    """Subscribe an email and queue the welcome message."""
    NewsletterService(db, mail_service).subscribe(
        subscribe_data.email, settings, background_tasks
    )
    return {"message": "Subscription successful, confirmation email queued"}

@router.post("/admin/send-mail", response_model=BroadcastResponse)
async def send_newsletter_update(
    broadcast_data: BroadcastRequest,
    db: Session = Depends(get_db),
    mail_service: MailService = Depends(get_mail_service),
    _: User = Depends(get_basic_admin)
):
    """Send an update to every subscriber (admin only)."""
    return await NewsletterService(db, mail_service).broadcast(broadcast_data)

@router.get("/admin/mail-deliveries", response_model=List[MailDeliveryResponse])
async def list_mail_deliveries(
    status: Optional[DeliveryStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    mail_service: MailService = Depends(get_mail_service),
    _: User = Depends(get_basic_admin)
):
    """Outbox view, newest first (admin only)."""
    return mail_service.list_deliveries(status.value if status else None, limit)
