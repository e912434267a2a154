from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import BackgroundTasks
import logging

from ..models.newsletter import NewsletterSubscriber
from ..models.mail_delivery import DeliveryStatus
from ..core.config import Settings
from ..core.errors import BadRequestError
from ..schemas.newsletter import BroadcastRequest, BroadcastResponse, RecipientResult
from .mail_service import MailService, broadcast_email, welcome_email

logger = logging.getLogger(__name__)

class NewsletterService:
    def __init__(self, db: Session, mail_service: MailService):
        self.db = db
        self.mail_service = mail_service

    def _is_subscribed(self, email: str) -> bool:
        return self.db.query(NewsletterSubscriber).filter(
            NewsletterSubscriber.email == email
        ).first() is not None

    def subscribe(
        self,
        email: str,
        settings: Settings,
        background_tasks: BackgroundTasks
    ) -> NewsletterSubscriber:
        """Add a subscriber. Subscribing twice is an error."""
        if self._is_subscribed(email):
            raise BadRequestError("Email is already subscribed")

        subscriber = NewsletterSubscriber(email=email)
        self.db.add(subscriber)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise BadRequestError("Email is already subscribed")
        self.db.refresh(subscriber)
        logger.info(f"New newsletter subscriber {subscriber.id}")

        subject, body = welcome_email(settings.SITE_URL)
        self.mail_service.queue(background_tasks, email, subject, body, html=True)
        return subscriber

    async def broadcast(self, request: BroadcastRequest) -> BroadcastResponse:
        """Send one message to every subscriber and report per recipient."""
        emails = [
            email for (email,) in
            self.db.query(NewsletterSubscriber.email).order_by(NewsletterSubscriber.id).all()
        ]
        if not emails:
            raise BadRequestError("No subscribers found.")

        deliveries = await self.mail_service.send_many(
            emails,
            request.subject,
            broadcast_email(request.subject, request.message),
            html=True
        )

        results = [
            RecipientResult(email=d.recipient, status=d.status, error=d.error)
            for d in deliveries
        ]
        sent = sum(1 for r in results if r.status == DeliveryStatus.SENT.value)
        failed = len(results) - sent

        logger.info(f"Newsletter '{request.subject}' sent to {sent}, failed for {failed}")
        return BroadcastResponse(
            message="Update sent to all subscribers." if not failed
            else "Update sent with some failures.",
            sent=sent,
            failed=failed,
            results=results,
        )
