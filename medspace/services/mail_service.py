from sqlalchemy.orm import Session
from fastapi import BackgroundTasks
from datetime import datetime
from typing import List, Optional, Tuple
from anyio import CapacityLimiter, to_thread
import asyncio
import html
import logging

from ..core.database import SessionLocal
from ..core.mail import Mailer, MailDeliveryError
from ..models.mail_delivery import MailDelivery, DeliveryStatus

logger = logging.getLogger(__name__)

# SMTP sends in flight per broadcast. They hold tokens of their own limiter,
# not of the default threadpool that sync dependencies run on.
MAIL_CONCURRENCY = 8

# Message templates
def otp_email(otp: str, minutes: int) -> Tuple[str, str]:
    return (
        "Password Reset OTP",
        f"Your OTP is: {otp}. It expires in {minutes} minutes.",
    )

def emergency_email(appointment_date: datetime) -> Tuple[str, str]:
    return (
        "Emergency Appointment Confirmation",
        f"Your emergency appointment is booked on {appointment_date:%Y-%m-%d %H:%M} (UTC).",
    )

def welcome_email(site_url: str) -> Tuple[str, str]:
    return (
        "Thank you for Subscribing to Our Newsletter",
        f"""
        <div style="font-family: Arial, sans-serif; text-align: center;">
          <h2>Thank You for Subscribing!</h2>
          <p>Dear Subscriber,</p>
          <p>We are thrilled to have you with us. Stay tuned for our latest updates and offers!</p>
          <a href="{html.escape(site_url)}">Explore More</a>
          <p style="margin-top: 30px;">Best Regards,<br>Med-space</p>
        </div>
        """,
    )

def broadcast_email(subject: str, message: str) -> str:
    return f"""
        <div style="font-family: Arial, sans-serif;">
          <h2>{html.escape(subject)}</h2>
          <p>{html.escape(message)}</p>
          <p style="margin-top: 30px;">Best Regards,<br>Med-space Team</p>
        </div>
        """

def _attempt(mailer: Mailer, recipient: str, subject: str, body: str, html: bool) -> Optional[str]:
    """Send one message. Returns the error text on failure."""
    try:
        mailer.send(recipient, subject, body, html=html)
    except MailDeliveryError as exc:
        return str(exc)
    return None

def _record(delivery: MailDelivery, error: Optional[str]):
    if error is None:
        delivery.status = DeliveryStatus.SENT.value
        delivery.sent_at = datetime.utcnow()
        delivery.error = None
        logger.info(f"Mail {delivery.id} sent to {delivery.recipient}")
    else:
        delivery.status = DeliveryStatus.FAILED.value
        delivery.error = error
        logger.warning(f"Mail {delivery.id} to {delivery.recipient} failed: {error}")

def deliver_queued(delivery_id: int, mailer: Mailer):
    """Background task: send a queued row and record the outcome."""
    db = SessionLocal()
    try:
        delivery = db.get(MailDelivery, delivery_id)
        if delivery is None:
            logger.warning(f"Mail {delivery_id} vanished before delivery")
            return
        error = _attempt(mailer, delivery.recipient, delivery.subject, delivery.body, delivery.html)
        _record(delivery, error)
        db.commit()
    finally:
        db.close()

class MailService:
    def __init__(self, db: Session, mailer: Mailer):
        self.db = db
        self.mailer = mailer

    def _create(self, recipient: str, subject: str, body: str, html: bool) -> MailDelivery:
        delivery = MailDelivery(
            recipient=recipient,
            subject=subject,
            body=body,
            html=html,
            status=DeliveryStatus.QUEUED.value,
        )
        self.db.add(delivery)
        return delivery

    def queue(
        self,
        background_tasks: BackgroundTasks,
        recipient: str,
        subject: str,
        body: str,
        html: bool = False
    ) -> MailDelivery:
        """Record a message in the outbox and send it after the response."""
        delivery = self._create(recipient, subject, body, html)
        self.db.commit()
        self.db.refresh(delivery)

        background_tasks.add_task(deliver_queued, delivery.id, self.mailer)
        return delivery

    async def send_many(
        self,
        recipients: List[str],
        subject: str,
        body: str,
        html: bool = False
    ) -> List[MailDelivery]:
        """Send one message per recipient concurrently, best-effort."""
        deliveries = [self._create(r, subject, body, html) for r in recipients]
        self.db.commit()

        # Worker threads only see plain values, never the session
        limiter = CapacityLimiter(MAIL_CONCURRENCY)
        errors = await asyncio.gather(*(
            to_thread.run_sync(
                _attempt, self.mailer, d.recipient, d.subject, d.body, d.html,
                limiter=limiter
            )
            for d in deliveries
        ))

        for delivery, error in zip(deliveries, errors):
            _record(delivery, error)
        self.db.commit()
        return deliveries

    def list_deliveries(self, status: Optional[str] = None, limit: int = 50) -> List[MailDelivery]:
        query = self.db.query(MailDelivery)
        if status:
            query = query.filter(MailDelivery.status == status)
        return query.order_by(MailDelivery.id.desc()).limit(limit).all()
