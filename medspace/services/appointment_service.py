from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import BackgroundTasks
from typing import List, Tuple
import logging

from ..models.user import User
from ..models.appointment import (
    Appointment, AppointmentStatus, new_appointment_id, is_valid_appointment_id
)
from ..core.errors import BadRequestError, NotFoundError
from ..core.security import UserRole, get_password_hash, generate_random_password
from ..schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, EmergencyAppointmentCreate
)
from .mail_service import MailService, emergency_email

logger = logging.getLogger(__name__)

class AppointmentService:
    """Appointments live inside their owner's collection.

    Every operation is a single read-modify-write without a version check,
    so two concurrent edits of the same appointment are last-writer-wins.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _find(user: User, appointment_id: str) -> Appointment:
        for appointment in user.appointments:
            if appointment.id == appointment_id:
                return appointment
        raise NotFoundError("Appointment not found")

    @staticmethod
    def _check_id(appointment_id: str):
        if not is_valid_appointment_id(appointment_id):
            raise BadRequestError("Invalid appointment ID")

    def _append(self, user: User, date, reason: str, status: AppointmentStatus) -> Appointment:
        appointment = Appointment(
            id=new_appointment_id(),
            date=date,
            reason=reason,
            status=status.value,
        )
        user.appointments.append(appointment)
        return appointment

    def book(self, user_id: int, data: AppointmentCreate) -> Appointment:
        """Append a pending appointment. Any client-sent status is ignored."""
        user = self._get_user(user_id)
        appointment = self._append(user, data.date, data.reason, AppointmentStatus.PENDING)

        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Booked appointment {appointment.id} for user {user.id}")
        return appointment

    def list_for_user(self, user_id: int) -> List[Appointment]:
        return list(self._get_user(user_id).appointments)

    def update(self, user_id: int, appointment_id: str, data: AppointmentUpdate) -> Appointment:
        """Overwrite date, reason and status."""
        self._check_id(appointment_id)
        user = self._get_user(user_id)
        appointment = self._find(user, appointment_id)

        appointment.date = data.date
        appointment.reason = data.reason
        appointment.status = data.status

        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Updated appointment {appointment.id} for user {user.id}")
        return appointment

    def delete(self, user_id: int, appointment_id: str) -> None:
        self._check_id(appointment_id)
        user = self._get_user(user_id)
        appointment = self._find(user, appointment_id)

        user.appointments.remove(appointment)
        self.db.commit()

        logger.info(f"Deleted appointment {appointment_id} for user {user.id}")

    def book_emergency(
        self,
        data: EmergencyAppointmentCreate,
        mail_service: MailService,
        background_tasks: BackgroundTasks
    ) -> Tuple[User, Appointment]:
        """Book an emergency appointment without authentication.

        Unknown emails get a new account so the booking is never blocked.
        Its random password is never communicated; the account is flagged
        with must_reset_password and can only log in after an OTP reset.
        """
        user = self.db.query(User).filter(User.email == data.email).first()
        created = user is None

        if created:
            user = User(
                email=data.email,
                password_hash=get_password_hash(generate_random_password()),
                role=UserRole.PATIENT,
                name=data.name,
                age=data.age,
                gender=data.gender,
                phone=data.contact,
                medical_history=[],
                must_reset_password=True,
            )
            self.db.add(user)

        appointment = self._append(user, data.date, data.reason, AppointmentStatus.EMERGENCY)

        try:
            self.db.commit()
        except IntegrityError:
            if not created:
                raise
            # Another request created the account first; book against that one
            self.db.rollback()
            logger.info(f"Account for {data.email} appeared concurrently, reusing it")
            user = self.db.query(User).filter(User.email == data.email).one()
            appointment = self._append(user, data.date, data.reason, AppointmentStatus.EMERGENCY)
            self.db.commit()
        else:
            if created:
                logger.warning(f"Created account for {data.email} from an emergency booking")

        self.db.refresh(appointment)

        subject, body = emergency_email(appointment.date)
        mail_service.queue(background_tasks, user.email, subject, body)

        logger.info(f"Booked emergency appointment {appointment.id} for user {user.id}")
        return user, appointment
