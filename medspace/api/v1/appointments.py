from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_current_user, get_mail_service
from ...services.appointment_service import AppointmentService
from ...services.mail_service import MailService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, EmergencyAppointmentCreate,
    AppointmentResponse, AppointmentMessageResponse
)
from ...schemas.common import MessageResponse
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def add_appointment(
    appointment_data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Book an appointment for the logged-in user."""
    return AppointmentService(db).book(current_user.id, appointment_data)

@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Appointments of the logged-in user in booking order."""
    return AppointmentService(db).list_for_user(current_user.id)

# Registered before the {appointment_id} routes
@router.post("/emergency", response_model=AppointmentMessageResponse)
async def add_emergency_appointment(
    emergency_data: EmergencyAppointmentCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mail_service: MailService = Depends(get_mail_service)
):
    """Emergency booking; no authentication required."""
    _, appointment = AppointmentService(db).book_emergency(
        emergency_data, mail_service, background_tasks
    )
    return {
        "message": "Emergency appointment booked successfully",
        "appointment": AppointmentResponse.model_validate(appointment),
    }

@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: str,
    appointment_data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Replace date, reason and status of one of the user's appointments."""
    return AppointmentService(db).update(current_user.id, appointment_id, appointment_data)

@router.delete("/{appointment_id}", response_model=MessageResponse)
async def delete_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    AppointmentService(db).delete(current_user.id, appointment_id)
    return {"message": "Appointment deleted successfully"}
