from datetime import datetime
from typing import List, Optional
from pydantic import EmailStr, Field

from .common import RequestModel, ResponseModel

class SubscribeRequest(RequestModel):
    email: EmailStr

class BroadcastRequest(RequestModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=20000)

class RecipientResult(ResponseModel):
    email: str
    status: str
    error: Optional[str] = None

class BroadcastResponse(ResponseModel):
    message: str
    sent: int
    failed: int
    results: List[RecipientResult]

class MailDeliveryResponse(ResponseModel):
    id: int
    recipient: str
    subject: str
    status: str
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
