"""
Data models for the ReRide marketplace API
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from src.listings.dates import now_iso


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TicketStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"


class PaymentRequest(BaseModel):
    """A seller's request to upgrade their plan"""
    id: str
    sellerEmail: str
    amount: float
    plan: str
    paymentMethod: Optional[str] = None
    transactionId: Optional[str] = None
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    createdAt: str = Field(default_factory=now_iso)
    reviewedAt: Optional[str] = None
    reviewedBy: Optional[str] = None
    notes: Optional[str] = None
    rejectionReason: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "payment_1717171717171",
                "sellerEmail": "seller@example.com",
                "amount": 1999,
                "plan": "pro",
                "status": "pending"
            }
        }


class Notification(BaseModel):
    """Stored notification; field names match the notifications table"""
    id: str
    recipient_email: str
    type: str = "general"
    title: str = "Notification"
    message: str = ""
    read: bool = False
    created_at: str = Field(default_factory=now_iso)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FAQ(BaseModel):
    id: str
    question: str
    answer: str
    category: str
    createdAt: str = Field(default_factory=now_iso)
    updatedAt: str = Field(default_factory=now_iso)


class SupportTicket(BaseModel):
    id: str
    userEmail: str
    userName: str
    subject: str
    message: str
    status: TicketStatus = Field(default=TicketStatus.OPEN)
    replies: List[Dict[str, Any]] = Field(default_factory=list)
    createdAt: str = Field(default_factory=now_iso)
    updatedAt: str = Field(default_factory=now_iso)


class ServiceProviderProfile(BaseModel):
    name: str
    email: str
    phone: str
    city: str
    workshops: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    availability: str = "weekdays"


class ServiceRequestRecord(BaseModel):
    providerId: str
    title: str
    serviceType: str = "General"
    customerName: str = ""
    customerPhone: str = ""
    vehicle: str = ""
    city: str = ""
    status: str = "pending"
    scheduledAt: str = ""
    notes: str = ""
    createdAt: str = Field(default_factory=now_iso)


class ProviderService(BaseModel):
    providerId: str
    serviceType: str
    price: float = 0
    description: str = ""
    etaMinutes: Optional[int] = None
    active: bool = True
    updatedAt: str = Field(default_factory=now_iso)


class ChatMessage(BaseModel):
    sessionId: str
    userId: Optional[str] = None
    userName: str = "Guest"
    message: str
    sender: str
    timestamp: str = Field(default_factory=now_iso)
    isRead: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)
