"""
HTTP endpoints for availability checks and appointment booking.
"""

import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..bootstrap import Services
from ..domain.models import AppointmentRequest, ContactDetails

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["appointments"])


def get_services(request: Request) -> Services:
    return request.app.state.services


# === Pydantic Schemas ===
class AppointmentPayload(BaseModel):
    firstName: str = Field(min_length=1, max_length=100)
    lastName: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str = Field(min_length=3, max_length=40)
    message: str = Field(default="", max_length=5000)
    company: Optional[str] = Field(default=None, max_length=200)
    date: datetime.date
    time: str = Field(pattern=r"^([01]?\d|2[0-3]):[0-5]\d$")

    def to_request(self) -> AppointmentRequest:
        return AppointmentRequest(
            contact=ContactDetails(
                first_name=self.firstName.strip(),
                last_name=self.lastName.strip(),
                email=self.email.strip(),
                phone=self.phone.strip(),
                message=self.message.strip(),
                company=(self.company or "").strip() or None,
            ),
            day=self.date,
            time=self.time,
        )


# === API Endpoints ===

@router.get("/check-availability")
def check_availability(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """
    List bookable slots between two ISO dates, inclusive.

    A calendar outage still answers 200, flagged ``calendarIntegration: "fallback"``.
    """
    logger.info("Checking availability for %s..%s", startDate, endDate)
    result = services.resolver.resolve_strings(startDate, endDate)

    body = {
        "success": True,
        "availableSlots": [slot.to_dict() for slot in result.slots],
        "busySlots": result.busy_count,
        "message": f"Found {len(result.slots)} available slots",
        "calendarIntegration": result.calendar_integration,
    }
    if result.degraded:
        body["note"] = "Calendar integration unavailable - showing all business hour slots as available"
    return body


@router.post("/appointments")
def book_appointment(
    payload: AppointmentPayload,
    services: Services = Depends(get_services),
):
    """Book one slot. Conflicts and invalid slots are mapped by the app's error handlers."""
    result = services.booking.book(payload.to_request())

    body = {
        "success": result.success,
        "type": result.type,
        "message": result.message,
        "eventId": result.event_id,
    }
    if not result.success:
        return JSONResponse(status_code=503, content=body)
    return body
