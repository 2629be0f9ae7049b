from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol


@dataclass
class AppointmentSegment:
    duration_minutes: Optional[int]
    service_variation_id: Optional[str]
    team_member_id: Optional[str]


@dataclass
class Booking:
    id: str
    status: str
    start_at: Optional[datetime]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    customer_note: Optional[str] = None
    appointment_segments: List[AppointmentSegment] = field(default_factory=list)

    @property
    def is_cancelled(self) -> bool:
        return self.status.startswith("CANCELLED")


class BookingPlatform(Protocol):
    """Customer and booking operations of the external booking platform.

    Every method raises BookingPlatformError on transport failures and non-2xx
    responses.
    """

    def create_customer(self, idempotency_key: str, given_name: str, family_name: str, phone_number: str, email: Optional[str]) -> str:
        ...

    def update_customer(self, customer_id: str, given_name: str, family_name: str, email: Optional[str]) -> None:
        ...

    def list_bookings(self, customer_id: str, location_id: Optional[str] = None, start_at_min: Optional[datetime] = None, start_at_max: Optional[datetime] = None) -> List[Booking]:
        ...
