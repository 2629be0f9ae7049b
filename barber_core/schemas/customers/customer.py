# barber_core/schemas/customers/customer.py
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from ...application.ports.booking_platform import Booking
from ...application.services.customer_service import BookingStatistics


class AppointmentSegmentResponse(BaseModel):
    duration_minutes: Optional[int] = None
    service_variation_id: Optional[str] = None
    team_member_id: Optional[str] = None


class BookingResponse(BaseModel):
    id: str
    status: str
    start_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    customer_note: Optional[str] = None
    appointment_segments: List[AppointmentSegmentResponse] = []

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            status=booking.status,
            start_at=booking.start_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            customer_note=booking.customer_note,
            appointment_segments=[
                AppointmentSegmentResponse(
                    duration_minutes=s.duration_minutes,
                    service_variation_id=s.service_variation_id,
                    team_member_id=s.team_member_id,
                )
                for s in booking.appointment_segments
            ],
        )


class BookingListResponse(BaseModel):
    success: bool = True
    message: str
    data: List[BookingResponse]


class StatisticsData(BaseModel):
    total: int
    upcoming: int
    past: int
    cancelled: int
    last_booking_at: Optional[datetime] = None
    next_booking_at: Optional[datetime] = None

    @classmethod
    def from_statistics(cls, stats: BookingStatistics) -> "StatisticsData":
        return cls(
            total=stats.total,
            upcoming=stats.upcoming,
            past=stats.past,
            cancelled=stats.cancelled,
            last_booking_at=stats.last_booking_at,
            next_booking_at=stats.next_booking_at,
        )


class StatisticsResponse(BaseModel):
    success: bool = True
    message: str
    data: StatisticsData
