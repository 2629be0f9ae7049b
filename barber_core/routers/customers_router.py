from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
import logging

from .deps import customer_only, get_customer_service
from ..application.services.customer_service import CustomerService
from ..application.services.token_service import AccessClaims
from ..schemas import (
    BookingListResponse,
    BookingResponse,
    StatisticsData,
    StatisticsResponse,
    UpdateProfileRequest,
    UserEnvelope,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("/me", response_model=UserEnvelope)
def get_profile(
    claims: AccessClaims = Depends(customer_only),
    customer_service: CustomerService = Depends(get_customer_service),
):
    user = customer_service.get_profile(claims.sub)
    return UserEnvelope(message="OK", data=UserResponse.from_dto(user))


@router.put("/me", response_model=UserEnvelope)
def update_profile(
    body: UpdateProfileRequest,
    claims: AccessClaims = Depends(customer_only),
    customer_service: CustomerService = Depends(get_customer_service),
):
    user = customer_service.update_profile(claims.sub, body.first_name, body.last_name, body.email)
    return UserEnvelope(message="Profile updated successfully", data=UserResponse.from_dto(user))


@router.get("/me/bookings", response_model=BookingListResponse)
def get_bookings(
    status: Optional[str] = Query(None, description="Only bookings with this Square status, e.g. ACCEPTED"),
    start_at: Optional[datetime] = Query(None),
    end_at: Optional[datetime] = Query(None),
    claims: AccessClaims = Depends(customer_only),
    customer_service: CustomerService = Depends(get_customer_service),
):
    user = customer_service.get_profile(claims.sub)
    bookings = customer_service.get_bookings(user, status=status, start_at=start_at, end_at=end_at)
    return BookingListResponse(
        message=f"Found {len(bookings)} bookings",
        data=[BookingResponse.from_booking(b) for b in bookings],
    )


@router.get("/me/statistics", response_model=StatisticsResponse)
def get_statistics(
    claims: AccessClaims = Depends(customer_only),
    customer_service: CustomerService = Depends(get_customer_service),
):
    user = customer_service.get_profile(claims.sub)
    stats = customer_service.get_statistics(user)
    return StatisticsResponse(message="OK", data=StatisticsData.from_statistics(stats))
