import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from ..ports.booking_platform import Booking, BookingPlatform
from ..ports.user_repo import UserDto, UserRepository
from .customer_sync import CustomerSyncService
from ...exceptions import BookingPlatformError, ExternalServiceUnavailable, NotFound

logger = logging.getLogger(__name__)


@dataclass
class BookingStatistics:
    total: int
    upcoming: int
    past: int
    cancelled: int
    last_booking_at: Optional[datetime] = None
    next_booking_at: Optional[datetime] = None


@dataclass
class CustomerService:
    user_repo: UserRepository
    platform: BookingPlatform
    customer_sync: CustomerSyncService
    location_id: Optional[str] = None

    def get_profile(self, user_id: str) -> UserDto:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFound()
        return user

    def update_profile(self, user_id: str, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> UserDto:
        if email is not None:
            email = email.strip().lower()
        user = self.user_repo.update_profile(user_id, first_name, last_name, email)
        if user.external_customer_id:
            try:
                self.platform.update_customer(user.external_customer_id, user.first_name, user.last_name, user.email)
            except BookingPlatformError as e:
                logger.warning(f"Square customer {user.external_customer_id} not updated for user {user.id}: {e}")
        return user

    def get_bookings(self, user: UserDto, status: Optional[str] = None, start_at: Optional[datetime] = None, end_at: Optional[datetime] = None) -> List[Booking]:
        customer_id = self.customer_sync.require_external_customer(user)
        try:
            bookings = self.platform.list_bookings(
                customer_id,
                location_id=self.location_id or None,
                start_at_min=start_at,
                start_at_max=end_at,
            )
        except BookingPlatformError as e:
            logger.error(f"Failed to list bookings for user {user.id}: {e}")
            raise ExternalServiceUnavailable()

        if status:
            wanted = status.upper()
            bookings = [b for b in bookings if b.status == wanted]
        return bookings

    def get_statistics(self, user: UserDto, now: Optional[datetime] = None) -> BookingStatistics:
        now = now or datetime.now(timezone.utc)
        bookings = self.get_bookings(user)

        cancelled = [b for b in bookings if b.is_cancelled]
        active = [b for b in bookings if not b.is_cancelled and b.start_at is not None]
        upcoming = sorted((b.start_at for b in active if b.start_at > now))
        past = sorted((b.start_at for b in active if b.start_at <= now))

        return BookingStatistics(
            total=len(bookings),
            upcoming=len(upcoming),
            past=len(past),
            cancelled=len(cancelled),
            last_booking_at=past[-1] if past else None,
            next_booking_at=upcoming[0] if upcoming else None,
        )
