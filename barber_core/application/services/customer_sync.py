import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..ports.audit_logger import AuditLogger
from ..ports.booking_platform import BookingPlatform
from ..ports.user_repo import UserDto, UserRepository
from ...exceptions import BookingPlatformError, ExternalServiceUnavailable

logger = logging.getLogger(__name__)


def customer_idempotency_key(phone_number: str, anchor: datetime, bucket_minutes: int) -> str:
    """Deterministic key for creating the remote customer of one registration.

    Every retry for the same phone inside the same time bucket of the anchor
    instant yields the same key, so the platform can deduplicate the create.
    """
    if anchor.tzinfo is None:
        anchor = anchor.replace(tzinfo=timezone.utc)
    bucket = int(anchor.timestamp()) // (max(bucket_minutes, 1) * 60)
    digest = hashlib.sha256(f"{phone_number}:{bucket}".encode()).hexdigest()
    # Square caps idempotency keys at 45 characters
    return f"customer-{digest[:32]}"


@dataclass
class CustomerSyncService:
    user_repo: UserRepository
    platform: BookingPlatform
    audit: AuditLogger
    bucket_minutes: int = 60

    def ensure_external_customer(self, user: UserDto) -> Optional[str]:
        """Return the user's booking platform customer id, creating it if needed.

        Returns None when the platform could not be reached; authentication
        flows carry on and the next booking operation retries.
        """
        if user.external_customer_id:
            return user.external_customer_id
        if not user.is_customer:
            return None

        key = customer_idempotency_key(user.phone_number, user.created_at, self.bucket_minutes)
        try:
            remote_id = self.platform.create_customer(
                idempotency_key=key,
                given_name=user.first_name,
                family_name=user.last_name,
                phone_number=user.phone_number,
                email=user.email,
            )
        except BookingPlatformError as e:
            logger.warning(f"Booking platform degraded, customer sync deferred for user {user.id}: {e}")
            self.audit.log("customer_sync_deferred", user.phone_number, user.id, success=False, details={"error": str(e)})
            return None

        stored_id = self.user_repo.set_external_customer_id(user.id, remote_id)
        user.external_customer_id = stored_id
        self.audit.log("customer_synced", user.phone_number, user.id, details={"external_customer_id": stored_id})
        return stored_id

    def require_external_customer(self, user: UserDto) -> str:
        external_id = self.ensure_external_customer(user)
        if not external_id:
            raise ExternalServiceUnavailable()
        return external_id
