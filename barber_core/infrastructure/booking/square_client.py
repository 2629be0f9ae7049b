"""
Square booking platform client
Creates/updates Square customers and lists their bookings over the Square REST API
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ...application.ports.booking_platform import AppointmentSegment, Booking, BookingPlatform
from ...core.config import Settings
from ...exceptions import BookingPlatformError

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _format_timestamp(value: datetime) -> str:
    # Square wants RFC 3339; naive values are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _to_booking(raw: Dict[str, Any]) -> Booking:
    return Booking(
        id=raw["id"],
        status=raw.get("status", "UNKNOWN"),
        start_at=_parse_timestamp(raw.get("start_at")),
        created_at=_parse_timestamp(raw.get("created_at")),
        updated_at=_parse_timestamp(raw.get("updated_at")),
        customer_note=raw.get("customer_note"),
        appointment_segments=[
            AppointmentSegment(
                duration_minutes=segment.get("duration_minutes"),
                service_variation_id=segment.get("service_variation_id"),
                team_member_id=segment.get("team_member_id"),
            )
            for segment in raw.get("appointment_segments", [])
        ],
    )


class SquareBookingClient(BookingPlatform):
    """Thin synchronous wrapper around the Square Customers and Bookings APIs.

    The underlying ``httpx.Client`` is created once by the application factory
    and closed on shutdown.
    """

    def __init__(self, http_client: httpx.Client):
        self.http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "SquareBookingClient":
        http_client = httpx.Client(
            base_url=settings.square_base_url,
            timeout=settings.SQUARE_TIMEOUT_SECONDS,
            headers={
                "Square-Version": settings.SQUARE_API_VERSION,
                "Authorization": f"Bearer {settings.SQUARE_ACCESS_TOKEN}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )
        return cls(http_client)

    def close(self) -> None:
        self.http.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Square {method} {path} failed: {e}")
            raise BookingPlatformError(f"Square request failed: {e}") from e

        if response.status_code not in (200, 201):
            logger.error(f"Square {method} {path} returned {response.status_code}: {response.text}")
            raise BookingPlatformError(
                f"Square returned {response.status_code}", status_code=response.status_code
            )
        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Square {method} {path} returned a non-JSON body: {response.text[:200]}")
            raise BookingPlatformError("Square returned a malformed response") from e
        if not isinstance(payload, dict):
            raise BookingPlatformError("Square returned a malformed response")
        return payload

    def create_customer(self, idempotency_key: str, given_name: str, family_name: str, phone_number: str, email: Optional[str]) -> str:
        customer_data = {
            "idempotency_key": idempotency_key,
            "given_name": given_name,
            "family_name": family_name,
            "phone_number": phone_number,
            "email_address": email,
        }
        # Remove None values
        customer_data = {k: v for k, v in customer_data.items() if v is not None}

        result = self._request("POST", "/customers", json=customer_data)
        customer = result.get("customer")
        customer_id = customer.get("id") if isinstance(customer, dict) else None
        if not customer_id:
            raise BookingPlatformError("No customer ID returned from Square")

        logger.info(f"Square customer created: {customer_id}")
        return customer_id

    def update_customer(self, customer_id: str, given_name: str, family_name: str, email: Optional[str]) -> None:
        customer_data = {
            "given_name": given_name,
            "family_name": family_name,
            "email_address": email,
        }
        customer_data = {k: v for k, v in customer_data.items() if v is not None}
        self._request("PUT", f"/customers/{customer_id}", json=customer_data)

    def list_bookings(self, customer_id: str, location_id: Optional[str] = None, start_at_min: Optional[datetime] = None, start_at_max: Optional[datetime] = None) -> List[Booking]:
        params: Dict[str, Any] = {"customer_id": customer_id}
        if location_id:
            params["location_id"] = location_id
        if start_at_min:
            params["start_at_min"] = _format_timestamp(start_at_min)
        if start_at_max:
            params["start_at_max"] = _format_timestamp(start_at_max)

        bookings: List[Booking] = []
        while True:
            result = self._request("GET", "/bookings", params=params)
            try:
                bookings.extend(_to_booking(raw) for raw in result.get("bookings") or [])
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                logger.error(f"Square booking list for customer {customer_id} was malformed: {e}")
                raise BookingPlatformError("Square returned a malformed booking") from e
            cursor = result.get("cursor")
            if not cursor:
                return bookings
            params["cursor"] = cursor
