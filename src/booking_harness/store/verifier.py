"""Booking verification against the Supabase REST API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from booking_harness.config import HarnessConfig
from booking_harness.errors import StoreQueryError
from booking_harness.types import Verification, VerificationCriteria

logger = logging.getLogger(__name__)

APPOINTMENTS_PATH = "/rest/v1/appointments"
APPOINTMENT_SELECT = "*,services(name),users(full_name),providers(full_name)"


def build_appointment_query(criteria: VerificationCriteria) -> dict[str, str]:
    """PostgREST filters for the most recent matching booking."""
    return {
        "select": APPOINTMENT_SELECT,
        "user_id": f"eq.{criteria.subject_id}",
        "service_id": f"eq.{criteria.service_id}",
        "provider_id": f"eq.{criteria.provider_id}",
        "slot_start": f"gte.{criteria.not_before}",
        "order": "created_at.desc",
        "limit": "1",
    }


def _display_name(record: dict[str, Any], relation: str, column: str) -> str | None:
    related = record.get(relation)
    if isinstance(related, dict):
        value = related.get(column)
        return str(value) if value is not None else None
    return None


def describe_booking(record: dict[str, Any]) -> str:
    service = _display_name(record, "services", "name")
    provider = _display_name(record, "providers", "full_name")
    return f"Booking confirmed: {service} with {provider} on {record.get('slot_start')}"


class BookingVerifier:
    """Read-only lookup of the booking a scenario should have produced."""

    def __init__(
        self,
        config: HarnessConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store_url, self._store_key = config.require_store()
        self._timeout = config.request_timeout
        self._client = client

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def verify(self, criteria: VerificationCriteria) -> Verification:
        """Return the latest booking matching ``criteria``.

        Zero matching rows is a normal ``found=False`` outcome. Raises
        StoreQueryError when the query itself fails.
        """
        headers = {
            "apikey": self._store_key,
            "Authorization": f"Bearer {self._store_key}",
            "Accept": "application/json",
        }
        url = f"{self._store_url}{APPOINTMENTS_PATH}"
        try:
            async with self._http() as client:
                response = await client.get(
                    url,
                    params=build_appointment_query(criteria),
                    headers=headers,
                    timeout=self._timeout,
                )
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text or str(exc.response.status_code)
            logger.error(
                "store.query_failed",
                extra={"status": exc.response.status_code, "error": detail},
            )
            raise StoreQueryError(
                f"appointments query failed with {exc.response.status_code}: {detail}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("store.query_failed", extra={"error": str(exc)})
            raise StoreQueryError(f"appointments query failed: {exc}") from exc
        except ValueError as exc:
            raise StoreQueryError("appointments query returned invalid JSON") from exc

        if not isinstance(rows, list):
            raise StoreQueryError("appointments query returned an unexpected payload")
        if not rows:
            logger.info("store.booking_not_found", extra={"user_id": criteria.subject_id})
            return Verification(found=False, reason="No booking found")

        booking = rows[0]
        if not isinstance(booking, dict):
            raise StoreQueryError("appointments query returned an unexpected row")
        logger.info(
            "store.booking_found",
            extra={
                "appointment_id": booking.get("appointment_id"),
                "slot_start": booking.get("slot_start"),
                "booking_status": booking.get("status"),
            },
        )
        return Verification(found=True, record=booking, message=describe_booking(booking))
