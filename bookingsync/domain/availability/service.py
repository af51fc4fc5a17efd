"""Availability service - cached month/day/range views over Acuity availability"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date as date_type
from typing import Any, Optional

from ...cache import TTLCache
from ...config import (
    AVAILABILITY_CACHE_MAX_ENTRIES,
    AVAILABILITY_CACHE_TTL_SECONDS,
    AVAILABILITY_MAX_RANGE_DAYS,
    AVAILABILITY_RANGE_CONCURRENCY,
)
from ...errors import ProviderTimeoutError, UpstreamError, ValidationError
from ...services.acuity_client import AcuityClient
from ...shared.time_utils import months_between, normalize_offset
from ...shared.validators import (
    validate_appointment_type_id,
    validate_date,
    validate_month,
    validate_timezone,
)

logger = logging.getLogger(__name__)

# Process-wide caches; each request builds a service around these
month_cache = TTLCache(ttl=AVAILABILITY_CACHE_TTL_SECONDS, maxsize=AVAILABILITY_CACHE_MAX_ENTRIES)
day_cache = TTLCache(ttl=AVAILABILITY_CACHE_TTL_SECONDS, maxsize=AVAILABILITY_CACHE_MAX_ENTRIES)


@dataclass
class CachedLookup:
    data: Any
    cached: bool


def _month_key(appointment_type_id: str, timezone: str, month: str) -> str:
    return f"month:{appointment_type_id}:{timezone}:{month}"


def _day_key(appointment_type_id: str, timezone: str, date: str) -> str:
    return f"day:{appointment_type_id}:{timezone}:{date}"


class AvailabilityService:
    """Aggregates Acuity availability into month, day and range shapes"""

    def __init__(
        self,
        client: AcuityClient,
        months: Optional[TTLCache] = None,
        days: Optional[TTLCache] = None,
        max_concurrency: int = AVAILABILITY_RANGE_CONCURRENCY,
    ):
        self.client = client
        self.month_cache = months if months is not None else month_cache
        self.day_cache = days if days is not None else day_cache
        self.max_concurrency = max_concurrency

    async def get_month(self, appointment_type_id: str, timezone: str, month: str) -> CachedLookup:
        """Available dates for one month, straight from Acuity (cached)"""
        appointment_type_id = validate_appointment_type_id(appointment_type_id)
        validate_timezone(timezone)
        validate_month(month)

        key = _month_key(appointment_type_id, timezone, month)
        cached = self.month_cache.get(key)
        if cached is not None:
            return CachedLookup(data=cached, cached=True)

        dates = await self.client.list_dates(appointment_type_id, month, timezone)
        self.month_cache.set(key, dates)
        logger.info(f"📅 Loaded {len(dates)} available dates for type {appointment_type_id} in {month}")
        return CachedLookup(data=dates, cached=False)

    async def get_day(self, appointment_type_id: str, timezone: str, date: str) -> CachedLookup:
        """Normalized, ordered slot instants for one date (cached)"""
        appointment_type_id = validate_appointment_type_id(appointment_type_id)
        validate_timezone(timezone)
        validate_date(date)

        key = _day_key(appointment_type_id, timezone, date)
        cached = self.day_cache.get(key)
        if cached is not None:
            return CachedLookup(data=cached, cached=True)

        raw_times = await self.client.list_times(appointment_type_id, date, timezone)
        times = sorted(normalize_offset(t) for t in raw_times)
        self.day_cache.set(key, times)
        return CachedLookup(data=times, cached=False)

    async def _times_or_empty(
        self, semaphore: asyncio.Semaphore, appointment_type_id: str, timezone: str, date: str
    ) -> list[str]:
        try:
            async with semaphore:
                return (await self.get_day(appointment_type_id, timezone, date)).data
        except (UpstreamError, ProviderTimeoutError) as e:
            logger.warning(
                f"⚠️ Time lookup failed for type {appointment_type_id} on {date}, returning no slots: {e}"
            )
            return []

    async def get_range(
        self, appointment_type_id: str, timezone: str, start_date: str, end_date: str
    ) -> dict:
        """
        Dates and per-date slots for an inclusive date range.

        Month lookups must all succeed. Per-date time lookups run concurrently,
        at most ``max_concurrency`` at a time, and a failed date degrades to an
        empty slot list instead of failing the whole range. Ranges longer than
        AVAILABILITY_MAX_RANGE_DAYS are rejected.
        """
        appointment_type_id = validate_appointment_type_id(appointment_type_id)
        validate_timezone(timezone)
        validate_date(start_date, "startDate")
        validate_date(end_date, "endDate")
        if start_date > end_date:
            raise ValidationError(
                "startDate must be on or before endDate",
                code="INVALID_RANGE",
                details={"startDate": start_date, "endDate": end_date},
            )
        span_days = (date_type.fromisoformat(end_date) - date_type.fromisoformat(start_date)).days + 1
        if span_days > AVAILABILITY_MAX_RANGE_DAYS:
            raise ValidationError(
                f"Date range cannot exceed {AVAILABILITY_MAX_RANGE_DAYS} days",
                code="INVALID_RANGE",
                details={"startDate": start_date, "endDate": end_date, "days": span_days},
            )

        months = months_between(start_date, end_date)
        month_results = await asyncio.gather(
            *(self.get_month(appointment_type_id, timezone, m) for m in months)
        )

        dates = sorted(
            {d for result in month_results for d in result.data if start_date <= d <= end_date}
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        slot_lists = await asyncio.gather(
            *(self._times_or_empty(semaphore, appointment_type_id, timezone, d) for d in dates)
        )
        times = dict(zip(dates, slot_lists))

        empty = [d for d, slots in times.items() if not slots]
        if empty:
            logger.info(f"📅 Range {start_date}..{end_date}: {len(empty)} of {len(dates)} dates have no slots")

        return {"dates": dates, "times": times}

    def invalidate(self, appointment_type_id: str) -> int:
        """Drop every cached month/day entry for an appointment type"""
        removed = self.month_cache.delete_prefix(f"month:{appointment_type_id}:")
        removed += self.day_cache.delete_prefix(f"day:{appointment_type_id}:")
        return removed
