"""
Shared contract and HTTP plumbing for contest platform adapters.

Every adapter satisfies the PlatformAdapter protocol and owns a
PlatformHttpClient for its outbound calls. Adapters hold no shared state;
they are registered in a lookup table keyed by Platform (see registry.py).
"""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol, runtime_checkable

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contest_domain import Contest, Platform

logger = get_logger(__name__)


class PlatformUnavailableError(Exception):
    """A platform API could not be reached after exhausting retries."""

    def __init__(self, message: str, platform: Platform, attempts: int = 0):
        super().__init__(message)
        self.platform = platform
        self.attempts = attempts


class MalformedContestDataError(Exception):
    """A single contest record from a platform could not be parsed."""

    def __init__(self, message: str, platform: Platform, raw_id: str | None = None):
        super().__init__(message)
        self.platform = platform
        self.raw_id = raw_id


@runtime_checkable
class PlatformAdapter(Protocol):
    platform: Platform

    async def fetch_contests(self) -> list[Contest]: ...

    async def fetch_upcoming_contests(self) -> list[Contest]: ...

    async def fetch_running_contests(self) -> list[Contest]: ...

    async def health_check(self) -> bool: ...


@dataclass(slots=True)
class PlatformConfig:
    enabled: bool = True
    timeout: float = 15.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    user_agent: str = "CodeNotify/1.0"

    @classmethod
    def from_settings(cls, platform: Platform) -> "PlatformConfig":
        return cls(**settings.get_platform_config(platform.value))


class PlatformHttpClient:
    """
    Outbound HTTP for one platform: bounded timeout, User-Agent header and
    sequential retries with linearly increasing delay (retry_delay * attempt).
    """

    def __init__(
        self,
        platform: Platform,
        config: PlatformConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.platform = platform
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent},
            transport=self._transport,
        )

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        json: dict | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Perform a request and decode its JSON body, retrying on failure.

        Raises:
            PlatformUnavailableError: After the final failed attempt
        """
        max_attempts = max(self.config.retry_attempts, 1)
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                async with self._client() as client:
                    response = await client.request(method, url, json=json, headers=headers)
                    response.raise_for_status()
                    return response.json()

            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc
                logger.warning(
                    "Platform request failed",
                    platform=self.platform.value,
                    url=url,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

                if attempt < max_attempts:
                    await asyncio.sleep(self.config.retry_delay * attempt)

        raise PlatformUnavailableError(
            f"Failed to fetch data from {self.platform.value} after {max_attempts} attempts: "
            f"{last_error}",
            platform=self.platform,
            attempts=max_attempts,
        ) from last_error

    async def probe(
        self,
        method: str,
        url: str,
        *,
        json: dict | None = None,
        headers: dict[str, str] | None = None,
    ) -> bool:
        """Single lightweight request; never raises."""
        try:
            async with self._client() as client:
                response = await client.request(method, url, json=json, headers=headers)
                return response.is_success
        except httpx.HTTPError as exc:
            logger.error(
                "Platform health check failed",
                platform=self.platform.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False


class ContestWindowMixin:
    """Upcoming/running views over fetch_contests(). Stateless."""

    async def fetch_upcoming_contests(self) -> list[Contest]:
        now = datetime.now(UTC)
        return [c for c in await self.fetch_contests() if c.is_upcoming(now)]

    async def fetch_running_contests(self) -> list[Contest]:
        now = datetime.now(UTC)
        return [c for c in await self.fetch_contests() if c.is_running(now)]


def unix_to_datetime(timestamp: int | float) -> datetime:
    return datetime.fromtimestamp(int(timestamp), tz=UTC)


def started_within(contests: list[Contest], now: datetime, days: int) -> list[Contest]:
    """Drop contests that started more than `days` ago."""
    cutoff = now - timedelta(days=days)
    return [c for c in contests if c.start_time >= cutoff]


def parse_records(
    platform: Platform,
    records: Iterable[Any],
    parse: Callable[[Any], Contest],
    id_key: str = "id",
) -> list[Contest]:
    """
    Map raw platform records to Contests, skipping (and logging) any record
    that fails to parse.
    """
    contests: list[Contest] = []
    skipped = 0

    for raw in records:
        raw_id = str(raw.get(id_key)) if isinstance(raw, dict) and raw.get(id_key) else None
        try:
            contests.append(parse(raw))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            error = MalformedContestDataError(str(exc), platform=platform, raw_id=raw_id)
            skipped += 1
            logger.warning(
                "Skipping malformed contest record",
                platform=platform.value,
                raw_id=error.raw_id,
                error=str(error),
                error_type=type(exc).__name__,
            )

    if skipped:
        logger.info(
            "Contest records skipped during parsing",
            platform=platform.value,
            skipped=skipped,
            parsed=len(contests),
        )

    return contests
