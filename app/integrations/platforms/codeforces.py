"""Codeforces adapter (https://codeforces.com/apiHelp/methods#contest.list)."""

from datetime import UTC, datetime, timedelta

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.integrations.platforms.base import (
    ContestWindowMixin,
    PlatformConfig,
    PlatformHttpClient,
    PlatformUnavailableError,
    parse_records,
    started_within,
    unix_to_datetime,
)
from app.models.domain.contest_domain import Contest, Platform

logger = get_logger(__name__)

CODEFORCES_CONTEST_LIST_URL = "https://codeforces.com/api/contest.list"
CODEFORCES_CONTEST_URL = "https://codeforces.com/contest/{id}"
CODEFORCES_CONTEST_TYPES = {"CF", "IOI", "ICPC"}


def parse_codeforces_contest(raw: dict) -> Contest:
    start_seconds = raw.get("startTimeSeconds")
    if start_seconds is None:
        raise ValueError("missing startTimeSeconds")

    start_time = unix_to_datetime(start_seconds)
    contest_id = str(raw["id"])
    contest_type = raw.get("type")

    return Contest(
        platform=Platform.CODEFORCES,
        external_id=contest_id,
        name=raw["name"],
        start_time=start_time,
        end_time=start_time + timedelta(seconds=int(raw["durationSeconds"])),
        website_url=CODEFORCES_CONTEST_URL.format(id=contest_id),
        contest_type=contest_type if contest_type in CODEFORCES_CONTEST_TYPES else "CF",
        platform_metadata={
            "phase": raw.get("phase"),
            "frozen": raw.get("frozen"),
            "relativeTimeSeconds": raw.get("relativeTimeSeconds"),
        },
        last_synced_at=datetime.now(UTC),
    )


class CodeforcesAdapter(ContestWindowMixin):
    platform = Platform.CODEFORCES

    def __init__(
        self,
        config: PlatformConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        lookback_days: int | None = None,
    ):
        self.config = config or PlatformConfig.from_settings(self.platform)
        self.lookback_days = lookback_days or settings.PLATFORM_LOOKBACK_DAYS
        self._client = PlatformHttpClient(self.platform, self.config, transport)

    async def fetch_contests(self) -> list[Contest]:
        logger.info("Fetching contests", platform=self.platform.value)

        data = await self._client.request_json("GET", CODEFORCES_CONTEST_LIST_URL)

        if not isinstance(data, dict) or data.get("status") != "OK":
            raise PlatformUnavailableError(
                f"Codeforces API returned error status: {data.get('comment') if isinstance(data, dict) else data}",
                platform=self.platform,
                attempts=1,
            )

        contests = parse_records(self.platform, data.get("result") or [], parse_codeforces_contest)
        contests = started_within(contests, datetime.now(UTC), self.lookback_days)

        logger.info("Fetched contests", platform=self.platform.value, count=len(contests))
        return contests

    async def health_check(self) -> bool:
        return await self._client.probe("GET", CODEFORCES_CONTEST_LIST_URL)
