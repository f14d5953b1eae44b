"""LeetCode adapter over the public GraphQL endpoint."""

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

LEETCODE_GRAPHQL_URL = "https://leetcode.com/graphql"
LEETCODE_CONTEST_URL = "https://leetcode.com/contest/{slug}"
LEETCODE_HEADERS = {
    "Content-Type": "application/json",
    "Origin": "https://leetcode.com",
    "Referer": "https://leetcode.com/contest/",
}

ALL_CONTESTS_QUERY = """
query allContests {
  allContests {
    title
    titleSlug
    startTime
    duration
    originStartTime
    isVirtual
    description
  }
}
"""

HEALTH_QUERY = "query { allContests { titleSlug } }"


def _contest_type(title: str) -> str:
    return "BIWEEKLY" if "biweekly" in title.lower() else "WEEKLY"


def parse_leetcode_contest(raw: dict) -> Contest:
    start_time = unix_to_datetime(raw["startTime"])
    slug = raw["titleSlug"]

    return Contest(
        platform=Platform.LEETCODE,
        external_id=slug,
        name=raw["title"],
        start_time=start_time,
        end_time=start_time + timedelta(seconds=int(raw["duration"])),
        website_url=LEETCODE_CONTEST_URL.format(slug=slug),
        description=raw.get("description") or None,
        contest_type=_contest_type(raw["title"]),
        platform_metadata={
            "titleSlug": slug,
            "isVirtual": raw.get("isVirtual"),
            "originStartTime": raw.get("originStartTime"),
        },
        last_synced_at=datetime.now(UTC),
    )


class LeetCodeAdapter(ContestWindowMixin):
    platform = Platform.LEETCODE

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

        data = await self._client.request_json(
            "POST",
            LEETCODE_GRAPHQL_URL,
            json={"query": ALL_CONTESTS_QUERY},
            headers=LEETCODE_HEADERS,
        )

        if not isinstance(data, dict) or data.get("errors"):
            raise PlatformUnavailableError(
                "LeetCode GraphQL returned errors",
                platform=self.platform,
                attempts=1,
            )

        records = (data.get("data") or {}).get("allContests") or []
        contests = parse_records(self.platform, records, parse_leetcode_contest, id_key="titleSlug")
        contests = started_within(contests, datetime.now(UTC), self.lookback_days)

        logger.info("Fetched contests", platform=self.platform.value, count=len(contests))
        return contests

    async def health_check(self) -> bool:
        return await self._client.probe(
            "POST", LEETCODE_GRAPHQL_URL, json={"query": HEALTH_QUERY}, headers=LEETCODE_HEADERS
        )
