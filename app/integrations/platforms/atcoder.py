"""AtCoder adapter backed by the kenkoooo AtCoder Problems dataset."""

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
from app.models.domain.contest_domain import Contest, DifficultyLevel, Platform

logger = get_logger(__name__)

ATCODER_CONTESTS_URL = "https://kenkoooo.com/atcoder/resources/contests.json"
ATCODER_CONTEST_URL = "https://atcoder.jp/contests/{id}"

ATCODER_DIFFICULTY = {
    "ABC": DifficultyLevel.BEGINNER,
    "ARC": DifficultyLevel.MEDIUM,
    "AGC": DifficultyLevel.EXPERT,
    "AHC": DifficultyLevel.HARD,
}

# Checked in order; first match wins
_TYPE_MARKERS = (
    ("ABC", "BEGINNER"),
    ("ARC", "REGULAR"),
    ("AGC", "GRAND"),
    ("AHC", "HEURISTIC"),
)


def classify_atcoder_contest(title: str) -> str:
    title = title.upper()
    for contest_type, word in _TYPE_MARKERS:
        if contest_type in title or word in title:
            return contest_type
    return "ABC"


def parse_atcoder_contest(raw: dict) -> Contest:
    start_time = unix_to_datetime(raw["start_epoch_second"])
    contest_id = raw["id"]
    contest_type = classify_atcoder_contest(raw["title"])

    return Contest(
        platform=Platform.ATCODER,
        external_id=contest_id,
        name=raw["title"],
        start_time=start_time,
        end_time=start_time + timedelta(seconds=int(raw["duration_second"])),
        website_url=ATCODER_CONTEST_URL.format(id=contest_id),
        contest_type=contest_type,
        difficulty=ATCODER_DIFFICULTY[contest_type],
        platform_metadata={"rate_change": raw.get("rate_change"), "contest_id": contest_id},
        last_synced_at=datetime.now(UTC),
    )


class AtCoderAdapter(ContestWindowMixin):
    platform = Platform.ATCODER

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

        data = await self._client.request_json("GET", ATCODER_CONTESTS_URL)

        if not isinstance(data, list):
            raise PlatformUnavailableError(
                "AtCoder contest listing is not a JSON array",
                platform=self.platform,
                attempts=1,
            )

        contests = parse_records(self.platform, data, parse_atcoder_contest)
        contests = started_within(contests, datetime.now(UTC), self.lookback_days)

        logger.info("Fetched contests", platform=self.platform.value, count=len(contests))
        return contests

    async def health_check(self) -> bool:
        return await self._client.probe("GET", ATCODER_CONTESTS_URL)
