"""CodeChef adapter."""

from datetime import UTC, datetime

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.integrations.platforms.base import (
    ContestWindowMixin,
    PlatformConfig,
    PlatformHttpClient,
    PlatformUnavailableError,
    parse_records,
)
from app.models.domain.contest_domain import Contest, DifficultyLevel, Platform

logger = get_logger(__name__)

CODECHEF_CONTESTS_URL = "https://www.codechef.com/api/list/contests/all"
CODECHEF_CONTEST_URL = "https://www.codechef.com/{code}"

CODECHEF_DIFFICULTY = {
    "STARTERS": DifficultyLevel.BEGINNER,
    "LUNCH_TIME": DifficultyLevel.MEDIUM,
    "COOK_OFF": DifficultyLevel.MEDIUM,
    "LONG": DifficultyLevel.HARD,
}


def classify_codechef_contest(name: str, code: str) -> str:
    name = name.lower()
    code = code.lower()

    if "starters" in name or "start" in code:
        return "STARTERS"
    if "lunchtime" in name or "lunch time" in name or "ltime" in code:
        return "LUNCH_TIME"
    if any(s in name for s in ("cookoff", "cook-off", "cook off")) or "cook" in code:
        return "COOK_OFF"
    return "LONG"


def parse_codechef_contest(raw: dict) -> Contest:
    code = raw["contest_code"]
    name = raw["contest_name"]
    contest_type = classify_codechef_contest(name, code)

    return Contest(
        platform=Platform.CODECHEF,
        external_id=code,
        name=name,
        start_time=datetime.fromisoformat(raw["contest_start_date_iso"]),
        end_time=datetime.fromisoformat(raw["contest_end_date_iso"]),
        website_url=CODECHEF_CONTEST_URL.format(code=code),
        contest_type=contest_type,
        difficulty=CODECHEF_DIFFICULTY[contest_type],
        participant_count=int(raw.get("distinct_users") or 0),
        platform_metadata={
            "contest_code": code,
            "contest_type": raw.get("contest_type"),
            "distinct_users": raw.get("distinct_users"),
        },
        last_synced_at=datetime.now(UTC),
    )


class CodeChefAdapter(ContestWindowMixin):
    platform = Platform.CODECHEF

    def __init__(
        self,
        config: PlatformConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        past_contests_limit: int | None = None,
    ):
        self.config = config or PlatformConfig.from_settings(self.platform)
        self.past_contests_limit = (
            past_contests_limit
            if past_contests_limit is not None
            else settings.CODECHEF_PAST_CONTESTS_LIMIT
        )
        self._client = PlatformHttpClient(self.platform, self.config, transport)

    async def fetch_contests(self) -> list[Contest]:
        logger.info("Fetching contests", platform=self.platform.value)

        data = await self._client.request_json("GET", CODECHEF_CONTESTS_URL)

        if not isinstance(data, dict) or data.get("status") != "success":
            raise PlatformUnavailableError(
                "CodeChef API returned non-success status",
                platform=self.platform,
                attempts=1,
            )

        # Only the most recent past contests are kept
        records = [
            *(data.get("present_contests") or []),
            *(data.get("future_contests") or []),
            *(data.get("past_contests") or [])[: self.past_contests_limit],
        ]
        contests = parse_records(self.platform, records, parse_codechef_contest, id_key="contest_code")

        logger.info("Fetched contests", platform=self.platform.value, count=len(contests))
        return contests

    async def health_check(self) -> bool:
        return await self._client.probe("GET", CODECHEF_CONTESTS_URL)
