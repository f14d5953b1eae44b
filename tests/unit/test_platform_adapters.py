"""
Platform adapter tests against canned API responses (httpx.MockTransport).
"""

import json
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.integrations.platforms import base
from app.integrations.platforms.atcoder import AtCoderAdapter, classify_atcoder_contest
from app.integrations.platforms.base import PlatformConfig, PlatformUnavailableError
from app.integrations.platforms.codechef import CodeChefAdapter, classify_codechef_contest
from app.integrations.platforms.codeforces import CodeforcesAdapter
from app.integrations.platforms.leetcode import LeetCodeAdapter
from app.models.domain.contest_domain import Contest, DifficultyLevel, Platform

FAST = PlatformConfig(retry_attempts=3, retry_delay=0)


def _epoch(delta: timedelta) -> int:
    return int((datetime.now(UTC) + delta).timestamp())


def _json_transport(body, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler)


# Codeforces


def _codeforces_body(*contests):
    return {"status": "OK", "result": list(contests)}


def _cf_contest(contest_id=2050, starts_in=timedelta(days=2), **extra):
    raw = {
        "id": contest_id,
        "name": f"Codeforces Round {contest_id}",
        "type": "CF",
        "phase": "BEFORE",
        "frozen": False,
        "durationSeconds": 7200,
        "startTimeSeconds": _epoch(starts_in),
        "relativeTimeSeconds": -3600,
    }
    raw.update(extra)
    return raw


@pytest.mark.asyncio
async def test_codeforces_parses_contests():
    seen = []
    adapter = CodeforcesAdapter(
        config=FAST, transport=_json_transport(_codeforces_body(_cf_contest()), seen=seen)
    )

    contests = await adapter.fetch_contests()

    assert len(contests) == 1
    contest = contests[0]
    assert contest.platform is Platform.CODEFORCES
    assert contest.external_id == "2050"
    assert contest.duration_minutes == 120
    assert contest.website_url == "https://codeforces.com/contest/2050"
    assert contest.contest_type == "CF"
    assert contest.platform_metadata["phase"] == "BEFORE"
    assert seen[0].headers["User-Agent"] == FAST.user_agent


@pytest.mark.asyncio
async def test_codeforces_skips_malformed_and_old_contests():
    body = _codeforces_body(
        _cf_contest(1),
        _cf_contest(2, startTimeSeconds=None),
        {"id": 3, "name": "No duration", "startTimeSeconds": _epoch(timedelta(days=1))},
        _cf_contest(4, starts_in=-timedelta(days=45)),
        _cf_contest(5, type="ICPC"),
        _cf_contest(6, type="SOMETHING"),
    )
    adapter = CodeforcesAdapter(config=FAST, transport=_json_transport(body), lookback_days=30)

    contests = await adapter.fetch_contests()

    assert [c.external_id for c in contests] == ["1", "5", "6"]
    assert contests[1].contest_type == "ICPC"
    assert contests[2].contest_type == "CF"


@pytest.mark.asyncio
async def test_codeforces_error_status_is_unavailable():
    adapter = CodeforcesAdapter(
        config=FAST, transport=_json_transport({"status": "FAILED", "comment": "Call limit exceeded"})
    )

    with pytest.raises(PlatformUnavailableError) as exc_info:
        await adapter.fetch_contests()

    assert exc_info.value.platform is Platform.CODEFORCES
    assert "Call limit exceeded" in str(exc_info.value)


@pytest.mark.asyncio
async def test_retries_with_linear_delay_then_gives_up(monkeypatch):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="unavailable")

    sleep = AsyncMock()
    monkeypatch.setattr(base, "asyncio", SimpleNamespace(sleep=sleep))
    adapter = CodeforcesAdapter(
        config=PlatformConfig(retry_attempts=3, retry_delay=2.0),
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(PlatformUnavailableError) as exc_info:
        await adapter.fetch_contests()

    assert len(calls) == 3
    assert exc_info.value.attempts == 3
    assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]


@pytest.mark.asyncio
async def test_retry_recovers_after_transient_failure():
    responses = [
        httpx.Response(500),
        httpx.Response(200, json=_codeforces_body(_cf_contest())),
    ]

    adapter = CodeforcesAdapter(
        config=FAST, transport=httpx.MockTransport(lambda request: responses.pop(0))
    )

    contests = await adapter.fetch_contests()

    assert len(contests) == 1


@pytest.mark.asyncio
async def test_invalid_json_counts_as_failed_attempt():
    adapter = CodeforcesAdapter(
        config=PlatformConfig(retry_attempts=1, retry_delay=0),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")),
    )

    with pytest.raises(PlatformUnavailableError):
        await adapter.fetch_contests()


@pytest.mark.asyncio
async def test_health_check_never_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    adapter = CodeforcesAdapter(config=FAST, transport=httpx.MockTransport(handler))

    assert await adapter.health_check() is False


@pytest.mark.asyncio
async def test_upcoming_and_running_views():
    body = _codeforces_body(
        _cf_contest(1, starts_in=timedelta(hours=5)),
        _cf_contest(2, starts_in=-timedelta(minutes=30)),
        _cf_contest(3, starts_in=-timedelta(days=3)),
    )
    adapter = CodeforcesAdapter(config=FAST, transport=_json_transport(body))

    upcoming = await adapter.fetch_upcoming_contests()
    running = await adapter.fetch_running_contests()

    assert [c.external_id for c in upcoming] == ["1"]
    assert [c.external_id for c in running] == ["2"]


# LeetCode


@pytest.mark.asyncio
async def test_leetcode_posts_graphql_query_with_headers():
    seen = []
    body = {
        "data": {
            "allContests": [
                {
                    "title": "Weekly Contest 450",
                    "titleSlug": "weekly-contest-450",
                    "startTime": _epoch(timedelta(days=3)),
                    "duration": 5400,
                    "originStartTime": _epoch(timedelta(days=3)),
                    "isVirtual": False,
                    "description": "",
                },
                {
                    "title": "Biweekly Contest 160",
                    "titleSlug": "biweekly-contest-160",
                    "startTime": _epoch(timedelta(days=9)),
                    "duration": 5400,
                },
                {"title": "Broken", "titleSlug": "broken"},
            ]
        }
    }
    adapter = LeetCodeAdapter(config=FAST, transport=_json_transport(body, seen=seen))

    contests = await adapter.fetch_contests()

    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Origin"] == "https://leetcode.com"
    assert request.headers["Referer"] == "https://leetcode.com/contest/"
    assert "allContests" in json.loads(request.content)["query"]

    assert [c.external_id for c in contests] == ["weekly-contest-450", "biweekly-contest-160"]
    assert [c.contest_type for c in contests] == ["WEEKLY", "BIWEEKLY"]
    assert contests[0].description is None
    assert contests[0].website_url == "https://leetcode.com/contest/weekly-contest-450"


@pytest.mark.asyncio
async def test_leetcode_graphql_errors_are_unavailable():
    adapter = LeetCodeAdapter(
        config=FAST, transport=_json_transport({"errors": [{"message": "rate limited"}]})
    )

    with pytest.raises(PlatformUnavailableError):
        await adapter.fetch_contests()


# CodeChef


def _codechef_contest(code, name, starts_in=timedelta(days=1)):
    start = datetime.now(UTC) + starts_in
    return {
        "contest_code": code,
        "contest_name": name,
        "contest_start_date_iso": start.isoformat(),
        "contest_end_date_iso": (start + timedelta(hours=2)).isoformat(),
        "distinct_users": 12000,
    }


@pytest.mark.parametrize(
    ("name", "code", "expected"),
    [
        ("Starters 180", "START180", "STARTERS"),
        ("June Lunchtime 2026", "LTIME140", "LUNCH_TIME"),
        ("June Cook-Off 2026", "COOK160", "COOK_OFF"),
        ("June Long Challenge", "JUNE26", "LONG"),
    ],
)
def test_classify_codechef_contest(name, code, expected):
    assert classify_codechef_contest(name, code) == expected


@pytest.mark.asyncio
async def test_codechef_keeps_only_recent_past_contests():
    body = {
        "status": "success",
        "present_contests": [_codechef_contest("START180", "Starters 180", -timedelta(minutes=30))],
        "future_contests": [_codechef_contest("START181", "Starters 181", timedelta(days=7))],
        "past_contests": [
            _codechef_contest(f"START{n}", f"Starters {n}", -timedelta(days=200 - n)) for n in range(170, 175)
        ],
    }
    adapter = CodeChefAdapter(config=FAST, transport=_json_transport(body), past_contests_limit=2)

    contests = await adapter.fetch_contests()

    assert [c.external_id for c in contests] == ["START180", "START181", "START170", "START171"]
    assert contests[0].difficulty is DifficultyLevel.BEGINNER
    assert contests[0].participant_count == 12000
    assert contests[0].website_url == "https://www.codechef.com/START180"


@pytest.mark.asyncio
async def test_codechef_non_success_status_is_unavailable():
    adapter = CodeChefAdapter(config=FAST, transport=_json_transport({"status": "error"}))

    with pytest.raises(PlatformUnavailableError):
        await adapter.fetch_contests()


# AtCoder


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("AtCoder Beginner Contest 400", "ABC"),
        ("AtCoder Regular Contest 190", "ARC"),
        ("AtCoder Grand Contest 070", "AGC"),
        ("AtCoder Heuristic Contest 045", "AHC"),
        ("Japan Programming Contest", "ABC"),
    ],
)
def test_classify_atcoder_contest(title, expected):
    assert classify_atcoder_contest(title) == expected


@pytest.mark.asyncio
async def test_atcoder_parses_dataset():
    body = [
        {
            "id": "agc070",
            "title": "AtCoder Grand Contest 070",
            "start_epoch_second": _epoch(timedelta(days=4)),
            "duration_second": 10800,
            "rate_change": "1200 -",
        },
        {"id": "bad", "title": "Missing start"},
    ]
    adapter = AtCoderAdapter(config=FAST, transport=_json_transport(body))

    contests = await adapter.fetch_contests()

    assert len(contests) == 1
    assert contests[0].difficulty is DifficultyLevel.EXPERT
    assert contests[0].duration_minutes == 180
    assert contests[0].website_url == "https://atcoder.jp/contests/agc070"


@pytest.mark.asyncio
async def test_atcoder_non_list_is_unavailable():
    adapter = AtCoderAdapter(config=FAST, transport=_json_transport({"message": "moved"}))

    with pytest.raises(PlatformUnavailableError):
        await adapter.fetch_contests()


def test_parse_records_skips_and_logs_bad_records(monkeypatch):
    logger = MagicMock()
    monkeypatch.setattr(base, "logger", logger)

    def parse(raw):
        return Contest(
            platform=Platform.ATCODER,
            external_id=raw["id"],
            name=raw["title"],
            start_time=datetime(2026, 3, 2, tzinfo=UTC),
            end_time=datetime(2026, 3, 2, 2, tzinfo=UTC),
        )

    records = [{"id": "abc400", "title": "ABC 400"}, {"id": "abc401"}, "not-a-record"]

    contests = base.parse_records(Platform.ATCODER, records, parse)

    assert [c.external_id for c in contests] == ["abc400"]
    skipped = [c.kwargs for c in logger.warning.call_args_list]
    assert [entry["raw_id"] for entry in skipped] == ["abc401", None]
    assert [entry["error_type"] for entry in skipped] == ["KeyError", "TypeError"]
    assert logger.info.call_args.kwargs["skipped"] == 2
