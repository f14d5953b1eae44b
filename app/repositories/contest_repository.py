"""
Contest store.

Contests are keyed by (platform, external_id). Upsert is a single
INSERT ... ON CONFLICT statement, so repeated syncs of the same external
contest always land on the same row.
"""

from datetime import datetime
from typing import Protocol

from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contest_domain import Contest, Platform

logger = get_logger(__name__)


class ContestStore(Protocol):
    async def upsert(self, contest: Contest) -> bool: ...

    async def query_by_time_range(
        self, start: datetime, end: datetime, platform: Platform | None = None
    ) -> list[Contest]: ...

    async def find_upcoming(self, now: datetime, platform: Platform | None = None) -> list[Contest]: ...

    async def find_running(self, now: datetime, platform: Platform | None = None) -> list[Contest]: ...

    async def find_finished(self, now: datetime, platform: Platform | None = None) -> list[Contest]: ...

    async def get(self, contest_id: str) -> Contest | None: ...

    async def get_by_external_id(self, platform: Platform, external_id: str) -> Contest | None: ...

    async def delete_older_than(self, cutoff: datetime) -> int: ...


class ContestRepository:
    """PostgreSQL-backed ContestStore."""

    SELECT_COLUMNS = """
        id, platform, external_id, name, start_time, end_time,
        website_url, registration_url, difficulty, description,
        contest_type, participant_count, platform_metadata, last_synced_at
    """

    @classmethod
    def _row_to_contest(cls, row: dict | None) -> Contest | None:
        if not row:
            return None

        return Contest(
            id=str(row["id"]),
            platform=row["platform"],
            external_id=row["external_id"],
            name=row["name"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            website_url=row.get("website_url"),
            registration_url=row.get("registration_url"),
            difficulty=row.get("difficulty"),
            description=row.get("description"),
            contest_type=row.get("contest_type"),
            participant_count=row.get("participant_count"),
            platform_metadata=row.get("platform_metadata") or {},
            last_synced_at=row.get("last_synced_at"),
        )

    @staticmethod
    def _platform_filter(platform: Platform | None, params: list) -> str:
        if platform is None:
            return ""
        params.append(platform.value)
        return " AND platform = %s"

    @with_db_retry(max_retries=2)
    async def upsert(self, contest: Contest) -> bool:
        """
        Insert or fully replace a contest.

        Returns:
            True if a new row was inserted, False if an existing row was updated
        """
        query = """
            INSERT INTO contests (
                platform, external_id, name, start_time, end_time,
                website_url, registration_url, difficulty, description,
                contest_type, participant_count, platform_metadata, last_synced_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
            ON CONFLICT (platform, external_id) DO UPDATE SET
                name = EXCLUDED.name,
                start_time = EXCLUDED.start_time,
                end_time = EXCLUDED.end_time,
                website_url = EXCLUDED.website_url,
                registration_url = EXCLUDED.registration_url,
                difficulty = EXCLUDED.difficulty,
                description = EXCLUDED.description,
                contest_type = EXCLUDED.contest_type,
                participant_count = EXCLUDED.participant_count,
                platform_metadata = EXCLUDED.platform_metadata,
                last_synced_at = EXCLUDED.last_synced_at,
                updated_at = NOW()
            RETURNING id, (xmax = 0) AS inserted
        """

        row = await fetch_one(
            query,
            (
                contest.platform.value,
                contest.external_id,
                contest.name,
                contest.start_time,
                contest.end_time,
                contest.website_url,
                contest.registration_url,
                contest.difficulty.value if contest.difficulty else None,
                contest.description,
                contest.contest_type,
                contest.participant_count,
                Jsonb(contest.platform_metadata),
                contest.last_synced_at,
            ),
        )

        inserted = bool(row and row["inserted"])
        logger.debug(
            "Contest upserted",
            platform=contest.platform.value,
            external_id=contest.external_id,
            inserted=inserted,
        )
        return inserted

    @with_db_retry(max_retries=2)
    async def query_by_time_range(
        self, start: datetime, end: datetime, platform: Platform | None = None
    ) -> list[Contest]:
        """Contests whose start_time falls within [start, end]."""
        params: list = [start, end]
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM contests
            WHERE start_time >= %s AND start_time <= %s
        """
        query += self._platform_filter(platform, params) + " ORDER BY start_time ASC"

        rows = await fetch_all(query, tuple(params))
        return [self._row_to_contest(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def find_upcoming(self, now: datetime, platform: Platform | None = None) -> list[Contest]:
        params: list = [now]
        query = f"SELECT {self.SELECT_COLUMNS} FROM contests WHERE start_time > %s"
        query += self._platform_filter(platform, params) + " ORDER BY start_time ASC"

        rows = await fetch_all(query, tuple(params))
        return [self._row_to_contest(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def find_running(self, now: datetime, platform: Platform | None = None) -> list[Contest]:
        params: list = [now, now]
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM contests
            WHERE start_time <= %s AND end_time >= %s
        """
        query += self._platform_filter(platform, params) + " ORDER BY start_time ASC"

        rows = await fetch_all(query, tuple(params))
        return [self._row_to_contest(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def find_finished(self, now: datetime, platform: Platform | None = None) -> list[Contest]:
        params: list = [now]
        query = f"SELECT {self.SELECT_COLUMNS} FROM contests WHERE end_time < %s"
        query += self._platform_filter(platform, params) + " ORDER BY end_time DESC"

        rows = await fetch_all(query, tuple(params))
        return [self._row_to_contest(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def get(self, contest_id: str) -> Contest | None:
        query = f"SELECT {self.SELECT_COLUMNS} FROM contests WHERE id = %s"
        return self._row_to_contest(await fetch_one(query, (contest_id,)))

    @with_db_retry(max_retries=2)
    async def get_by_external_id(self, platform: Platform, external_id: str) -> Contest | None:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM contests
            WHERE platform = %s AND external_id = %s
        """
        return self._row_to_contest(await fetch_one(query, (platform.value, external_id)))

    @with_db_retry(max_retries=2)
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete contests that ended before the cutoff."""
        deleted = await execute_query("DELETE FROM contests WHERE end_time < %s", (cutoff,))
        logger.info("Old contests deleted", cutoff=cutoff.isoformat(), deleted=deleted)
        return deleted


contest_repository = ContestRepository()
