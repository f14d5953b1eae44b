"""Lookup table of enabled platform adapters keyed by Platform."""

from app.config import Settings, settings
from app.infrastructure.observability.logging import get_logger
from app.integrations.platforms.atcoder import AtCoderAdapter
from app.integrations.platforms.base import PlatformAdapter, PlatformConfig
from app.integrations.platforms.codechef import CodeChefAdapter
from app.integrations.platforms.codeforces import CodeforcesAdapter
from app.integrations.platforms.leetcode import LeetCodeAdapter
from app.models.domain.contest_domain import Platform

logger = get_logger(__name__)

ADAPTER_CLASSES = {
    Platform.CODEFORCES: CodeforcesAdapter,
    Platform.LEETCODE: LeetCodeAdapter,
    Platform.CODECHEF: CodeChefAdapter,
    Platform.ATCODER: AtCoderAdapter,
}


def build_platform_adapters(config: Settings | None = None) -> dict[Platform, PlatformAdapter]:
    """Instantiate one adapter per platform that is enabled in settings."""
    config = config or settings
    adapters: dict[Platform, PlatformAdapter] = {}

    for platform, adapter_cls in ADAPTER_CLASSES.items():
        platform_config = PlatformConfig(**config.get_platform_config(platform.value))
        if not platform_config.enabled:
            logger.info("Platform adapter disabled", platform=platform.value)
            continue
        adapters[platform] = adapter_cls(config=platform_config)

    return adapters
