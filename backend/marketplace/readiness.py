"""Readiness checks: config, database, redis."""
import logging

from sqlalchemy import text

from marketplace.infra.db import base
from marketplace.infra.messaging.redis_bus import redis_bus

logger = logging.getLogger(__name__)

# Result: (passed: bool, message: str)
CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]


def check_config() -> CheckResult:
    """Load settings and read the values startup depends on."""
    try:
        from marketplace.settings import get_settings
        s = get_settings()
        _ = s.app_name
        _ = s.database_url
        if not s.content_filter_terms:
            return False, "content_filter_terms is empty"
        return True, "ok"
    except Exception as e:
        return False, str(e)


async def check_database() -> CheckResult:
    """Run a trivial query through the application engine."""
    if base.engine is None:
        return False, "engine not configured"
    try:
        async with base.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True, "ok"
    except Exception as e:
        return False, str(e)


async def check_redis() -> CheckResult:
    """Redis is optional; without it rooms broadcast within this instance only."""
    from marketplace.settings import get_settings
    if not (get_settings().redis_url or "").strip():
        return True, "skipped (not configured)"
    if not redis_bus.is_connected:
        return False, "not connected (local broadcast only)"
    try:
        await redis_bus.ping()
        return True, "ok"
    except Exception as e:
        return False, str(e)


async def run_all_checks_async() -> ChecksDict:
    """Run all readiness checks. Returns dict of check_name -> (passed, message)."""
    return {
        "config": check_config(),
        "database": await check_database(),
        "redis": await check_redis(),
    }


def is_ready(checks: ChecksDict) -> tuple[bool, dict[str, str]]:
    """
    True if all required checks pass. Redis is reported but not required.
    Returns (ready: bool, checks_summary: dict of name -> "ok" | "skipped" | error message).
    """
    required = {"config", "database"}
    summary = {name: msg for name, (passed, msg) in checks.items()}
    all_required = all(checks[n][0] for n in required if n in checks)
    return all_required, summary
