"""Readiness checks for the coaching API: config, packages, schema, redis."""
import asyncio
import importlib
import logging

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

logger = logging.getLogger(__name__)

# Result: (passed: bool, message: str)
CheckResult = tuple[bool, str]
ChecksDict = dict[str, CheckResult]

REQUIRED_CHECKS = frozenset({"config", "packages", "database"})

REQUIRED_PACKAGES = ("uvicorn", "sqlalchemy", "redis", "httpx", "fieldops.main")

COACHING_TABLES = (
    "sales_checklist_items",
    "call_sessions",
    "call_transcript_segments",
    "call_checklist_status",
    "call_coaching_prompts",
)


def check_config() -> CheckResult:
    """Settings load, and every objection keyword group names a known checklist category."""
    try:
        from fieldops.domain.checklist.models import ChecklistCategory
        from fieldops.settings import get_settings
        s = get_settings()
        known = {c.value for c in ChecklistCategory}
        unknown = sorted(set(s.coach_objection_keywords) - known)
        if unknown:
            return False, f"coach_objection_keywords has unknown categories: {', '.join(unknown)}"
        return True, "ok"
    except Exception as e:
        return False, str(e)


def check_packages() -> CheckResult:
    missing = []
    for name in REQUIRED_PACKAGES:
        try:
            importlib.import_module(name)
        except ImportError as e:
            missing.append(name if name == e.name else f"{name} ({e})")
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, "ok"


async def _check_database_async(database_url: str) -> CheckResult:
    """Connect and confirm the coaching tables exist (migrations applied)."""
    try:
        from fieldops.infra.db.base import (
            async_pg_connect_args,
            async_pg_url_without_sslmode,
            normalize_async_pg_url,
        )
        url = normalize_async_pg_url(database_url)
        engine = create_async_engine(
            async_pg_url_without_sslmode(url),
            connect_args=async_pg_connect_args(url),
            pool_pre_ping=True,
        )
        try:
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
        finally:
            await engine.dispose()
    except Exception as e:
        return False, str(e)
    absent = [t for t in COACHING_TABLES if t not in tables]
    if absent:
        return False, f"missing tables: {', '.join(absent)} (run alembic upgrade head)"
    return True, "ok"


async def _check_redis_async() -> CheckResult:
    """Ping Redis when coaching updates are published; otherwise nothing to check."""
    try:
        import redis.asyncio as aioredis
        from fieldops.settings import get_settings
        s = get_settings()
        if not s.coach_publish_updates:
            return True, "skipped (publishing disabled)"
        client = aioredis.from_url(s.redis_url)
        try:
            await client.ping()
        finally:
            await client.aclose()
        return True, "ok"
    except Exception as e:
        return False, str(e)


async def run_all_checks_async() -> ChecksDict:
    """Run every check; use from async context (GET /ready)."""
    from fieldops.settings import get_settings
    database, redis_result = await asyncio.gather(
        _check_database_async(get_settings().database_url),
        _check_redis_async(),
    )
    return {
        "config": check_config(),
        "packages": check_packages(),
        "database": database,
        "redis": redis_result,
    }


def run_all_checks() -> ChecksDict:
    """Sync entry point for scripts."""
    return asyncio.run(run_all_checks_async())


def is_ready(checks: ChecksDict | None = None) -> tuple[bool, dict[str, str]]:
    """
    True when every required check passed. Redis is reported but never required,
    since coaching updates are published best effort.
    """
    if checks is None:
        checks = run_all_checks()
    summary = {name: msg for name, (_, msg) in checks.items()}
    ready = all(passed for name, (passed, _) in checks.items() if name in REQUIRED_CHECKS)
    for name, (passed, msg) in checks.items():
        if not passed:
            logger.warning("Readiness check %s failed: %s", name, msg)
    return ready, summary
