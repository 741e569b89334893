"""Pytest configuration and shared fixtures for the coaching tests."""
import sys
from pathlib import Path

backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fieldops.domain.calls.models import CallStatus
from fieldops.domain.calls.services import CallService
from fieldops.domain.checklist.services import ChecklistService
from fieldops.domain.coach.analyzers.coverage_matcher import CoverageMatcher, KeywordMatcher
from fieldops.domain.coach.analyzers.prompt_generator import PromptGenerator
from fieldops.domain.coach.locks import CallLockRegistry
from fieldops.domain.coach.services import CoachingEngine
from fieldops.infra.db.base import Base
from fieldops.infra.db.models import (  # noqa: F401
    CallSessionModel,
    ChecklistCoverageModel,
    ChecklistItemModel,
    CoachingPromptModel,
    TranscriptSegmentModel,
)
from fieldops.infra.db.repositories.call_repo import (
    CallRepositoryImpl,
    CoverageRepositoryImpl,
    PromptRepositoryImpl,
    TranscriptRepositoryImpl,
)
from fieldops.infra.db.repositories.checklist_repo import ChecklistRepositoryImpl

OBJECTION_KEYWORDS = {
    "budget": ["expensive", "too much", "afford"],
    "timeline": ["how soon", "asap"],
    "site_conditions": ["slope", "sloping"],
}


def pytest_configure(config):
    """Register markers and ensure asyncio_mode=auto so async tests need no marker."""
    config.addinivalue_line(
        "markers", "integration: marks tests that need real services (deselect with '-m \"not integration\"')"
    )
    config.option.asyncio_mode = getattr(config.option, "asyncio_mode", None) or "auto"


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return CallLockRegistry()


@pytest.fixture
def checklist_service(db_session):
    return ChecklistService(ChecklistRepositoryImpl(db_session))


@pytest.fixture
def call_service(db_session, locks):
    return CallService(CallRepositoryImpl(db_session), locks=locks)


@pytest.fixture
def published():
    """Messages the coaching engine published."""
    return []


@pytest.fixture
def coaching_engine(db_session, locks, published):
    async def publisher(message):
        published.append(message)

    keyword_matcher = KeywordMatcher()
    return CoachingEngine(
        call_repo=CallRepositoryImpl(db_session),
        transcript_repo=TranscriptRepositoryImpl(db_session),
        coverage_repo=CoverageRepositoryImpl(db_session),
        prompt_repo=PromptRepositoryImpl(db_session),
        checklist_repo=ChecklistRepositoryImpl(db_session),
        matcher=CoverageMatcher(keyword_matcher),
        generator=PromptGenerator(objection_keywords=OBJECTION_KEYWORDS, keyword_matcher=keyword_matcher),
        locks=locks,
        publisher=publisher,
    )


@pytest.fixture
async def live_call(call_service):
    """A call that has been answered."""
    return await call_service.start_call(status=CallStatus.IN_PROGRESS)
