"""API dependencies."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.domain.calls.services import CallService
from fieldops.domain.checklist.services import ChecklistService
from fieldops.domain.coach.analyzers.coverage_matcher import CoverageMatcher, KeywordMatcher, MatchMode
from fieldops.domain.coach.analyzers.prompt_generator import PromptGenerator
from fieldops.domain.coach.services import CoachingEngine
from fieldops.infra.db.base import get_db
from fieldops.infra.db.repositories.call_repo import (
    CallRepositoryImpl,
    CoverageRepositoryImpl,
    PromptRepositoryImpl,
    TranscriptRepositoryImpl,
)
from fieldops.infra.db.repositories.checklist_repo import ChecklistRepositoryImpl
from fieldops.infra.messaging.redis_bus import redis_bus
from fieldops.settings import settings

__all__ = ["get_db", "get_checklist_service", "get_call_service", "get_coaching_engine"]


def get_keyword_matcher() -> KeywordMatcher:
    """Keyword matcher in the configured mode (token or substring)."""
    return KeywordMatcher(MatchMode(settings.coach_keyword_match_mode))


def get_checklist_service(db: AsyncSession = Depends(get_db)) -> ChecklistService:
    return ChecklistService(ChecklistRepositoryImpl(db))


def get_call_service(db: AsyncSession = Depends(get_db)) -> CallService:
    return CallService(CallRepositoryImpl(db))


def get_coaching_engine(db: AsyncSession = Depends(get_db)) -> CoachingEngine:
    """Build the coaching engine for one request; updates are published on Redis when connected."""
    keyword_matcher = get_keyword_matcher()
    return CoachingEngine(
        call_repo=CallRepositoryImpl(db),
        transcript_repo=TranscriptRepositoryImpl(db),
        coverage_repo=CoverageRepositoryImpl(db),
        prompt_repo=PromptRepositoryImpl(db),
        checklist_repo=ChecklistRepositoryImpl(db),
        matcher=CoverageMatcher(keyword_matcher),
        generator=PromptGenerator(
            objection_keywords=settings.coach_objection_keywords,
            keyword_matcher=keyword_matcher,
            prompt_spacing=settings.coach_prompt_spacing_segments,
        ),
        publisher=redis_bus.publish_call_update,
        snapshot_retries=settings.coach_snapshot_retries,
    )
