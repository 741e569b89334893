"""Seed the default sales checklist for fencing enquiries."""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fieldops.domain.checklist.services import ChecklistService
from fieldops.infra.db.base import AsyncSessionLocal, engine
from fieldops.infra.db.repositories.checklist_repo import ChecklistRepositoryImpl


# Idempotent: an item whose question already exists is skipped.
DEFAULT_ITEMS = [
    {
        "question": "What type of fence are you after?",
        "category": "requirements",
        "keywords": ["colorbond", "timber", "pool fence", "picket", "aluminium", "glass"],
        "suggested_response": "We install Colorbond, timber, aluminium slat and glass pool fencing.",
        "is_required": True,
    },
    {
        "question": "How long is the fence line, and how tall does it need to be?",
        "category": "requirements",
        "keywords": ["metres", "meters", "length", "how tall", "height", "1.8"],
        "suggested_response": "Most residential boundary fences are 1.8m; we measure exactly on site.",
        "is_required": True,
    },
    {
        "question": "Is the ground flat, sloping or rocky along the fence line?",
        "category": "site_conditions",
        "keywords": ["slope", "sloping", "flat", "rocky", "retaining", "level"],
        "suggested_response": "Sloping blocks can be stepped or raked; retaining adds to the quote.",
        "is_required": True,
    },
    {
        "question": "Is there an existing fence that needs removing?",
        "category": "site_conditions",
        "keywords": ["existing fence", "old fence", "removal", "remove", "take down"],
        "suggested_response": "We remove and dispose of the old fence as part of the job.",
        "is_required": False,
    },
    {
        "question": "When do you need the fence finished by?",
        "category": "timeline",
        "keywords": ["when", "deadline", "weeks", "asap", "start date"],
        "suggested_response": "We are currently booking installs about three weeks out.",
        "is_required": True,
    },
    {
        "question": "Do you have a budget in mind?",
        "category": "budget",
        "keywords": ["budget", "price", "cost", "quote", "spend"],
        "suggested_response": "Colorbond usually runs per metre installed; we'll give a fixed quote after measuring.",
        "is_required": False,
    },
    {
        "question": "Have you spoken to your neighbours about sharing the cost?",
        "category": "other",
        "keywords": ["neighbour", "neighbor", "share the cost", "split"],
        "suggested_response": "We can provide a fencing notice template for your neighbour.",
        "is_required": False,
    },
]


async def seed_checklist_items():
    """Seed default checklist items; skip any that already exist (idempotent)."""
    async with AsyncSessionLocal() as session:
        service = ChecklistService(ChecklistRepositoryImpl(session))
        existing = {item.question for item in await service.list_items()}
        added = 0
        for data in DEFAULT_ITEMS:
            if data["question"] in existing:
                continue
            await service.create_item(**data)
            added += 1
        print(f"Seeded {added} checklist items ({len(DEFAULT_ITEMS) - added} already existed).")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_checklist_items())
