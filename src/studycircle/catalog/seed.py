"""Subject and badge catalog seed data. Seeding is idempotent and runs at startup."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.db.models import Badge, BadgeRequirementType, Subject
from studycircle.db.upsert import insert_ignore

logger = logging.getLogger(__name__)

_ALL_GRADES = ["6", "7", "8", "9", "10", "11", "12"]

SUBJECT_SEED_DATA: list[dict] = [
    {
        "name": "Mathematics",
        "code": "MATH",
        "description": "All mathematical concepts and problem solving",
        "grade_levels": _ALL_GRADES,
    },
    {
        "name": "Science",
        "code": "SCI",
        "description": "Physics, Chemistry, and Biology",
        "grade_levels": _ALL_GRADES,
    },
    {
        "name": "English",
        "code": "ENG",
        "description": "Language arts, literature, and writing",
        "grade_levels": _ALL_GRADES,
    },
    {
        "name": "Social Studies",
        "code": "SS",
        "description": "History, geography, and civics",
        "grade_levels": _ALL_GRADES,
    },
    {
        "name": "Computer Science",
        "code": "CS",
        "description": "Programming and technology",
        "grade_levels": ["9", "10", "11", "12"],
    },
]

BADGE_SEED_DATA: list[dict] = [
    # First steps
    {
        "name": "First Question",
        "description": "Asked your first question",
        "icon": "❓",
        "color": "#3B82F6",
        "requirement_type": BadgeRequirementType.QUESTIONS_ASKED,
        "requirement_value": 1,
    },
    {
        "name": "Helpful Helper",
        "description": "Gave your first answer",
        "icon": "\U0001f4a1",
        "color": "#10B981",
        "requirement_type": BadgeRequirementType.ANSWERS_GIVEN,
        "requirement_value": 1,
    },
    {
        "name": "Problem Solver",
        "description": "Had an answer accepted",
        "icon": "✅",
        "color": "#F59E0B",
        "requirement_type": BadgeRequirementType.ANSWERS_ACCEPTED,
        "requirement_value": 1,
    },
    {
        "name": "Knowledge Sharer",
        "description": "Shared your first resource",
        "icon": "\U0001f4da",
        "color": "#8B5CF6",
        "requirement_type": BadgeRequirementType.RESOURCES_SHARED,
        "requirement_value": 1,
    },
    # Points
    {
        "name": "Rising Star",
        "description": "Earned 100 points",
        "icon": "⭐",
        "color": "#EF4444",
        "requirement_type": BadgeRequirementType.POINTS,
        "requirement_value": 100,
    },
    {
        "name": "Study Master",
        "description": "Earned 500 points",
        "icon": "\U0001f3c6",
        "color": "#F97316",
        "requirement_type": BadgeRequirementType.POINTS,
        "requirement_value": 500,
    },
    # Milestones
    {
        "name": "Question Guru",
        "description": "Asked 10 questions",
        "icon": "\U0001f914",
        "color": "#06B6D4",
        "requirement_type": BadgeRequirementType.QUESTIONS_ASKED,
        "requirement_value": 10,
    },
    {
        "name": "Answer Machine",
        "description": "Gave 25 answers",
        "icon": "\U0001f680",
        "color": "#84CC16",
        "requirement_type": BadgeRequirementType.ANSWERS_GIVEN,
        "requirement_value": 25,
    },
    {
        "name": "Expert",
        "description": "Had 10 answers accepted",
        "icon": "\U0001f451",
        "color": "#D946EF",
        "requirement_type": BadgeRequirementType.ANSWERS_ACCEPTED,
        "requirement_value": 10,
    },
    {
        "name": "Resource Hero",
        "description": "Shared 5 resources",
        "icon": "\U0001f4d6",
        "color": "#14B8A6",
        "requirement_type": BadgeRequirementType.RESOURCES_SHARED,
        "requirement_value": 5,
    },
]


async def seed_subjects(db: AsyncSession) -> int:
    """Insert missing subjects. Returns number of new rows."""
    created = 0
    for subject_data in SUBJECT_SEED_DATA:
        if await insert_ignore(db, Subject, {**subject_data, "is_active": True}, ["code"]):
            created += 1
    return created


async def seed_badges(db: AsyncSession) -> int:
    """Insert missing badge definitions. Returns number of new rows."""
    created = 0
    for badge_data in BADGE_SEED_DATA:
        if await insert_ignore(db, Badge, badge_data, ["name"]):
            created += 1
    return created


async def seed_catalog(db: AsyncSession) -> None:
    subjects = await seed_subjects(db)
    badges = await seed_badges(db)
    await db.commit()
    logger.info("Seeded catalog: %d new subjects, %d new badges", subjects, badges)
