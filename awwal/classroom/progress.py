"""
ProgressStore - Pure operations on a LearnerProgress record.

Every function here returns a new record and never mutates its input.
I/O is limited to the persistence port passed to load/save:
- Loading (corrupt or missing state resets to the default record)
- Saving (one JSON blob under one fixed key)
- Streak updates by calendar day
- Recording and querying lesson completions
"""

import json
import logging
from typing import NamedTuple, Optional

from pydantic import ValidationError

from awwal.schemas import LearnerProgress, LessonCompletion

from .clock import DAY_MS, Clock, SystemClock, day_strings
from .errors import StorageReadError, StorageWriteError
from .storage import KeyValueStorage


logger = logging.getLogger(__name__)

STORAGE_KEY = "awwal-arabic-hub-progress"
REVIEW_INTERVAL_MS = DAY_MS


class LoadResult(NamedTuple):
    progress: LearnerProgress
    error: Optional[StorageReadError] = None


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

def parse_progress(raw: str) -> LearnerProgress:
    """
    Parse a stored blob into a LearnerProgress.

    Fields that are absent or null fall back to their defaults individually;
    anything structurally wrong raises StorageReadError. Duplicate lesson keys
    collapse to their last entry and the total is recounted.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StorageReadError(f"Progress blob is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise StorageReadError(
            f"Progress blob must be an object, got {type(data).__name__}"
        )

    data = {k: v for k, v in data.items() if v is not None}
    try:
        progress = LearnerProgress.model_validate(data)
    except ValidationError as e:
        raise StorageReadError(f"Progress blob failed validation: {e}") from e
    return _normalize(progress)


def _normalize(progress: LearnerProgress) -> LearnerProgress:
    latest = {entry.key: entry for entry in progress.lesson_progress}
    entries = [entry for entry in progress.lesson_progress if latest[entry.key] is entry]
    if (
        len(entries) == len(progress.lesson_progress)
        and progress.total_lessons_completed == len(entries)
    ):
        return progress

    logger.warning(
        f"Stored progress out of shape ({len(progress.lesson_progress)} entries, "
        f"total {progress.total_lessons_completed}); normalizing to {len(entries)}"
    )
    return progress.model_copy(update={
        "lesson_progress": entries,
        "total_lessons_completed": len(entries),
    })


def try_load_progress(storage: KeyValueStorage) -> LoadResult:
    """Load progress, reporting why the default was substituted if it was."""
    try:
        raw = storage.get_item(STORAGE_KEY)
    except Exception as e:
        logger.warning(f"Progress storage unreadable, using defaults: {e}")
        return LoadResult(LearnerProgress.default(), StorageReadError(str(e)))

    if not raw:
        return LoadResult(LearnerProgress.default())

    try:
        return LoadResult(parse_progress(raw))
    except StorageReadError as e:
        logger.warning(f"Discarding corrupt progress record: {e}")
        return LoadResult(LearnerProgress.default(), e)


def load_progress(storage: KeyValueStorage) -> LearnerProgress:
    """Load progress from storage. Never raises."""
    return try_load_progress(storage).progress


def dump_progress(progress: LearnerProgress) -> str:
    return progress.model_dump_json(by_alias=True)


def save_progress(
    storage: KeyValueStorage,
    progress: LearnerProgress,
) -> Optional[StorageWriteError]:
    """
    Write the full record under STORAGE_KEY.

    Returns:
        None on success, otherwise the StorageWriteError (already logged)
    """
    try:
        storage.set_item(STORAGE_KEY, dump_progress(progress))
    except Exception as e:
        logger.warning(f"Failed to persist progress: {e}")
        return StorageWriteError(str(e))
    return None


def clear_progress(storage: KeyValueStorage) -> Optional[StorageWriteError]:
    try:
        storage.remove_item(STORAGE_KEY)
    except Exception as e:
        logger.warning(f"Failed to clear progress: {e}")
        return StorageWriteError(str(e))
    return None


# -----------------------------------------------------------------------------
# Streaks and completions
# -----------------------------------------------------------------------------

def update_streak(progress: LearnerProgress, clock: Optional[Clock] = None) -> LearnerProgress:
    """
    Advance the day streak for activity today.

    Same day: unchanged. Active yesterday: streak + 1. Otherwise: streak
    restarts at 1.
    """
    clock = clock or SystemClock()
    today, yesterday = day_strings(clock)

    if progress.last_activity_date == today:
        return progress

    if progress.last_activity_date == yesterday:
        streak_days = progress.streak_days + 1
    else:
        streak_days = 1

    return progress.model_copy(update={
        "streak_days": streak_days,
        "last_activity_date": today,
        # superseded by record_lesson_complete's recount
        "total_lessons_completed": progress.total_lessons_completed + 1,
    })


def record_lesson_complete(
    progress: LearnerProgress,
    level_id: str,
    lesson_id: str,
    score: Optional[float] = None,
    clock: Optional[Clock] = None,
) -> LearnerProgress:
    """
    Record a lesson as completed now.

    Re-completing a lesson replaces its entry, so completed_at and
    next_review_at advance and the score is overwritten.

    Returns:
        New LearnerProgress; the caller persists it
    """
    clock = clock or SystemClock()
    updated = update_streak(progress, clock)
    now = clock.now_ms()

    lesson_progress = [
        entry for entry in updated.lesson_progress
        if not (entry.level_id == level_id and entry.lesson_id == lesson_id)
    ]
    lesson_progress.append(LessonCompletion(
        level_id=level_id,
        lesson_id=lesson_id,
        completed_at=now,
        score=score,
        next_review_at=now + REVIEW_INTERVAL_MS,
    ))

    return updated.model_copy(update={
        "lesson_progress": lesson_progress,
        "total_lessons_completed": len(lesson_progress),
    })


def is_lesson_completed(progress: LearnerProgress, level_id: str, lesson_id: str) -> bool:
    """Check if a lesson has a completion entry (exact, case-sensitive)."""
    return any(
        entry.level_id == level_id and entry.lesson_id == lesson_id
        for entry in progress.lesson_progress
    )


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------

def get_completion_stats(progress: LearnerProgress, total_lessons: Optional[int] = None) -> dict:
    """
    Get completion statistics.

    Args:
        progress: Current learner progress
        total_lessons: Total number of lessons in curriculum, if known

    Returns:
        Dictionary with completion stats
    """
    completed = len(progress.lesson_progress)
    stats = {
        "completed": completed,
        "streak_days": progress.streak_days,
        "last_activity_date": progress.last_activity_date,
    }
    if total_lessons is not None:
        stats["total_lessons"] = total_lessons
        stats["completion_percent"] = (
            round(completed / total_lessons * 100, 1) if total_lessons > 0 else 0
        )
    return stats


def due_for_review(progress: LearnerProgress, clock: Optional[Clock] = None) -> list[LessonCompletion]:
    """Completions whose next_review_at has passed, oldest hint first."""
    now = (clock or SystemClock()).now_ms()
    due = [
        entry for entry in progress.lesson_progress
        if entry.next_review_at is not None and entry.next_review_at <= now
    ]
    return sorted(due, key=lambda entry: entry.next_review_at)
