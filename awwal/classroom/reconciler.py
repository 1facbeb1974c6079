"""
ProgressReconciler - Merge local progress with a server snapshot.

Runs when a learner signs in on a device that already holds (possibly
guest) progress. Presence is a union of both sides; on a key collision
the local entry is kept.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from awwal.schemas import (
    LearnerProgress,
    LessonCompletion,
    RemoteProgressSnapshot,
    UserStats,
)


logger = logging.getLogger(__name__)

# The server does not return per-lesson scores in the progress listing
REMOTE_DEFAULT_SCORE = 100.0


def _from_epoch_ms(value) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _parse_timestamp(value) -> Optional[datetime]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch_ms(value)
    if isinstance(value, str) and value:
        if value.isdigit():
            return _from_epoch_ms(int(value))
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def to_epoch_ms(value) -> Optional[int]:
    """Convert an ISO-8601 string or epoch-ms value to epoch ms."""
    parsed = _parse_timestamp(value)
    if parsed is None:
        return None
    try:
        return int(parsed.timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return None


def to_day_string(value) -> str:
    """Normalize a server date/datetime to YYYY-MM-DD (UTC), or '' if absent."""
    if not value:
        return ""
    parsed = _parse_timestamp(value)
    if parsed is None:
        logger.warning(f"Unparseable lastActivityDate from server: {value!r}")
        return ""
    return parsed.astimezone(timezone.utc).date().isoformat()


def snapshot_to_progress(snapshot: RemoteProgressSnapshot) -> LearnerProgress:
    """Translate a GET /api/progress body into a LearnerProgress."""
    lessons = []
    for record in snapshot.progress:
        completed_at = to_epoch_ms(record.completed_at)
        if completed_at is None:
            logger.warning(
                f"Skipping remote completion {record.level_id}/{record.lesson_id}: "
                f"bad completedAt {record.completed_at!r}"
            )
            continue
        lessons.append(LessonCompletion(
            level_id=record.level_id,
            lesson_id=record.lesson_id,
            completed_at=completed_at,
            score=REMOTE_DEFAULT_SCORE,
        ))

    stats = snapshot.stats or UserStats()
    return LearnerProgress(
        lesson_progress=lessons,
        weak_areas=[],
        streak_days=max(stats.streak_days or 0, 0),
        last_activity_date=to_day_string(stats.last_activity_date),
        total_lessons_completed=max(stats.total_lessons_completed or 0, 0),
    )


def merge_progress(local: LearnerProgress, remote: LearnerProgress) -> LearnerProgress:
    """
    Merge two progress records into one canonical record.

    - lessons: all local entries, plus remote entries with unseen keys
    - streak: the larger of the two
    - last activity: remote's if set, else local's
    - weak areas: local's (remote weak areas are discarded)

    Deterministic and idempotent: merging the result with the same remote
    again yields the same record.
    """
    combined = list(local.lesson_progress)
    seen = {entry.key for entry in combined}

    for entry in remote.lesson_progress:
        if entry.key not in seen:
            combined.append(entry)
            seen.add(entry.key)

    return LearnerProgress(
        lesson_progress=combined,
        weak_areas=list(local.weak_areas),
        streak_days=max(local.streak_days, remote.streak_days),
        last_activity_date=remote.last_activity_date or local.last_activity_date,
        total_lessons_completed=len(combined),
    )


class ProgressReconciler:
    """Merges local progress with a remote snapshot, logging what changed."""

    def reconcile(
        self,
        local: LearnerProgress,
        remote: RemoteProgressSnapshot | LearnerProgress,
    ) -> LearnerProgress:
        if isinstance(remote, RemoteProgressSnapshot):
            remote = snapshot_to_progress(remote)

        merged = merge_progress(local, remote)

        added = len(merged.lesson_progress) - len(local.lesson_progress)
        kept_local = len(local.completed_keys() & remote.completed_keys())
        logger.info(
            f"Reconciled progress: {len(merged.lesson_progress)} lessons "
            f"({added} from server, {kept_local} collisions kept local), "
            f"streak {merged.streak_days}"
        )
        return merged
