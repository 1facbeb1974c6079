"""
Progress tracking schemas for Awwal.

Defines Pydantic models for learner progress including:
- Lesson completion records
- The aggregate learner progress record
- Session and account state consumed from the auth collaborator
- Remote progress snapshots and sync outcomes
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys (the stored/wire shape)."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class LessonCompletion(CamelModel):
    level_id: str
    lesson_id: str
    completed_at: int                       # ms since epoch
    score: Optional[float] = None           # not validated here
    next_review_at: Optional[int] = None    # advisory spaced-repetition hint

    @property
    def key(self) -> tuple[str, str]:
        return (self.level_id, self.lesson_id)


class WeakArea(CamelModel):
    """Carried through load/save/merge untouched."""
    topic_id: str
    topic_label: str = ""
    miss_count: int = 0
    last_attempt: int = 0


class LearnerProgress(CamelModel):
    lesson_progress: list[LessonCompletion] = Field(default_factory=list)
    weak_areas: list[WeakArea] = Field(default_factory=list)
    streak_days: int = Field(default=0, ge=0)
    last_activity_date: str = ""            # YYYY-MM-DD, "" for never
    total_lessons_completed: int = Field(default=0, ge=0)

    @classmethod
    def default(cls) -> "LearnerProgress":
        return cls()

    def completed_keys(self) -> set[tuple[str, str]]:
        return {entry.key for entry in self.lesson_progress}


class SessionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_authenticated: bool = False
    token: Optional[str] = None


class User(CamelModel):
    id: int | str
    email: str
    name: Optional[str] = None


class UserStats(CamelModel):
    streak_days: Optional[int] = 0
    total_lessons_completed: Optional[int] = 0
    last_activity_date: Optional[str] = None


class AuthPayload(CamelModel):
    """Body of a successful login/register/me response."""
    token: Optional[str] = None
    user: User
    stats: Optional[UserStats] = None


class RemoteLessonRecord(CamelModel):
    level_id: str
    lesson_id: str
    completed_at: Optional[int | float | str] = None   # ISO-8601 or epoch ms; unusable entries are skipped


class RemoteProgressSnapshot(CamelModel):
    """Body of GET /api/progress."""
    progress: list[RemoteLessonRecord] = Field(default_factory=list)
    stats: Optional[UserStats] = None


class SyncResult(BaseModel):
    """Outcome of a remote side-channel call. Never gates local success."""
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None     # error kind name, e.g. "RemoteSyncError"
    detail: Optional[str] = None
