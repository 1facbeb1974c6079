"""
Awwal Schemas - Pydantic models for the progress-tracking core.

This module exports all schema classes for:
- Progress: lesson completions, weak areas, the learner progress record
- Session: authentication state, user account and stats
- Remote: progress snapshots from the server and sync outcomes
"""

from .progress import (
    CamelModel,
    LessonCompletion,
    WeakArea,
    LearnerProgress,
    SessionState,
    User,
    UserStats,
    AuthPayload,
    RemoteLessonRecord,
    RemoteProgressSnapshot,
    SyncResult,
)

__all__ = [
    # Progress
    'CamelModel',
    'LessonCompletion',
    'WeakArea',
    'LearnerProgress',
    # Session
    'SessionState',
    'User',
    'UserStats',
    'AuthPayload',
    # Remote
    'RemoteLessonRecord',
    'RemoteProgressSnapshot',
    'SyncResult',
]
