"""Awwal - progress tracking and streaks for an Arabic learning hub."""

__version__ = "0.1.0"
