"""Tracker module."""

from .tracker import TRACKED_TOPICS, ITracker, Tracker

__all__ = ["ITracker", "TRACKED_TOPICS", "Tracker"]
