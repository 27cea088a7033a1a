"""Persistence for storyboard projects."""

from previz.storage.project_store import ProjectStateStore
from previz.storage.record_store import InMemoryRecordStore, RecordStore

__all__ = ["InMemoryRecordStore", "ProjectStateStore", "RecordStore"]
