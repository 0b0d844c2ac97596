"""Data models for merge requests, notes and tracker issues (Pydantic)."""

from linkbot.models.merge_request import MergeRequest
from linkbot.models.note import Note
from linkbot.models.tracker_issue import TrackerIssue

__all__ = ["MergeRequest", "Note", "TrackerIssue"]
