"""Merge request source and issue tracker adapters."""

from linkbot.adapters.base import IssueTracker, MergeRequestSource
from linkbot.adapters.gitlab import GitLabAdapter
from linkbot.adapters.jira import JiraAdapter

__all__ = ["IssueTracker", "MergeRequestSource", "GitLabAdapter", "JiraAdapter"]
