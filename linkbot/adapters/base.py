"""Abstract interfaces for the merge request source and the issue tracker."""

from abc import ABC, abstractmethod
from typing import List

from linkbot.models import MergeRequest, Note, TrackerIssue


class MergeRequestSource(ABC):
    """Source-control server holding the merge requests (GitLab).

    Implementations raise SourceError when a call fails.
    """

    @abstractmethod
    def list_open_merge_requests(self, author: str) -> List[MergeRequest]:
        """List open merge requests authored by author, in fetch order."""
        ...

    @abstractmethod
    def list_notes(self, mr_iid: int) -> List[Note]:
        """List discussion notes of a merge request, oldest first."""
        ...

    @abstractmethod
    def post_comment(self, mr_iid: int, body: str) -> Note:
        """Post a comment on a merge request."""
        ...


class IssueTracker(ABC):
    """Issue tracking system (Jira).

    Implementations raise TrackerError when a call fails.
    """

    @abstractmethod
    def create_issue(self, project_key: str, summary: str, description: str) -> TrackerIssue:
        """Create a tracking issue and return its key."""
        ...
