"""Tests for the linking decision policy (link_merge_request, run_linker)."""

from datetime import UTC, datetime
from typing import Dict, List
from unittest.mock import Mock

import pytest

from linkbot.adapters.base import IssueTracker, MergeRequestSource
from linkbot.config import LinkPolicy
from linkbot.errors import SourceError, TrackerError
from linkbot.linker import (
    Decision,
    issue_description,
    link_comment,
    link_merge_request,
    run_linker,
)
from linkbot.models import MergeRequest, Note, TrackerIssue


class FakeSource(MergeRequestSource):
    """In-memory GitLab project."""

    def __init__(self, merge_requests: List[MergeRequest]) -> None:
        self.merge_requests = list(merge_requests)
        self.notes: Dict[int, List[Note]] = {mr.iid: [] for mr in merge_requests}
        self.failing_notes: set[int] = set()
        self.failing_comments: set[int] = set()
        self.notes_calls: List[int] = []
        self.list_error: SourceError | None = None

    def list_open_merge_requests(self, author: str) -> List[MergeRequest]:
        if self.list_error is not None:
            raise self.list_error
        return [mr for mr in self.merge_requests if mr.author == author]

    def list_notes(self, mr_iid: int) -> List[Note]:
        self.notes_calls.append(mr_iid)
        if mr_iid in self.failing_notes:
            raise SourceError("500: notes unavailable")
        return list(self.notes[mr_iid])

    def post_comment(self, mr_iid: int, body: str) -> Note:
        if mr_iid in self.failing_comments:
            raise SourceError("403: forbidden")
        note = Note(
            id=len(self.notes[mr_iid]) + 1,
            body=body,
            author="linkbot",
            created_at=datetime(2024, 1, 15, tzinfo=UTC),
        )
        self.notes[mr_iid].append(note)
        return note


class FakeTracker(IssueTracker):
    """In-memory Jira project handing out sequential keys."""

    def __init__(self, next_number: int = 100) -> None:
        self.next_number = next_number
        self.created: List[tuple[str, str, str]] = []
        self.failing_summaries: set[str] = set()

    def create_issue(self, project_key: str, summary: str, description: str) -> TrackerIssue:
        if summary in self.failing_summaries:
            raise TrackerError("400: summary: invalid")
        self.created.append((project_key, summary, description))
        key = f"{project_key}-{self.next_number}"
        self.next_number += 1
        return TrackerIssue(key=key, url=f"https://jira.example.com/browse/{key}")


def _mr(iid: int, title: str, description: str = "", author: str = "renovate-bot") -> MergeRequest:
    return MergeRequest(
        iid=iid,
        title=title,
        description=description,
        web_url=f"https://gitlab.example.com/g/p/-/merge_requests/{iid}",
        author=author,
    )


@pytest.fixture
def policy() -> LinkPolicy:
    return LinkPolicy(ticket_prefix="PROJ", project_key="PROJ", skip_keywords=["lockfile"])


def test_unlinked_mr_gets_issue_and_comment(policy: LinkPolicy) -> None:
    """Title without key and no notes: issue created, comment references new key."""
    mr = _mr(1, "Update foo to 1.2")
    source = FakeSource([mr])
    tracker = FakeTracker()

    result = link_merge_request(mr, source, tracker, policy)

    assert result.decision == Decision.LINKED
    assert result.issue_key == "PROJ-100"
    assert tracker.created == [("PROJ", "Update foo to 1.2", issue_description(mr))]
    assert [n.body for n in source.notes[1]] == [
        "Tracking issue: [PROJ-100](https://jira.example.com/browse/PROJ-100)"
    ]


def test_key_in_description_no_issue(policy: LinkPolicy) -> None:
    """Description containing PROJ-42: no issue created, notes not fetched."""
    mr = _mr(1, "Update foo to 1.2", description="Relates to PROJ-42")
    source = FakeSource([mr])
    tracker = FakeTracker()

    result = link_merge_request(mr, source, tracker, policy)

    assert result.decision == Decision.ALREADY_LINKED
    assert result.issue_key == "PROJ-42"
    assert tracker.created == []
    assert source.notes_calls == []


def test_key_in_notes_no_issue(policy: LinkPolicy) -> None:
    """A key found in a discussion note means already linked."""
    mr = _mr(1, "Update foo to 1.2")
    source = FakeSource([mr])
    source.post_comment(1, "Tracked in PROJ-7")
    tracker = FakeTracker()

    result = link_merge_request(mr, source, tracker, policy)

    assert result.decision == Decision.ALREADY_LINKED
    assert result.issue_key == "PROJ-7"
    assert tracker.created == []


def test_skip_keyword_checked_before_link_detection(policy: LinkPolicy) -> None:
    """Title with skip keyword is skipped before any note fetch."""
    mr = _mr(1, "Lockfile maintenance")
    source = FakeSource([mr])
    tracker = FakeTracker()

    result = link_merge_request(mr, source, tracker, policy)

    assert result.decision == Decision.SKIPPED_KEYWORD
    assert source.notes_calls == []
    assert tracker.created == []
    assert source.notes[1] == []


def test_second_run_is_idempotent(policy: LinkPolicy) -> None:
    """Running twice creates exactly one issue and one comment."""
    mr = _mr(1, "Update foo to 1.2")
    source = FakeSource([mr])
    tracker = FakeTracker()

    first = run_linker(source, tracker, policy, "renovate-bot")
    second = run_linker(source, tracker, policy, "renovate-bot")

    assert first.results[0].decision == Decision.LINKED
    assert second.results[0].decision == Decision.ALREADY_LINKED
    assert second.results[0].issue_key == first.results[0].issue_key
    assert len(tracker.created) == 1
    assert len(source.notes[1]) == 1


def test_dry_run_makes_no_writes(policy: LinkPolicy) -> None:
    """Dry run reports the intended action without creating or commenting."""
    mr = _mr(1, "Update foo to 1.2")
    source = FakeSource([mr])
    tracker = Mock(spec=IssueTracker)
    dry = policy.model_copy(update={"dry_run": True})

    report = run_linker(source, tracker, dry, "renovate-bot")

    assert [r.decision for r in report.results] == [Decision.WOULD_LINK]
    tracker.create_issue.assert_not_called()
    assert source.notes[1] == []


def test_continue_on_error(policy: LinkPolicy) -> None:
    """A failing merge request does not stop the others."""
    mrs = [
        _mr(1, "Update a to 1.0"),
        _mr(2, "Update b to 2.0"),
        _mr(3, "Update c to 3.0"),
        _mr(4, "Update d to 4.0"),
    ]
    source = FakeSource(mrs)
    source.failing_notes.add(1)
    source.failing_comments.add(3)
    tracker = FakeTracker()
    tracker.failing_summaries.add("Update b to 2.0")

    report = run_linker(source, tracker, policy, "renovate-bot")

    decisions = [r.decision for r in report.results]
    assert decisions == [Decision.FAILED, Decision.FAILED, Decision.FAILED, Decision.LINKED]
    assert "notes unavailable" in (report.results[0].error or "")
    assert "invalid" in (report.results[1].error or "")
    # Issue for MR 3 exists even though the comment failed
    assert report.results[2].issue_key == "PROJ-100"
    assert report.results[3].issue_key == "PROJ-101"


def test_list_failure_propagates(policy: LinkPolicy) -> None:
    """Failure to list merge requests is fatal for the run."""
    source = FakeSource([])
    source.list_error = SourceError("401: Unauthorized")

    with pytest.raises(SourceError):
        run_linker(source, FakeTracker(), policy, "renovate-bot")


def test_only_configured_author_processed(policy: LinkPolicy) -> None:
    """Merge requests by other authors are not returned by the source."""
    source = FakeSource([_mr(1, "Update a", author="alice"), _mr(2, "Update b")])
    tracker = FakeTracker()

    report = run_linker(source, tracker, policy, "renovate-bot")

    assert [r.merge_request.iid for r in report.results] == [2]


def test_fetch_order_preserved(policy: LinkPolicy) -> None:
    """Results follow fetch order and mix decisions."""
    mrs = [
        _mr(5, "Update x", description="PROJ-1"),
        _mr(3, "Lockfile maintenance"),
        _mr(9, "Update y"),
    ]
    report = run_linker(FakeSource(mrs), FakeTracker(), policy, "renovate-bot")

    assert [(r.merge_request.iid, r.decision) for r in report.results] == [
        (5, Decision.ALREADY_LINKED),
        (3, Decision.SKIPPED_KEYWORD),
        (9, Decision.LINKED),
    ]
    counts = report.counts()
    assert counts[Decision.LINKED] == 1
    assert counts[Decision.FAILED] == 0
    assert "linked=1" in report.summary()


def test_separate_ticket_prefix_from_project_key() -> None:
    """Keys with either prefix count as links; new issues go to project_key."""
    policy = LinkPolicy(ticket_prefix="DEPS", project_key="OPS")
    tracker = FakeTracker()

    unrelated = _mr(1, "Update foo", description="Old ref INFRA-1")
    assert link_merge_request(unrelated, FakeSource([unrelated]), tracker, policy).decision == Decision.LINKED
    assert tracker.created[0][0] == "OPS"

    by_prefix = _mr(2, "Update bar", description="See DEPS-7")
    by_project = _mr(3, "Update baz", description="See OPS-8")
    assert link_merge_request(by_prefix, FakeSource([by_prefix]), tracker, policy).issue_key == "DEPS-7"
    assert link_merge_request(by_project, FakeSource([by_project]), tracker, policy).issue_key == "OPS-8"
    assert len(tracker.created) == 1


def test_second_run_is_idempotent_with_separate_prefix() -> None:
    """Issues filed under project_key are found again on the next run."""
    policy = LinkPolicy(ticket_prefix="DEPS", project_key="OPS")
    mr = _mr(1, "Update foo to 1.2")
    source = FakeSource([mr])
    tracker = FakeTracker()

    first = run_linker(source, tracker, policy, "renovate-bot")
    second = run_linker(source, tracker, policy, "renovate-bot")

    assert first.results[0].decision == Decision.LINKED
    assert first.results[0].issue_key == "OPS-100"
    assert second.results[0].decision == Decision.ALREADY_LINKED
    assert second.results[0].issue_key == "OPS-100"
    assert len(tracker.created) == 1
    assert len(source.notes[1]) == 1


def test_issue_description_and_comment_text() -> None:
    """Description carries the MR URL, then its description."""
    mr = _mr(1, "Update foo", description="  Release notes  ")
    assert issue_description(mr) == f"Merge request: {mr.web_url}\n\nRelease notes"
    assert issue_description(_mr(2, "Update foo")) == f"Merge request: {_mr(2, 'x').web_url}"
    assert link_comment("PROJ-1") == "Tracking issue: PROJ-1"
    assert link_comment("PROJ-1", "https://j/browse/PROJ-1") == "Tracking issue: [PROJ-1](https://j/browse/PROJ-1)"
