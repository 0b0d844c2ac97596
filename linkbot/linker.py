"""
Link dependency-update merge requests to tracking issues.

For each open merge request by the automation author, in fetch order:
skip it when a skip keyword matches, skip it when a ticket key is already
referenced in the title, description or notes, otherwise create a tracking
issue and post a comment with the new key. A failure on one merge request
is logged and does not stop the others.
"""

import logging
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from linkbot.adapters.base import IssueTracker, MergeRequestSource
from linkbot.config import LinkPolicy
from linkbot.errors import SourceError, TrackerError
from linkbot.matching import find_ticket_key, matching_keyword
from linkbot.models import MergeRequest

LOG = logging.getLogger("linkbot.linker")


class Decision(str, Enum):
    """Outcome for one merge request."""

    SKIPPED_KEYWORD = "skipped_keyword"
    ALREADY_LINKED = "already_linked"
    LINKED = "linked"
    WOULD_LINK = "would_link"
    FAILED = "failed"


class LinkResult(BaseModel):
    """What happened to one merge request."""

    merge_request: MergeRequest
    decision: Decision
    issue_key: str | None = None
    error: str | None = None


class LinkReport(BaseModel):
    """Results of one run, in fetch order."""

    results: List[LinkResult] = Field(default_factory=list)

    def counts(self) -> Dict[Decision, int]:
        counts = {decision: 0 for decision in Decision}
        for result in self.results:
            counts[result.decision] += 1
        return counts

    def summary(self) -> str:
        return ", ".join(f"{d.value}={n}" for d, n in self.counts().items())


def issue_summary(mr: MergeRequest) -> str:
    return mr.title


def issue_description(mr: MergeRequest) -> str:
    """Tracking issue body: merge request URL, then its description."""
    parts = [f"Merge request: {mr.web_url}"]
    if mr.description.strip():
        parts.append(mr.description.strip())
    return "\n\n".join(parts)


def link_comment(issue_key: str, issue_url: str | None = None) -> str:
    """Comment posted on the merge request; contains the key so later runs
    detect the link."""
    if issue_url:
        return f"Tracking issue: [{issue_key}]({issue_url})"
    return f"Tracking issue: {issue_key}"


def link_merge_request(
    mr: MergeRequest,
    source: MergeRequestSource,
    tracker: IssueTracker,
    policy: LinkPolicy,
    log: logging.Logger | None = None,
) -> LinkResult:
    """Apply the decision policy to one merge request.

    Raises SourceError or TrackerError; run_linker turns them into a
    FAILED result.
    """
    logger = log or LOG

    keyword = matching_keyword(mr, policy.skip_keywords)
    if keyword is not None:
        logger.info("MR !%s: skipped, matches keyword %r", mr.iid, keyword)
        return LinkResult(merge_request=mr, decision=Decision.SKIPPED_KEYWORD)

    # Title and description first; notes are fetched only when needed
    key = find_ticket_key(mr.title, mr.description, [], policy.detect_prefixes)
    if key is None:
        notes = source.list_notes(mr.iid)
        key = find_ticket_key("", "", notes, policy.detect_prefixes)
    if key is not None:
        logger.info("MR !%s: already linked to %s", mr.iid, key)
        return LinkResult(merge_request=mr, decision=Decision.ALREADY_LINKED, issue_key=key)

    summary = issue_summary(mr)
    if policy.dry_run:
        logger.info(
            "[dry-run] MR !%s: would create %s issue %r and comment on %s",
            mr.iid,
            policy.project_key,
            summary,
            mr.web_url,
        )
        return LinkResult(merge_request=mr, decision=Decision.WOULD_LINK)

    issue = tracker.create_issue(policy.project_key, summary, issue_description(mr))
    logger.info("MR !%s: created issue %s", mr.iid, issue.key)
    try:
        source.post_comment(mr.iid, link_comment(issue.key, issue.url))
    except SourceError as e:
        # The issue exists; keep its key in the result so it can be linked by hand
        logger.warning("MR !%s: created %s but failed to post comment: %s", mr.iid, issue.key, e)
        return LinkResult(merge_request=mr, decision=Decision.FAILED, issue_key=issue.key, error=str(e))
    logger.info("MR !%s: linked to %s", mr.iid, issue.key)
    return LinkResult(merge_request=mr, decision=Decision.LINKED, issue_key=issue.key)


def run_linker(
    source: MergeRequestSource,
    tracker: IssueTracker,
    policy: LinkPolicy,
    author: str,
    log: logging.Logger | None = None,
) -> LinkReport:
    """Process all open merge requests by author, one at a time.

    Listing merge requests is fatal on failure (SourceError propagates);
    per merge request failures are recorded and processing continues.
    """
    logger = log or LOG
    merge_requests = source.list_open_merge_requests(author)
    logger.info("Found %s open merge request(s) by %s", len(merge_requests), author)

    report = LinkReport()
    for mr in merge_requests:
        logger.debug("MR !%s: %s (%s)", mr.iid, mr.title, mr.web_url)
        try:
            result = link_merge_request(mr, source, tracker, policy, log=logger)
        except (SourceError, TrackerError) as e:
            logger.warning("MR !%s: failed: %s", mr.iid, e)
            result = LinkResult(merge_request=mr, decision=Decision.FAILED, error=str(e))
        report.results.append(result)
    return report
