"""Jira REST adapter (issue tracker)."""

from typing import Any, Dict, List

import requests
from requests.auth import HTTPBasicAuth

from linkbot.adapters.base import IssueTracker
from linkbot.errors import TrackerError
from linkbot.models import TrackerIssue


class JiraAdapter(IssueTracker):
    """Jira API implementation.

    Authenticates with a personal access token (Bearer) when given,
    otherwise with HTTP basic auth (user + API token).
    """

    def __init__(
        self,
        url: str,
        user: str | None = None,
        api_token: str | None = None,
        pat: str | None = None,
        issue_type: str = "Task",
        labels: List[str] | None = None,
        api_version: str = "2",
        timeout: int = 30,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._api_url = f"{self._base_url}/rest/api/{api_version}"
        self._issue_type = issue_type
        self._labels = list(labels or [])
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers["Accept"] = "application/json"
        if pat:
            self._session.headers["Authorization"] = f"Bearer {pat}"
        elif user and api_token:
            self._session.auth = HTTPBasicAuth(user, api_token)

    def browse_url(self, key: str) -> str:
        return f"{self._base_url}/browse/{key}"

    def _request(self, method: str, path: str, json: Dict[str, Any] | None = None) -> requests.Response:
        url = f"{self._api_url}{path}"
        try:
            resp = self._session.request(method, url, json=json, timeout=self._timeout)
        except requests.RequestException as e:
            raise TrackerError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            msg = (resp.text or resp.reason or str(resp.status_code)).strip().replace("\n", " ")[:500]
            try:
                body = resp.json()
                messages = list(body.get("errorMessages") or [])
                messages += [f"{k}: {v}" for k, v in (body.get("errors") or {}).items()]
                if messages:
                    msg = "; ".join(messages)
            except Exception:
                pass
            raise TrackerError(f"{resp.status_code}: {msg}")
        return resp

    def create_issue(self, project_key: str, summary: str, description: str) -> TrackerIssue:
        fields: Dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "description": description,
            "issuetype": {"name": self._issue_type},
        }
        if self._labels:
            fields["labels"] = self._labels
        resp = self._request("POST", "/issue", json={"fields": fields})
        try:
            key = resp.json()["key"]
            return TrackerIssue(key=key, url=self.browse_url(key))
        except (ValueError, KeyError, TypeError) as e:
            raise TrackerError(f"Unexpected create issue response: {resp.text[:500]}") from e
