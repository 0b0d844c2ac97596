"""Issue created in the tracker."""

from pydantic import BaseModel, ConfigDict


class TrackerIssue(BaseModel):
    """Tracking issue key and browse URL (None when unknown)."""

    model_config = ConfigDict(frozen=True)

    key: str
    url: str | None = None
