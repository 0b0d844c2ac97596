"""Merge request (pull request) model."""

from pydantic import BaseModel, ConfigDict


class MergeRequest(BaseModel):
    """Open merge request snapshot, fetched per run."""

    model_config = ConfigDict(frozen=True)

    iid: int
    title: str
    description: str = ""
    web_url: str
    author: str
    source_branch: str = ""
