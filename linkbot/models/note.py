"""Discussion note on a merge request."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Note(BaseModel):
    """Discussion note (comment) on a merge request."""

    model_config = ConfigDict(frozen=True)

    id: int
    body: str
    author: str
    created_at: datetime
    system: bool = False
