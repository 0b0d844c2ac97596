"""Exceptions raised by linkbot."""


class LinkbotError(Exception):
    """Base class for linkbot errors."""

    pass


class ConfigError(LinkbotError):
    """Raised when configuration is missing or invalid."""

    pass


class SourceError(LinkbotError):
    """Raised when a merge request source (GitLab) API call fails."""

    pass


class TrackerError(LinkbotError):
    """Raised when an issue tracker (Jira) API call fails."""

    pass
