"""Configuration loading from YAML and environment.

Secrets (tokens) are taken from environment variables or from files
(Docker/CI secrets). Never put real tokens in config files committed to the
repo.
"""

from pathlib import Path
from typing import Annotated, Any, List

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from linkbot.errors import ConfigError


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


def _is_placeholder(value: str | None) -> bool:
    return not value or value.startswith("${")


def _split_csv(value: Any) -> Any:
    """Accept "a, b" from env as well as a YAML list."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


# Injected by load_config so secret resolution can read env/file
_current_env: dict[str, str] = {}

# GitLab CI predefined variables used when the GITLAB_* ones are unset
_CI_FALLBACKS = {
    "gitlab": {"url": ("GITLAB_URL", "CI_SERVER_URL"), "project_id": ("GITLAB_PROJECT_ID", "CI_PROJECT_ID")},
    "bot": {"author_username": ("BOT_AUTHOR_USERNAME", "RENOVATE_USERNAME")},
}


class GitLabConfig(BaseSettings):
    """GitLab API settings (merge request source)."""

    model_config = SettingsConfigDict(env_prefix="GITLAB_", extra="ignore")

    url: str = Field(default="https://gitlab.com", description="Server URL without /api/v4")
    token: str | None = Field(default=None, description="Access token; use env or secret file")
    project_id: str | None = Field(default=None, description="Numeric id or group/project path")
    timeout: int = Field(default=30, ge=1, description="HTTP timeout in seconds")


class JiraConfig(BaseSettings):
    """Jira API settings (issue tracker)."""

    model_config = SettingsConfigDict(env_prefix="JIRA_", extra="ignore")

    url: str = Field(default="", description="Jira base URL")
    user: str | None = Field(default=None, description="User for basic auth")
    api_token: str | None = Field(default=None, description="API token for basic auth")
    # Personal access token (Jira Server/DC); takes precedence over basic auth
    pat: str | None = Field(default=None, description="Bearer personal access token")
    project_key: str = Field(default="", description="Project that receives tracking issues")
    ticket_prefix: str = Field(default="", description="Ticket key prefix to detect; defaults to project_key")
    issue_type: str = Field(default="Task", description="Issue type name")
    labels: Annotated[List[str], NoDecode] = Field(default_factory=list, description="Labels for new issues")
    api_version: str = Field(default="2", description="REST API version")
    timeout: int = Field(default=30, ge=1, description="HTTP timeout in seconds")

    @field_validator("labels", mode="before")
    @classmethod
    def split_labels(cls, value: Any) -> Any:
        return _split_csv(value)


class BotConfig(BaseSettings):
    """Automation identity and linking behaviour."""

    model_config = SettingsConfigDict(env_prefix="BOT_", extra="ignore")

    author_username: str = Field(
        default="renovate-bot",
        description="Only merge requests by this author are processed",
    )
    skip_keywords: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Case-insensitive keywords; matching merge requests are skipped",
    )
    dry_run: bool = Field(default=False, description="Report intended actions without writing")

    @field_validator("skip_keywords", mode="before")
    @classmethod
    def split_keywords(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("author_username")
    @classmethod
    def require_author(cls, value: str) -> str:
        # An empty author would match every merge request
        value = value.strip()
        if not value:
            raise ValueError("author_username must not be empty")
        return value


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class LinkPolicy(BaseModel):
    """Explicit settings for the linking decision policy."""

    ticket_prefix: str
    project_key: str
    skip_keywords: List[str] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def detect_prefixes(self) -> List[str]:
        """Prefixes searched for existing links.

        Includes the project key so issues filed by this bot are found
        again on the next run.
        """
        return list(dict.fromkeys([self.ticket_prefix, self.project_key]))


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    gitlab: GitLabConfig = Field(default_factory=GitLabConfig)
    jira: JiraConfig = Field(default_factory=JiraConfig)
    bot: BotConfig = Field(default_factory=BotConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def gitlab_token_resolved(self) -> str | None:
        """Resolve GitLab token from config, env or secret file."""
        t = self.gitlab.token
        if not _is_placeholder(t):
            return t
        return _read_secret("GITLAB_TOKEN", "GITLAB_TOKEN_FILE")

    @property
    def jira_api_token_resolved(self) -> str | None:
        """Resolve Jira API token from config, env or secret file."""
        t = self.jira.api_token
        if not _is_placeholder(t):
            return t
        return _read_secret("JIRA_API_TOKEN", "JIRA_API_TOKEN_FILE")

    @property
    def jira_pat_resolved(self) -> str | None:
        """Resolve Jira personal access token from config, env or secret
        file."""
        t = self.jira.pat
        if not _is_placeholder(t):
            return t
        return _read_secret("JIRA_PAT", "JIRA_PAT_FILE")

    def link_policy(self, dry_run: bool | None = None) -> LinkPolicy:
        """Build the policy passed to the linker.

        The ticket prefix falls back to the Jira project key; an empty
        prefix is a configuration error.
        """
        prefix = (self.jira.ticket_prefix or self.jira.project_key).strip()
        if not prefix:
            raise ConfigError("jira.ticket_prefix or jira.project_key must be set")
        return LinkPolicy(
            ticket_prefix=prefix,
            project_key=self.jira.project_key.strip() or prefix,
            skip_keywords=list(self.bot.skip_keywords),
            dry_run=self.bot.dry_run if dry_run is None else dry_run,
        )


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def _apply_ci_fallbacks(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill unset fields from CI variables (e.g. CI_PROJECT_ID)."""
    merged = dict(raw)
    for section, fields in _CI_FALLBACKS.items():
        section_raw = dict(merged.get(section) or {})
        for field, (primary, fallback) in fields.items():
            if section_raw.get(field) or _current_env.get(primary):
                continue
            if _current_env.get(fallback):
                section_raw[field] = _current_env[fallback]
        merged[section] = section_raw
    return merged


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Values present in the YAML file override environment variables of the
    same section. Secrets: GITLAB_TOKEN or GITLAB_TOKEN_FILE, JIRA_API_TOKEN
    or JIRA_API_TOKEN_FILE, JIRA_PAT or JIRA_PAT_FILE.
    """
    global _current_env
    import os

    _current_env = dict(os.environ)

    raw: dict[str, Any] = {}
    path = config_path or Path("config.yaml")
    if path.is_file():
        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config root in {path} must be a mapping")
        raw = _substitute_env(raw)

    raw = _apply_ci_fallbacks(raw)

    try:
        return AppConfig(
            gitlab=GitLabConfig(**(raw.get("gitlab") or {})),
            jira=JiraConfig(**(raw.get("jira") or {})),
            bot=BotConfig(**(raw.get("bot") or {})),
            logging=LoggingConfig(**(raw.get("logging") or {})),
        )
    except ValidationError as e:
        raise ConfigError(str(e)) from e
