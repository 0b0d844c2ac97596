"""linkbot entry point.

Single pass: list open merge requests by the automation author on GitLab,
create a Jira tracking issue for each one that has no ticket key yet, and
comment the key back on the merge request. Usage: linkbot [--dry-run].
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Tuple

from linkbot.adapters.gitlab import GitLabAdapter
from linkbot.adapters.jira import JiraAdapter
from linkbot.config import AppConfig, LinkPolicy, load_config
from linkbot.errors import ConfigError, SourceError
from linkbot.linker import run_linker
from linkbot.logging import LinkbotLogging

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="linkbot",
        description="Link dependency-update merge requests to Jira tracking issues",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Print what would be done without making changes",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config, then exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override logging.level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args(argv)


def make_source(config: AppConfig) -> GitLabAdapter:
    """Build the GitLab adapter; raises ConfigError when token or project is
    missing."""
    token = config.gitlab_token_resolved
    if not token:
        raise ConfigError("GitLab token is not set (GITLAB_TOKEN or GITLAB_TOKEN_FILE)")
    if not config.gitlab.project_id:
        raise ConfigError("GitLab project is not set (GITLAB_PROJECT_ID or CI_PROJECT_ID)")
    return GitLabAdapter(
        token=token,
        project_id=config.gitlab.project_id,
        url=config.gitlab.url,
        timeout=config.gitlab.timeout,
    )


def make_tracker(config: AppConfig, dry_run: bool) -> JiraAdapter:
    """Build the Jira adapter; credentials are only required for live runs."""
    pat = config.jira_pat_resolved
    api_token = config.jira_api_token_resolved
    if not dry_run:
        if not config.jira.url:
            raise ConfigError("Jira URL is not set (JIRA_URL)")
        if not (pat or (config.jira.user and api_token)):
            raise ConfigError("Jira credentials missing: set JIRA_PAT or JIRA_USER and JIRA_API_TOKEN")
    return JiraAdapter(
        url=config.jira.url,
        user=config.jira.user,
        api_token=api_token,
        pat=pat,
        issue_type=config.jira.issue_type,
        labels=config.jira.labels,
        api_version=config.jira.api_version,
        timeout=config.jira.timeout,
    )


def build(config: AppConfig, dry_run: bool | None = None) -> Tuple[LinkPolicy, GitLabAdapter, JiraAdapter]:
    """Build the policy and both adapters; raises ConfigError."""
    policy = config.link_policy(dry_run=dry_run)
    return policy, make_source(config), make_tracker(config, policy.dry_run)


def run(config: AppConfig, dry_run: bool | None = None) -> int:
    """Run one linking pass and return the process exit code."""
    log = logging.getLogger("linkbot.main")
    try:
        policy, source, tracker = build(config, dry_run)
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return EXIT_CONFIG

    log.info(
        "linkbot started | project=%s | author=%s | prefix=%s | dry_run=%s",
        config.gitlab.project_id,
        config.bot.author_username,
        policy.ticket_prefix,
        policy.dry_run,
    )
    try:
        report = run_linker(source, tracker, policy, config.bot.author_username)
    except SourceError as e:
        log.error("Failed to list merge requests: %s", e)
        return EXIT_FAILURE

    log.info("Done: %s", report.summary())
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Entry point for linkbot."""
    args = parse_args(argv)

    config_path = args.config
    if not config_path.is_file() and config_path == Path("config.yaml"):
        if Path("config.example.yaml").is_file():
            config_path = Path("config.example.yaml")
            logging.basicConfig(level=logging.INFO)
            logging.getLogger("linkbot.main").warning("config.yaml not found, using config.example.yaml")

    try:
        config = load_config(config_path)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger("linkbot.main").error("Configuration error: %s", e)
        return EXIT_CONFIG

    LinkbotLogging(config.logging, level=args.log_level).setup()

    if args.check:
        try:
            build(config, args.dry_run)
        except ConfigError as e:
            logging.getLogger("linkbot.main").error("Configuration error: %s", e)
            return EXIT_CONFIG
        print("Config OK:", config.gitlab.project_id, config.bot.author_username)
        return EXIT_OK

    try:
        return run(config, dry_run=args.dry_run)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except Exception as e:
        logging.getLogger("linkbot.main").exception("Fatal error: %s", e)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
