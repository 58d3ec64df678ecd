"""Decide which sources provide which data for a report."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

CLI_CLIENT = 'cli'
TOKEN_CLIENT = 'token'

NO_REMOTE_ACCESS_WARNING = (
    "No GitHub token provided and gh CLI not available or not authenticated. "
    "To enable GitHub features, either set the GITHUB_TOKEN environment variable "
    "or install and authenticate gh CLI: https://cli.github.com"
)


@dataclass(frozen=True)
class SourcePlan:
    """Which sources an analysis run reads from.

    Attributes:
        analyze_local: Whether commits, lines of code and activity come from the local checkout
        remote_identifier: ``owner/repo`` used for remote calls (explicit or derived)
        local_identifier: ``owner/repo`` derived from the checkout's origin remote
        remote_client: ``'cli'``, ``'token'`` or None when remote analysis is skipped
        warnings: Advisory messages about skipped sources
    """
    analyze_local: bool = False
    remote_identifier: Optional[str] = None
    local_identifier: Optional[str] = None
    remote_client: Optional[str] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def use_remote(self) -> bool:
        return self.remote_client is not None

    @property
    def fetch_remote_commits(self) -> bool:
        # PRs and contributor stats have no local equivalent; commits do
        return self.use_remote and not self.analyze_local

    @property
    def prefer_local_activity(self) -> bool:
        return self.analyze_local

    def to_dict(self) -> Dict:
        return {
            'analyze_local': self.analyze_local,
            'remote_identifier': self.remote_identifier,
            'local_identifier': self.local_identifier,
            'remote_client': self.remote_client,
            'fetch_remote_commits': self.fetch_remote_commits,
        }


def should_analyze_local(has_checkout: bool, requested: Optional[str], local_identifier: Optional[str]) -> bool:
    """Local analysis runs for a checkout unless a different remote was explicitly requested."""
    if not has_checkout:
        return False
    return requested is None or requested == local_identifier


def resolve_sources(
    requested_identifier: Optional[str],
    has_checkout: bool,
    local_identifier: Optional[str] = None,
    token: Optional[str] = None,
    cli_available: Optional[Callable[[], bool]] = None,
) -> SourcePlan:
    """Build the SourcePlan for one analysis run.

    Args:
        requested_identifier: Explicit ``owner/repo`` given by the caller, if any
        has_checkout: Whether the local path contains git metadata
        local_identifier: ``owner/repo`` derived from the checkout's origin URL
        token: GitHub token; when set the token-backed client is always used
        cli_available: Probe reporting whether the gh CLI is installed and
            authenticated. Only called when no token is given.

    Returns:
        The resolved SourcePlan
    """
    warnings = []

    analyze_local = should_analyze_local(has_checkout, requested_identifier, local_identifier)
    if has_checkout and not analyze_local:
        warnings.append(
            f"Local checkout remote '{local_identifier}' does not match requested "
            f"repository '{requested_identifier}'; skipping local analysis"
        )

    remote_identifier = requested_identifier or (local_identifier if analyze_local else None)

    remote_client = None
    if remote_identifier:
        if token:
            remote_client = TOKEN_CLIENT
        elif cli_available is not None and cli_available():
            remote_client = CLI_CLIENT
        else:
            warnings.append(NO_REMOTE_ACCESS_WARNING)

    if not analyze_local and remote_client is None:
        warnings.append("No data sources available; the report will be empty")

    plan = SourcePlan(
        analyze_local=analyze_local,
        remote_identifier=remote_identifier,
        local_identifier=local_identifier,
        remote_client=remote_client,
        warnings=tuple(warnings),
    )
    logging.debug(f"Resolved sources: {plan.to_dict()}")
    return plan
