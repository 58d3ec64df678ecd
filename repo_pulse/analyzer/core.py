"""Main repository activity analyzer."""

import logging
import os
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

from ..api_client import GitHubAPIClient
from ..cache import CacheManager, DEFAULT_CACHE_FILE
from ..exceptions import NotAGitRepositoryError, RemoteClientError
from ..gh_client import GhClient
from ..git_reader import LocalGitReader, has_git_metadata
from ..models import Report, ReportMetadata
from .aggregation import (
    resolve_commit_activity,
    summarize_commits,
    summarize_contributor_stats,
    summarize_pull_requests,
)
from .resolver import CLI_CLIENT, SourcePlan, resolve_sources
from .visualization import DEFAULT_MEDIUM_THRESHOLD, DEFAULT_SMALL_THRESHOLD, VisualizationBuilder

REMOTE_ERRORS = (RemoteClientError, requests.exceptions.RequestException)


class PulseAnalyzer:
    """Builds a Report for a local checkout and/or a GitHub repository."""

    def __init__(
        self,
        repo_path: str = '.',
        github_repo: str = None,
        token: str = None,
        since: str = None,
        until: str = None,
        small_threshold: float = DEFAULT_SMALL_THRESHOLD,
        medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD,
        cache_file: str = DEFAULT_CACHE_FILE,
        use_cache: bool = True,
        require_local: bool = False,
        now: Optional[datetime] = None,
        reader_factory: Callable = LocalGitReader,
        cli_client_factory: Callable = GhClient,
        token_client_factory: Callable = GitHubAPIClient,
    ):
        """Initialize the analyzer.

        Args:
            repo_path: Path to a local git checkout
            github_repo: Explicit GitHub repository in ``owner/repo`` form
            token: GitHub token; without one the gh CLI is tried
            since: Only include activity on or after this date (YYYY-MM-DD)
            until: Only include activity on or before this date (YYYY-MM-DD)
            small_threshold: Largest PR size (additions+deletions) counted as small
            medium_threshold: Largest PR size counted as medium
            cache_file: Path to the API response cache
            use_cache: Whether to use caching
            require_local: Fail when repo_path is not a git checkout
            now: Reference time for the report timestamp and PR aging
            reader_factory: Builds the local reader from a path
            cli_client_factory: Builds the gh-backed client from ``owner/repo``
            token_client_factory: Builds the token-backed client
        """
        self.repo_path = os.path.abspath(os.path.expanduser(repo_path))
        self.github_repo = github_repo
        self.token = token
        self.since = since
        self.until = until
        self.cache_manager = CacheManager(cache_file, use_cache)
        self.require_local = require_local
        self.now = now
        self.reader_factory = reader_factory
        self.cli_client_factory = cli_client_factory
        self.token_client_factory = token_client_factory
        self.builder = VisualizationBuilder(small_threshold, medium_threshold, now=now)

        logging.info(f"Initialized analyzer for '{self.repo_path}'"
                     + (f" (GitHub repository '{github_repo}')" if github_repo else ''))

    def _open_reader(self):
        """Open the local reader, or return None when there is no usable checkout."""
        if not has_git_metadata(self.repo_path):
            if self.require_local:
                raise NotAGitRepositoryError(self.repo_path)
            logging.info(f"No git metadata in {self.repo_path}; skipping local analysis")
            return None

        try:
            return self.reader_factory(self.repo_path)
        except NotAGitRepositoryError:
            if self.require_local:
                raise
            logging.warning(f"{self.repo_path} is not a usable git checkout; skipping local analysis")
            return None

    def _remote_client(self, plan: SourcePlan, cli_client):
        if not plan.use_remote:
            return None
        if plan.remote_client == CLI_CLIENT:
            logging.info("Using GitHub CLI (gh) for API access")
            return cli_client
        return self.token_client_factory(plan.remote_identifier, token=self.token, cache_manager=self.cache_manager)

    def resolve(self, reader) -> tuple:
        """Resolve the SourcePlan, returning it with any gh client that was probed."""
        local_identifier = reader.remote_identifier() if reader else None
        cli_client = None

        def cli_available() -> bool:
            nonlocal cli_client
            identifier = self.github_repo or local_identifier
            cli_client = self.cli_client_factory(identifier)
            return cli_client.available()

        plan = resolve_sources(
            self.github_repo,
            has_checkout=reader is not None,
            local_identifier=local_identifier,
            token=self.token,
            cli_available=cli_available,
        )
        return plan, cli_client

    def analyze(self) -> Report:
        """Run the full pipeline and return the finished report."""
        analyzed_at = (self.now or datetime.now(timezone.utc)).isoformat()
        report = Report(metadata=ReportMetadata(analyzed_at=analyzed_at, since=self.since, until=self.until))

        reader = self._open_reader()
        plan, cli_client = self.resolve(reader)
        report.sources = plan.to_dict()
        for warning in plan.warnings:
            logging.warning(warning)
            report.warnings.append(warning)

        local_activity = {}
        if plan.analyze_local:
            logging.info("Analyzing local git history...")
            report.commits = summarize_commits(reader.commits_since_until(self.since, self.until))
            report.lines_of_code = reader.lines_of_code()
            local_activity = reader.commit_activity_by_day()

        client = self._remote_client(plan, cli_client)
        remote_activity = None
        if client is not None:
            remote_activity = self._fetch_remote(client, plan, report, needs_activity=not local_activity)

        report.commit_activity = resolve_commit_activity(
            local_activity, remote_activity, prefer_local=plan.prefer_local_activity
        )

        report.visualization_data = self.builder.build(report)
        self.cache_manager.save_cache()

        logging.info("Analysis complete")
        return report

    def _fetch_remote(self, client, plan: SourcePlan, report: Report, needs_activity: bool):
        """Fill remote-only report sections; a failing call only drops its own section."""
        try:
            report.metadata.repository = client.repository_info()
        except REMOTE_ERRORS as e:
            self._remote_failure(report, 'repository info', e)

        try:
            report.pull_requests, report.has_merged_at = summarize_pull_requests(
                client.pull_requests(since=self.since, until=self.until)
            )
        except REMOTE_ERRORS as e:
            self._remote_failure(report, 'pull requests', e)

        try:
            report.contributor_stats = summarize_contributor_stats(client.contributor_stats())
        except REMOTE_ERRORS as e:
            self._remote_failure(report, 'contributor statistics', e)

        if plan.fetch_remote_commits:
            try:
                report.commits = summarize_commits(client.commits(since=self.since, until=self.until))
            except REMOTE_ERRORS as e:
                self._remote_failure(report, 'commits', e)

        if not needs_activity:
            return None
        try:
            return client.commit_activity()
        except REMOTE_ERRORS as e:
            self._remote_failure(report, 'commit activity', e)
            return None

    @staticmethod
    def _remote_failure(report: Report, section: str, error: Exception):
        message = f"Could not fetch {section} from GitHub: {error}"
        logging.error(message)
        report.warnings.append(message)
