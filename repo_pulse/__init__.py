"""Repo Pulse - repository activity reports from git history and GitHub."""

from .models import (
    AuthorCommitSummary,
    AuthorPRSummary,
    CommitRecord,
    PullRequestRecord,
    Report,
    VisualizationData,
)
from .api_client import GitHubAPIClient
from .cache import CacheManager
from .gh_client import GhClient
from .git_reader import LocalGitReader
from .analyzer.core import PulseAnalyzer
from .output import ReportFormatter

__all__ = [
    'AuthorCommitSummary',
    'AuthorPRSummary',
    'CommitRecord',
    'PullRequestRecord',
    'Report',
    'VisualizationData',
    'GitHubAPIClient',
    'CacheManager',
    'GhClient',
    'LocalGitReader',
    'PulseAnalyzer',
    'ReportFormatter',
]
