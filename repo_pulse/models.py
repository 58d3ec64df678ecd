"""Data models for repository activity analysis."""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass
class CommitRecord:
    """A single commit as returned by a local reader or remote client."""
    sha: str
    message: str
    timestamp: Optional[datetime]
    additions: int = 0
    deletions: int = 0
    author_key: str = 'unknown'


@dataclass
class PullRequestRecord:
    """A pull request as returned by a remote client."""
    number: int
    title: str
    author_key: str
    created_at: Optional[datetime]
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    state: str = 'open'
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0

    @property
    def is_merged(self) -> bool:
        # merged_at wins over state: a merged PR reports state 'closed'
        return self.merged_at is not None


@dataclass
class ContributorWeek:
    week_start: date
    additions: int = 0
    deletions: int = 0
    commits: int = 0


@dataclass
class ContributorStats:
    """Weekly contribution statistics for one remote contributor."""
    author_key: str
    total_commits: int = 0
    weeks: List[ContributorWeek] = field(default_factory=list)


@dataclass
class WeeklyActivity:
    """Commit counts for one week, one slot per day starting on the week start."""
    week_start: date
    days: List[int] = field(default_factory=lambda: [0] * 7)
    total: int = 0


@dataclass
class AuthorCommitSummary:
    """Commit totals for a single author."""
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    commits: List[Dict] = field(default_factory=list)


@dataclass
class AuthorPRSummary:
    """Pull request totals for a single author.

    ``merged + open + closed`` does not have to add up to ``total_prs``:
    ``closed`` only counts PRs closed without being merged.
    """
    total_prs: int = 0
    merged: int = 0
    open: int = 0
    closed: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    pull_requests: List[Dict] = field(default_factory=list)


@dataclass
class VisualizationData:
    """Chart-ready series derived from a report.

    Every series is optional; ``None`` means there was no data for it and
    the key is left out of the serialized form.
    """
    pull_requests_timeline: Optional[List[Dict]] = None
    lines_of_code_chart: Optional[List[Dict]] = None
    commit_activity_chart: Optional[List[Dict]] = None
    commits_timeline: Optional[List[Dict]] = None
    lines_changed_timeline: Optional[List[Dict]] = None
    pr_cycle_time_timeline: Optional[List[Dict]] = None
    pr_size_mix_timeline: Optional[List[Dict]] = None
    commit_activity_heatmap: Optional[List[List[int]]] = None
    open_prs_aging: Optional[Dict[str, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class ReportMetadata:
    analyzed_at: str
    repository: Optional[Dict] = None
    since: Optional[str] = None
    until: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'analyzed_at': self.analyzed_at,
            'repository': self.repository,
            'period': {
                'since': self.since,
                'until': self.until,
            },
        }


@dataclass
class Report:
    """Aggregated result of one analysis run."""
    metadata: ReportMetadata
    commits: Dict[str, AuthorCommitSummary] = field(default_factory=dict)
    pull_requests: Dict[str, AuthorPRSummary] = field(default_factory=dict)
    lines_of_code: Dict[str, int] = field(default_factory=dict)
    commit_activity: Dict[str, Any] = field(default_factory=dict)
    contributor_stats: Optional[Dict[str, Dict]] = None
    has_merged_at: bool = False
    visualization_data: VisualizationData = field(default_factory=VisualizationData)
    sources: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the plain dictionary handed to renderers."""
        data = {
            'metadata': self.metadata.to_dict(),
            'sources': self.sources,
            'pull_requests': {author: asdict(summary) for author, summary in self.pull_requests.items()},
            'commits': {author: asdict(summary) for author, summary in self.commits.items()},
            'lines_of_code': dict(self.lines_of_code),
            'commit_activity': dict(self.commit_activity),
            'visualization_data': self.visualization_data.to_dict(),
        }
        if self.contributor_stats is not None:
            data['contributor_stats'] = self.contributor_stats
        if self.warnings:
            data['warnings'] = list(self.warnings)
        return data
