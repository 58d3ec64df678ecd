"""Fold raw commit and pull request records into per-author summaries."""

import logging
from collections import OrderedDict
from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..models import (
    AuthorCommitSummary,
    AuthorPRSummary,
    CommitRecord,
    ContributorStats,
    PullRequestRecord,
    WeeklyActivity,
)

SHORT_SHA_LENGTH = 8

CommitInput = Union[Mapping[str, Iterable[CommitRecord]], Iterable[CommitRecord]]


def _isoformat(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def group_commits_by_author(commits: Iterable[CommitRecord]) -> Dict[str, List[CommitRecord]]:
    """Group commits by author key, preserving the order they were seen in."""
    grouped: Dict[str, List[CommitRecord]] = OrderedDict()
    for commit in commits:
        grouped.setdefault(commit.author_key, []).append(commit)
    return grouped


def summarize_commits(commits: CommitInput) -> Dict[str, AuthorCommitSummary]:
    """Build a commit summary for each author.

    Args:
        commits: Either commits already grouped by author key, or a flat iterable

    Returns:
        Dictionary mapping author keys to AuthorCommitSummary
    """
    if isinstance(commits, Mapping):
        grouped = commits
    else:
        grouped = group_commits_by_author(commits)

    summaries: Dict[str, AuthorCommitSummary] = {}
    for author, author_commits in grouped.items():
        author_commits = list(author_commits)
        summaries[author] = AuthorCommitSummary(
            total_commits=len(author_commits),
            total_additions=sum(c.additions or 0 for c in author_commits),
            total_deletions=sum(c.deletions or 0 for c in author_commits),
            commits=[
                {
                    'sha': c.sha[:SHORT_SHA_LENGTH],
                    'message': c.message,
                    'time': _isoformat(c.timestamp),
                    'additions': c.additions or 0,
                    'deletions': c.deletions or 0,
                }
                for c in author_commits
            ],
        )

    logging.debug(f"Summarized commits for {len(summaries)} author(s)")
    return summaries


def summarize_pull_requests(prs: Iterable[PullRequestRecord]) -> Tuple[Dict[str, AuthorPRSummary], bool]:
    """Build a pull request summary for each author in a single pass.

    Returns:
        Tuple of (summaries by author key, has_merged_at) where has_merged_at
        tells whether any record retained a merge timestamp, which the cycle
        time series needs
    """
    by_author: Dict[str, AuthorPRSummary] = {}
    has_merged_at = False

    for pr in prs:
        summary = by_author.get(pr.author_key)
        if summary is None:
            summary = AuthorPRSummary()
            by_author[pr.author_key] = summary

        additions = pr.additions or 0
        deletions = pr.deletions or 0

        summary.total_prs += 1
        if pr.merged_at is not None:
            summary.merged += 1
            has_merged_at = True
        if pr.state == 'open':
            summary.open += 1
        if pr.state == 'closed' and pr.merged_at is None:
            summary.closed += 1
        summary.total_additions += additions
        summary.total_deletions += deletions

        summary.pull_requests.append({
            'number': pr.number,
            'title': pr.title,
            'created_at': _isoformat(pr.created_at),
            'merged_at': _isoformat(pr.merged_at),
            'closed_at': _isoformat(pr.closed_at),
            'state': pr.state,
            'merged': pr.is_merged,
            'additions': additions,
            'deletions': deletions,
            'changed_files': pr.changed_files or 0,
        })

    return by_author, has_merged_at


def summarize_contributor_stats(stats: Optional[Iterable[ContributorStats]]) -> Dict[str, Dict]:
    """Keep only active weeks (commits > 0) for each remote contributor."""
    if not stats:
        return {}

    formatted = {}
    for contributor in stats:
        formatted[contributor.author_key] = {
            'total_commits': contributor.total_commits or 0,
            'weekly_activity': [
                {
                    'week': week.week_start.isoformat(),
                    'commits': week.commits,
                    'additions': week.additions or 0,
                    'deletions': week.deletions or 0,
                }
                for week in contributor.weeks
                if (week.commits or 0) > 0
            ],
        }
    return formatted


def summarize_local_activity(activity: Mapping[date, int]) -> Dict[str, int]:
    """Key daily commit counts by ISO date, in date order."""
    return {day.isoformat(): count for day, count in sorted(activity.items())}


def summarize_remote_activity(activity: Optional[Iterable[WeeklyActivity]]) -> Dict[str, Dict]:
    """Key weekly commit counts by ISO week start.

    Remote activity has no reliable daily breakdown; ``days`` is passed
    through as reported by the client.
    """
    if not activity:
        return {}
    return {
        week.week_start.isoformat(): {'total': week.total, 'days': list(week.days)}
        for week in sorted(activity, key=lambda w: w.week_start)
    }


def resolve_commit_activity(
    local_activity: Optional[Mapping[date, int]],
    remote_activity: Optional[Iterable[WeeklyActivity]],
    prefer_local: bool = True,
) -> Dict[str, Union[int, Dict]]:
    """Pick the commit activity map according to source precedence.

    Daily local activity is used whenever it is preferred and non-empty;
    otherwise the weekly remote activity is used as a fallback.
    """
    if prefer_local and local_activity:
        return summarize_local_activity(local_activity)
    remote = summarize_remote_activity(remote_activity)
    if remote:
        return remote
    if local_activity:
        return summarize_local_activity(local_activity)
    return {}
