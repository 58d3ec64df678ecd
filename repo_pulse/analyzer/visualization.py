"""Derive chart-ready series from an aggregated report."""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from ..date_helpers import month_start, parse_timestamp, percentile, round_half_up, to_utc, week_start
from ..models import AuthorCommitSummary, AuthorPRSummary, Report, VisualizationData

DEFAULT_SMALL_THRESHOLD = 50
DEFAULT_MEDIUM_THRESHOLD = 250

SECONDS_PER_DAY = 86400.0

AGING_BUCKETS = ('0-3d', '4-7d', '8-14d', '15+d')


def _iter_pull_requests(pull_requests: Mapping[str, AuthorPRSummary]):
    for author, summary in pull_requests.items():
        for pr in summary.pull_requests:
            yield author, pr


def _iter_commits(commits: Mapping[str, AuthorCommitSummary]):
    for author, summary in commits.items():
        for commit in summary.commits:
            yield author, commit


def _nested_timeline(timeline: Dict[str, Dict]) -> List[Dict]:
    return [{'date': date, 'authors': dict(authors)} for date, authors in sorted(timeline.items())]


def pull_requests_timeline(pull_requests: Mapping[str, AuthorPRSummary]) -> List[Dict]:
    """PR counts per author, by month of creation."""
    timeline = defaultdict(lambda: defaultdict(int))
    for author, pr in _iter_pull_requests(pull_requests):
        created = parse_timestamp(pr.get('created_at'))
        if created is None:
            continue
        timeline[month_start(created).isoformat()][author] += 1
    return _nested_timeline(timeline)


def lines_of_code_chart(lines_of_code: Mapping[str, int]) -> List[Dict]:
    chart = [{'author': author, 'lines': lines} for author, lines in lines_of_code.items()]
    return sorted(chart, key=lambda d: -d['lines'])


def commit_activity_chart(commit_activity: Mapping) -> List[Dict]:
    """Commit counts per date, in the order of the activity map.

    Weekly remote activity entries contribute their total.
    """
    chart = []
    for date, value in commit_activity.items():
        count = value.get('total', 0) if isinstance(value, Mapping) else value
        chart.append({'date': str(date), 'commits': count})
    return chart


def commits_timeline(commits: Mapping[str, AuthorCommitSummary]) -> List[Dict]:
    """Commit counts per author, by week of commit time."""
    timeline = defaultdict(lambda: defaultdict(int))
    for author, commit in _iter_commits(commits):
        committed = parse_timestamp(commit.get('time'))
        if committed is None:
            continue
        timeline[week_start(committed).isoformat()][author] += 1
    return _nested_timeline(timeline)


def lines_changed_timeline(contributor_stats: Mapping[str, Dict]) -> List[Dict]:
    """Weekly additions and deletions per remote contributor."""
    timeline = defaultdict(lambda: defaultdict(lambda: {'additions': 0, 'deletions': 0}))
    for author, data in contributor_stats.items():
        for week in data.get('weekly_activity', []):
            bucket = timeline[week['week']][author]
            bucket['additions'] += week.get('additions') or 0
            bucket['deletions'] += week.get('deletions') or 0
    return [
        {'date': date, 'authors': {author: dict(counts) for author, counts in authors.items()}}
        for date, authors in sorted(timeline.items())
    ]


def pr_cycle_time_timeline(pull_requests: Mapping[str, AuthorPRSummary]) -> List[Dict]:
    """p50/p90/max days from creation to merge, by week of creation."""
    by_week = defaultdict(list)
    for _author, pr in _iter_pull_requests(pull_requests):
        if not pr.get('merged'):
            continue
        created = parse_timestamp(pr.get('created_at'))
        merged = parse_timestamp(pr.get('merged_at'))
        if created is None or merged is None:
            continue
        days = (to_utc(merged) - to_utc(created)).total_seconds() / SECONDS_PER_DAY
        by_week[week_start(created).isoformat()].append(days)

    timeline = []
    for week, values in sorted(by_week.items()):
        values = sorted(values)
        timeline.append({
            'week': week,
            'p50': round_half_up(percentile(values, 0.5)),
            'p90': round_half_up(percentile(values, 0.9)),
            'max': round_half_up(values[-1]),
            'count': len(values),
        })
    return timeline


def pr_size_mix_timeline(pull_requests: Mapping[str, AuthorPRSummary],
                         small_threshold: float = DEFAULT_SMALL_THRESHOLD,
                         medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD) -> List[Dict]:
    """Small/medium/large PR counts by week of creation, regardless of state."""
    buckets_by_week = defaultdict(lambda: {'small': 0, 'medium': 0, 'large': 0})
    for _author, pr in _iter_pull_requests(pull_requests):
        created = parse_timestamp(pr.get('created_at'))
        if created is None:
            continue
        size = (pr.get('additions') or 0) + (pr.get('deletions') or 0)
        counts = buckets_by_week[week_start(created).isoformat()]
        if size <= small_threshold:
            counts['small'] += 1
        elif size <= medium_threshold:
            counts['medium'] += 1
        else:
            counts['large'] += 1
    return [{'week': week, **counts} for week, counts in sorted(buckets_by_week.items())]


def commit_activity_heatmap(commits: Mapping[str, AuthorCommitSummary]) -> List[List[int]]:
    """7x24 grid of commit counts; rows are weekdays with Sunday first, columns are hours."""
    heatmap = [[0] * 24 for _ in range(7)]
    for _author, commit in _iter_commits(commits):
        committed = parse_timestamp(commit.get('time'))
        if committed is None:
            continue
        weekday = (committed.weekday() + 1) % 7
        heatmap[weekday][committed.hour] += 1
    return heatmap


def aging_bucket(age_days: float) -> str:
    """Map an open PR's age in days to its aging bucket.

    Day 3 belongs to ``0-3d`` and day 7 to ``8-14d``. A negative age (creation
    time ahead of ``now``, from clock skew) is deliberately counted as ``0-3d``
    rather than falling through to ``15+d``.
    """
    if age_days <= 3:
        return '0-3d'
    if age_days < 7:
        return '4-7d'
    if age_days < 15:
        return '8-14d'
    return '15+d'


def open_prs_aging(pull_requests: Mapping[str, AuthorPRSummary], now: Optional[datetime] = None) -> Dict[str, int]:
    """Count currently open PRs per aging bucket."""
    now = to_utc(now) if now else datetime.now(timezone.utc)
    buckets = {key: 0 for key in AGING_BUCKETS}
    for _author, pr in _iter_pull_requests(pull_requests):
        if pr.get('state') != 'open':
            continue
        created = parse_timestamp(pr.get('created_at'))
        if created is None:
            continue
        age_days = (now - to_utc(created)).total_seconds() / SECONDS_PER_DAY
        buckets[aging_bucket(age_days)] += 1
    return buckets


class VisualizationBuilder:
    """Builds every visualization series for a report."""

    def __init__(self, small_threshold: float = DEFAULT_SMALL_THRESHOLD,
                 medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD,
                 now: Optional[datetime] = None):
        """Initialize the builder.

        Args:
            small_threshold: Largest additions+deletions counted as a small PR
            medium_threshold: Largest additions+deletions counted as a medium PR
            now: Reference time for open PR aging (defaults to the current time)
        """
        if small_threshold <= 0 or medium_threshold <= 0:
            raise ValueError("PR size thresholds must be positive")
        self.small_threshold = small_threshold
        self.medium_threshold = medium_threshold
        self.now = now

    def build(self, report: Report) -> VisualizationData:
        """Compute all series whose inputs are present in the report."""
        data = VisualizationData()

        if report.pull_requests:
            data.pull_requests_timeline = pull_requests_timeline(report.pull_requests)
            if report.has_merged_at:
                data.pr_cycle_time_timeline = pr_cycle_time_timeline(report.pull_requests) or None
            data.pr_size_mix_timeline = pr_size_mix_timeline(
                report.pull_requests, self.small_threshold, self.medium_threshold
            ) or None
            data.open_prs_aging = open_prs_aging(report.pull_requests, self.now)

        if report.lines_of_code:
            data.lines_of_code_chart = lines_of_code_chart(report.lines_of_code)

        if report.commit_activity:
            data.commit_activity_chart = commit_activity_chart(report.commit_activity)

        if report.commits:
            data.commits_timeline = commits_timeline(report.commits)
            data.commit_activity_heatmap = commit_activity_heatmap(report.commits)

        if report.contributor_stats:
            data.lines_changed_timeline = lines_changed_timeline(report.contributor_stats)

        logging.debug(f"Built visualization series: {', '.join(data.to_dict()) or 'none'}")
        return data
