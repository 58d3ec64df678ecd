"""GitHub REST API client for making requests and handling pagination."""

import os
import time
import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .cache import CacheManager
from .date_helpers import parse_date_bound, parse_timestamp, to_utc, within_bounds
from .exceptions import RemoteClientError
from .models import CommitRecord, ContributorStats, ContributorWeek, PullRequestRecord, WeeklyActivity

API_URL = 'https://api.github.com'

# GitHub answers 202 while repository statistics are still being computed
STATS_MAX_ATTEMPTS = 5
STATS_RETRY_DELAY = 2
STATS_CACHE_HOURS = 1


def _week_date(unix_seconds):
    return datetime.fromtimestamp(unix_seconds, tz=timezone.utc).date()


def parse_contributor_stats(payload: Any) -> List[ContributorStats]:
    """Convert a ``stats/contributors`` payload into ContributorStats."""
    if not isinstance(payload, list):
        return []

    stats = []
    for contributor in payload:
        author = (contributor.get('author') or {}).get('login') or 'unknown'
        weeks = [
            ContributorWeek(
                week_start=_week_date(week['w']),
                additions=week.get('a') or 0,
                deletions=week.get('d') or 0,
                commits=week.get('c') or 0,
            )
            for week in contributor.get('weeks') or []
            if week.get('w') is not None
        ]
        stats.append(ContributorStats(author_key=author, total_commits=contributor.get('total') or 0, weeks=weeks))
    return stats


def parse_commit_activity(payload: Any) -> List[WeeklyActivity]:
    """Convert a ``stats/commit_activity`` payload into WeeklyActivity records."""
    if not isinstance(payload, list):
        return []
    return [
        WeeklyActivity(week_start=_week_date(week['week']), days=list(week.get('days') or [0] * 7),
                       total=week.get('total') or 0)
        for week in payload
        if week.get('week') is not None
    ]


def parse_commit(payload: Dict) -> CommitRecord:
    """Convert a REST commit payload into a CommitRecord.

    The commit list endpoint carries no line counts, so additions and
    deletions are 0.
    """
    commit = payload.get('commit') or {}
    author = (payload.get('author') or {}).get('login') \
        or (commit.get('author') or {}).get('email') \
        or 'unknown'
    message = (commit.get('message') or '').splitlines()
    return CommitRecord(
        sha=payload.get('sha') or '',
        message=message[0].strip() if message else '',
        timestamp=parse_timestamp((commit.get('author') or {}).get('date')),
        author_key=author,
    )


def group_commits(payloads: List[Dict]) -> Dict[str, List[CommitRecord]]:
    commits_by_author: Dict[str, List[CommitRecord]] = OrderedDict()
    for payload in payloads:
        record = parse_commit(payload)
        commits_by_author.setdefault(record.author_key, []).append(record)
    return commits_by_author


def parse_repository(data: Optional[Dict]) -> Optional[Dict]:
    """Convert a REST repository payload into the report's repository descriptor."""
    if not data:
        return None
    return {
        'name': data.get('name'),
        'full_name': data.get('full_name'),
        'description': data.get('description'),
        'created_at': data.get('created_at'),
        'updated_at': data.get('updated_at'),
        'language': data.get('language'),
        'default_branch': data.get('default_branch'),
        'size': data.get('size'),
        'stars': data.get('stargazers_count'),
        'forks': data.get('forks_count'),
        'open_issues': data.get('open_issues_count') or 0,
    }


class GitHubAPIClient:
    """Token-backed GitHub client with retry logic, pagination and caching."""

    def __init__(self, repo: str, token: str = None, cache_manager: CacheManager = None):
        """Initialize the GitHub API client.

        Args:
            repo: Repository in ``owner/repo`` form
            token: GitHub personal access token for authentication
            cache_manager: Cache for closed PR details and repository statistics
        """
        self.repo = repo
        # Use provided token or fall back to environment variable
        self.token = token or os.environ.get('GITHUB_TOKEN')
        self.cache_manager = cache_manager or CacheManager(use_cache=False)
        self.session = requests.Session()

        adapter = HTTPAdapter(
            pool_connections=20,
            pool_maxsize=20,
            max_retries=Retry(
                total=3,
                backoff_factor=0.3,
                status_forcelist=[500, 502, 503, 504]
            )
        )
        self.session.mount('https://', adapter)
        self.session.mount('http://', adapter)
        self.session.headers.update({'Accept': 'application/vnd.github.v3+json'})

        if self.token:
            self.session.headers.update({'Authorization': f'token {self.token}'})
            logging.info("Initialized GitHub API client with token")
        else:
            logging.warning("No GitHub token provided. Rate limits will be much lower.")

    @property
    def repo_url(self) -> str:
        return f"{API_URL}/repos/{self.repo}"

    def _check_response(self, response: requests.Response) -> bool:
        """Raise for failed responses; return False for a missing resource."""
        if response.status_code == 404:
            logging.warning(f"Not found: {response.url}")
            return False
        if response.status_code == 403:
            logging.error(f"Rate limit exceeded or access denied for {response.url}")
            raise RemoteClientError(f"GitHub API access denied: {response.url}")
        response.raise_for_status()
        return True

    def get_paginated(self, url: str, params: Dict = None,
                      should_continue: Optional[Callable[[List[Dict]], bool]] = None) -> List[Dict]:
        """Fetch all pages of a paginated GitHub API endpoint.

        Args:
            url: The API endpoint URL
            params: Query parameters
            should_continue: Optional callback function that takes a page of results and returns
                           False to stop pagination early, True to continue

        Returns:
            List of all items from all pages
        """
        results = []
        page = 1
        per_page = 100

        params = dict(params or {})
        params['per_page'] = per_page

        while True:
            params['page'] = page
            logging.debug(f"Fetching page {page} from {url}")
            response = self.session.get(url, params=params)

            if not self._check_response(response):
                break
            data = response.json()

            if not data:
                break

            results.extend(data)

            if should_continue and not should_continue(data):
                logging.debug(f"Early termination triggered at page {page}")
                break

            if len(data) < per_page:
                break

            page += 1

        logging.debug(f"Fetched {len(results)} total items from {url}")
        return results

    def get_json(self, url: str, params: Dict = None) -> Optional[Any]:
        """Make a single GET request; returns None for a missing resource."""
        response = self.session.get(url, params=params)
        if not self._check_response(response):
            return None
        return response.json()

    def _get_stats(self, endpoint: str) -> List[Dict]:
        """Fetch a repository statistics endpoint, waiting while GitHub computes it."""
        cache_key = self.cache_manager.get_cache_key(self.repo, endpoint)
        cached = self.cache_manager.get(cache_key, max_age_hours=STATS_CACHE_HOURS)
        if cached is not None:
            return cached

        url = f"{self.repo_url}/{endpoint}"
        for attempt in range(1, STATS_MAX_ATTEMPTS + 1):
            response = self.session.get(url)
            if response.status_code == 202:
                logging.info(f"GitHub is computing {endpoint}, retrying ({attempt}/{STATS_MAX_ATTEMPTS})")
                time.sleep(STATS_RETRY_DELAY)
                continue
            if response.status_code == 204 or not self._check_response(response):
                return []
            data = response.json()
            if not isinstance(data, list):
                return []
            self.cache_manager.put(cache_key, data)
            return data

        logging.warning(f"Statistics for {self.repo} were not ready after {STATS_MAX_ATTEMPTS} attempts")
        return []

    def _fetch_pr_details(self, prs: List[Dict]) -> Dict[int, Dict]:
        """Fetch full PR payloads (which carry line counts) in parallel.

        Closed PRs no longer change, so their details are cached.
        """
        details: Dict[int, Dict] = {}
        to_fetch = []
        for pr in prs:
            cache_key = self.cache_manager.get_cache_key(self.repo, f"pulls/{pr['number']}")
            cached = None
            if pr.get('state') == 'closed' and cache_key in self.cache_manager:
                cached = self.cache_manager.get(cache_key)
            if cached is not None:
                details[pr['number']] = cached
            else:
                to_fetch.append(pr)

        if not to_fetch:
            return details

        max_workers = min(10, len(to_fetch))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_pr = {
                executor.submit(self.get_json, f"{self.repo_url}/pulls/{pr['number']}"): pr
                for pr in to_fetch
            }
            for future in as_completed(future_to_pr):
                pr = future_to_pr[future]
                try:
                    data = future.result()
                except (RemoteClientError, requests.exceptions.RequestException) as e:
                    logging.warning(f"Error fetching details for PR #{pr['number']}: {e}")
                    continue
                if data is None:
                    continue
                details[pr['number']] = data
                if data.get('state') == 'closed':
                    cache_key = self.cache_manager.get_cache_key(self.repo, f"pulls/{pr['number']}")
                    self.cache_manager.put(cache_key, data)

        return details

    def pull_requests(self, since: str = None, until: str = None, state: str = 'all') -> List[PullRequestRecord]:
        """Fetch pull requests created within the optional date bounds.

        Args:
            since: Only include PRs created on or after this date
            until: Only include PRs created on or before this date
            state: ``open``, ``closed`` or ``all``

        Returns:
            List of PullRequestRecord, newest first
        """
        since_bound = parse_date_bound(since)
        until_bound = parse_date_bound(until, end_of_day=True)

        def should_continue(page: List[Dict]) -> bool:
            # Sorted newest first: stop once a page reaches PRs older than `since`
            if not since_bound:
                return True
            oldest = parse_timestamp(page[-1].get('created_at'))
            return oldest is None or to_utc(oldest) >= since_bound

        prs = self.get_paginated(f"{self.repo_url}/pulls", {
            'state': state,
            'sort': 'created',
            'direction': 'desc'
        }, should_continue=should_continue)

        if since_bound or until_bound:
            prs = [pr for pr in prs
                   if within_bounds(parse_timestamp(pr.get('created_at')), since_bound, until_bound)]

        details = self._fetch_pr_details(prs)

        records = []
        for pr in prs:
            data = details.get(pr['number'], pr)
            records.append(PullRequestRecord(
                number=data['number'],
                title=data.get('title') or '',
                author_key=(data.get('user') or {}).get('login') or 'unknown',
                created_at=parse_timestamp(data.get('created_at')),
                closed_at=parse_timestamp(data.get('closed_at')),
                merged_at=parse_timestamp(data.get('merged_at')),
                state=data.get('state') or 'open',
                additions=data.get('additions') or 0,
                deletions=data.get('deletions') or 0,
                changed_files=data.get('changed_files') or 0,
            ))

        logging.info(f"Fetched {len(records)} pull requests from {self.repo}")
        return records

    def repository_info(self) -> Optional[Dict]:
        return parse_repository(self.get_json(self.repo_url))

    def contributor_stats(self) -> List[ContributorStats]:
        return parse_contributor_stats(self._get_stats('stats/contributors'))

    def commit_activity(self) -> List[WeeklyActivity]:
        return parse_commit_activity(self._get_stats('stats/commit_activity'))

    def commits(self, since: str = None, until: str = None) -> Dict[str, List[CommitRecord]]:
        """Fetch commits on the default branch, grouped by author login (or email)."""
        params = {}
        if since:
            params['since'] = parse_date_bound(since).isoformat()
        if until:
            params['until'] = parse_date_bound(until, end_of_day=True).isoformat()
        return group_commits(self.get_paginated(f"{self.repo_url}/commits", params))
