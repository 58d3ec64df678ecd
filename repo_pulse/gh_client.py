"""GitHub client backed by the ``gh`` command line tool."""

import json
import logging
import shutil
import subprocess
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .api_client import group_commits, parse_contributor_stats
from .date_helpers import parse_date_bound, parse_timestamp, week_start, within_bounds
from .exceptions import RemoteClientError
from .models import CommitRecord, ContributorStats, PullRequestRecord, WeeklyActivity

PR_LIST_LIMIT = 1000
PR_FIELDS = 'number,title,author,createdAt,closedAt,mergedAt,state,additions,deletions,changedFiles'
REPO_FIELDS = ('name,nameWithOwner,description,createdAt,updatedAt,primaryLanguage,'
               'defaultBranchRef,diskUsage,stargazerCount,forkCount,issues')
ACTIVITY_DAYS_BACK = 52 * 7


class GhClient:
    """Remote client that shells out to an installed, authenticated ``gh``."""

    def __init__(self, repo: str):
        self.repo = repo
        self._available: Optional[bool] = None

    def available(self) -> bool:
        """Check (once) whether gh is installed and authenticated."""
        if self._available is None:
            self._available = self._probe()
        return self._available

    def _probe(self) -> bool:
        if shutil.which('gh') is None:
            logging.debug("gh CLI not found on PATH")
            return False
        try:
            proc = subprocess.run(['gh', 'auth', 'status'], capture_output=True, text=True, timeout=30)
        except (OSError, subprocess.SubprocessError) as e:
            logging.debug(f"gh auth status failed: {e}")
            return False
        return proc.returncode == 0 or 'Logged in' in proc.stderr

    def _run_items(self, args: List[str]) -> List[Dict]:
        """Run a gh command whose output is a stream of JSON objects."""
        items = self._run(args)
        if isinstance(items, dict):
            return [items]
        return items if isinstance(items, list) else []

    def _run(self, args: List[str]) -> Any:
        """Run a gh command and decode its JSON output.

        Output that is not a single JSON document is read as one JSON value per
        line. A 404 from the API yields an empty list.

        Raises:
            RemoteClientError: If the command fails for any other reason
        """
        cmd = ['gh', *args]
        logging.debug(f"Running {' '.join(cmd)}")
        proc = subprocess.run(cmd, capture_output=True, text=True)

        # gh may return partial output alongside a failing status when paginating
        if proc.stdout.strip():
            try:
                return json.loads(proc.stdout)
            except json.JSONDecodeError:
                values = []
                for line in proc.stdout.splitlines():
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        values.append(json.loads(line))
                    except json.JSONDecodeError:
                        logging.debug(f"Skipping undecodable gh output line: {line[:80]}")
                return values

        if proc.returncode != 0:
            if 'HTTP 404' in proc.stderr or 'not found' in proc.stderr.lower():
                return []
            raise RemoteClientError(f"gh command failed: {proc.stderr.strip()}")

        return []

    def pull_requests(self, since: str = None, until: str = None, state: str = 'all') -> List[PullRequestRecord]:
        """List pull requests, filtered on creation date (gh cannot filter dates itself)."""
        prs = self._run(['pr', 'list', '--repo', self.repo, '--limit', str(PR_LIST_LIMIT),
                         '--state', state, '--json', PR_FIELDS])
        if not isinstance(prs, list):
            return []

        since_bound = parse_date_bound(since)
        until_bound = parse_date_bound(until, end_of_day=True)

        records = []
        for pr in prs:
            created_at = parse_timestamp(pr.get('createdAt'))
            if (since_bound or until_bound) and not within_bounds(created_at, since_bound, until_bound):
                continue
            pr_state = (pr.get('state') or 'open').lower()
            records.append(PullRequestRecord(
                number=pr['number'],
                title=pr.get('title') or '',
                author_key=(pr.get('author') or {}).get('login') or 'unknown',
                created_at=created_at,
                closed_at=parse_timestamp(pr.get('closedAt')),
                merged_at=parse_timestamp(pr.get('mergedAt')),
                # gh reports MERGED as its own state
                state='closed' if pr_state == 'merged' else pr_state,
                additions=pr.get('additions') or 0,
                deletions=pr.get('deletions') or 0,
                changed_files=pr.get('changedFiles') or 0,
            ))

        logging.info(f"Fetched {len(records)} pull requests from {self.repo} via gh")
        return records

    def repository_info(self) -> Optional[Dict]:
        data = self._run(['repo', 'view', self.repo, '--json', REPO_FIELDS])
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            return None

        return {
            'name': data.get('name'),
            'full_name': data.get('nameWithOwner'),
            'description': data.get('description'),
            'created_at': data.get('createdAt'),
            'updated_at': data.get('updatedAt'),
            'language': (data.get('primaryLanguage') or {}).get('name'),
            'default_branch': (data.get('defaultBranchRef') or {}).get('name'),
            'size': data.get('diskUsage'),
            'stars': data.get('stargazerCount'),
            'forks': data.get('forkCount'),
            'open_issues': (data.get('issues') or {}).get('totalCount') or 0,
        }

    def contributor_stats(self) -> List[ContributorStats]:
        return parse_contributor_stats(self._run(['api', f'repos/{self.repo}/stats/contributors', '--cache', '1h']))

    def commit_activity(self, today: date = None) -> List[WeeklyActivity]:
        """Weekly commit counts for the last year, built from the commit list.

        The commit list has no per-day breakdown here, so each week's whole
        count sits in the first day slot.
        """
        since_date = (today or date.today()) - timedelta(days=ACTIVITY_DAYS_BACK)
        commits = self._run_items(['api', '--paginate', f'repos/{self.repo}/commits?since={since_date.isoformat()}',
                                   '--jq', '.[]'])

        activity = defaultdict(int)
        for commit in commits:
            committed = parse_timestamp(((commit.get('commit') or {}).get('author') or {}).get('date'))
            if committed is None:
                continue
            activity[week_start(committed)] += 1

        return [
            WeeklyActivity(week_start=week, days=[count, 0, 0, 0, 0, 0, 0], total=count)
            for week, count in sorted(activity.items())
        ]

    def commits(self, since: str = None, until: str = None) -> Dict[str, List[CommitRecord]]:
        params = []
        if since:
            params.append(f"since={parse_date_bound(since).strftime('%Y-%m-%dT%H:%M:%SZ')}")
        if until:
            params.append(f"until={parse_date_bound(until, end_of_day=True).strftime('%Y-%m-%dT%H:%M:%SZ')}")
        endpoint = f'repos/{self.repo}/commits'
        if params:
            endpoint += '?' + '&'.join(params)

        return group_commits(self._run_items(['api', '--paginate', endpoint, '--jq', '.[]']))
