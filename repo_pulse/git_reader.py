"""Local git checkout reader backed by the git command line."""

import logging
import os
import re
import subprocess
from collections import OrderedDict, defaultdict
from typing import Dict, List, Optional, Tuple

from .date_helpers import parse_date_bound, parse_timestamp, within_bounds
from .exceptions import NotAGitRepositoryError
from .models import CommitRecord

GITHUB_REMOTE_PATTERNS = [
    re.compile(r'github\.com[:/]([^/]+/[^/]+?)(?:\.git)?$'),
    re.compile(r'git@github\.com:([^/]+/[^/]+?)(?:\.git)?$'),
]

BINARY_EXTENSIONS = (
    '.jpg', '.jpeg', '.png', '.gif', '.pdf', '.zip', '.tar', '.gz',
    '.exe', '.dll', '.so', '.dylib', '.o', '.a',
)

COMMIT_MARKER = '@@@'
LOG_FORMAT = f'{COMMIT_MARKER}%H%x09%ae%x09%cI%x09%s'


def extract_remote_identifier(url: Optional[str]) -> Optional[str]:
    """Extract ``owner/repo`` from a GitHub remote URL.

    Supports ``https://github.com/owner/repo(.git)`` and
    ``git@github.com:owner/repo(.git)``. Returns None when nothing matches.
    """
    if not url:
        return None
    url = url.strip()
    for pattern in GITHUB_REMOTE_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def has_git_metadata(repo_path: str) -> bool:
    return os.path.exists(os.path.join(repo_path, '.git'))


def is_binary_path(path: str) -> bool:
    return path.lower().endswith(BINARY_EXTENSIONS)


def run_git(args: List[str], cwd: str, timeout_s: int = 300) -> Tuple[int, str, str]:
    try:
        proc = subprocess.run(
            ['git', *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except (OSError, subprocess.SubprocessError) as e:
        # missing git binary or a command that ran past its timeout
        return 1, '', str(e)
    return proc.returncode, proc.stdout, proc.stderr


class LocalGitReader:
    """Reads commits, blame ownership and activity from a local checkout."""

    def __init__(self, repo_path: str):
        """Initialize the reader.

        Args:
            repo_path: Path to the git checkout

        Raises:
            NotAGitRepositoryError: If the path is not inside a git work tree
        """
        self.repo_path = os.path.abspath(os.path.expanduser(repo_path))
        if not os.path.isdir(self.repo_path):
            raise NotAGitRepositoryError(self.repo_path)

        code, out, _ = run_git(['rev-parse', '--is-inside-work-tree'], cwd=self.repo_path)
        if code != 0 or out.strip() != 'true':
            raise NotAGitRepositoryError(self.repo_path)

    def _git(self, args: List[str]) -> Optional[str]:
        code, out, err = run_git(args, cwd=self.repo_path)
        if code != 0:
            logging.warning(f"git {' '.join(args[:2])} failed in {self.repo_path}: {err.strip()}")
            return None
        return out

    def commits_since_until(self, since: Optional[str] = None,
                            until: Optional[str] = None) -> Dict[str, List[CommitRecord]]:
        """Read commits reachable from HEAD, grouped by author email.

        Args:
            since: Only include commits on or after this date
            until: Only include commits on or before this date

        Returns:
            Ordered dictionary of author email -> commits, most recent first
        """
        since_bound = parse_date_bound(since)
        until_bound = parse_date_bound(until, end_of_day=True)

        out = self._git(['log', '--root', '--numstat', '--date=iso-strict',
                         f'--pretty=format:{LOG_FORMAT}', 'HEAD'])
        if out is None:
            return OrderedDict()

        commits_by_author: Dict[str, List[CommitRecord]] = OrderedDict()
        current: Optional[CommitRecord] = None

        def flush(commit: Optional[CommitRecord]):
            if commit is None:
                return
            if (since_bound or until_bound) and not within_bounds(commit.timestamp, since_bound, until_bound):
                return
            commits_by_author.setdefault(commit.author_key, []).append(commit)

        for line in out.splitlines():
            if line.startswith(COMMIT_MARKER):
                flush(current)
                parts = line[len(COMMIT_MARKER):].split('\t', 3)
                while len(parts) < 4:
                    parts.append('')
                sha, email, committed, subject = parts
                current = CommitRecord(
                    sha=sha,
                    message=subject.strip(),
                    timestamp=parse_timestamp(committed),
                    author_key=email,
                )
                continue

            if current is None or not line.strip():
                continue

            fields = line.split('\t', 2)
            if len(fields) < 3:
                continue
            # binary files show '-' for both counts
            if fields[0].isdigit():
                current.additions += int(fields[0])
            if fields[1].isdigit():
                current.deletions += int(fields[1])

        flush(current)

        logging.info(f"Read {sum(len(c) for c in commits_by_author.values())} local commits "
                     f"from {len(commits_by_author)} author(s)")
        return commits_by_author

    def lines_of_code(self) -> Dict[str, int]:
        """Count the lines each author currently owns at HEAD, via git blame."""
        out = self._git(['ls-tree', '-r', '--name-only', 'HEAD'])
        if out is None:
            return {}

        blame_data: Dict[str, int] = defaultdict(int)
        for path in out.splitlines():
            if not path or is_binary_path(path):
                continue

            code, blame, err = run_git(['blame', '--line-porcelain', 'HEAD', '--', path], cwd=self.repo_path)
            if code != 0:
                logging.debug(f"Skipping blame for {path}: {err.strip()}")
                continue

            for blame_line in blame.splitlines():
                if blame_line.startswith('author-mail '):
                    author = blame_line[len('author-mail '):].strip().strip('<>')
                    blame_data[author] += 1

        return dict(blame_data)

    def commit_activity_by_day(self) -> Dict:
        """Count commits reachable from HEAD per calendar day, in date order."""
        out = self._git(['log', '--pretty=format:%cI', 'HEAD'])
        if out is None:
            return {}

        activity = defaultdict(int)
        for line in out.splitlines():
            timestamp = parse_timestamp(line)
            if timestamp is None:
                continue
            activity[timestamp.date()] += 1

        return dict(sorted(activity.items()))

    def remote_identifier(self) -> Optional[str]:
        """Return ``owner/repo`` for the origin remote, if it points at GitHub."""
        code, out, _ = run_git(['config', '--get', 'remote.origin.url'], cwd=self.repo_path)
        if code != 0:
            return None
        return extract_remote_identifier(out)
