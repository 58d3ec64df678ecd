"""
Unit tests for the local git reader
"""

import subprocess
import pytest
from datetime import date, datetime, timezone
from unittest.mock import patch

from repo_pulse.exceptions import NotAGitRepositoryError
from repo_pulse.git_reader import LocalGitReader, has_git_metadata, is_binary_path, run_git

LOG_OUTPUT = (
    "@@@" + "a" * 40 + "\ta@x.com\t2024-01-15T10:00:00+00:00\tAdd feature\n"
    "10\t2\tsrc/app.py\n"
    "-\t-\tlogo.png\n"
    "\n"
    "@@@" + "b" * 40 + "\tb@y.com\t2024-01-15T11:00:00+00:00\tFix typo\n"
    "5\t0\tREADME.md\n"
    "\n"
    "@@@" + "c" * 40 + "\ta@x.com\t2023-11-01T09:00:00+00:00\tInitial commit\n"
    "100\t0\tsrc/app.py\n"
)

BLAME_OUTPUT = (
    "aaaa 1 1 1\n"
    "author Alice\n"
    "author-mail <a@x.com>\n"
    "\tline one\n"
    "bbbb 2 2 1\n"
    "author Bob\n"
    "author-mail <b@y.com>\n"
    "\tline two\n"
    "aaaa 3 3\n"
    "author Alice\n"
    "author-mail <a@x.com>\n"
    "\tline three\n"
)


class FakeGit:
    """Answers git invocations from canned outputs."""

    def __init__(self, outputs):
        self.outputs = outputs
        self.calls = []

    def __call__(self, args, cwd, timeout_s=300):
        self.calls.append(args)
        for prefix, result in self.outputs.items():
            if tuple(args[:len(prefix)]) == prefix:
                return result
        return 1, '', 'unknown command'


@pytest.fixture
def fake_git():
    return FakeGit({
        ('rev-parse',): (0, 'true\n', ''),
        ('log', '--root'): (0, LOG_OUTPUT, ''),
        ('log', '--pretty=format:%cI'): (0, '2024-01-15T10:00:00+00:00\n2024-01-15T11:00:00+00:00\n'
                                            '2023-11-01T09:00:00+00:00\n', ''),
        ('ls-tree',): (0, 'src/app.py\nlogo.png\nbroken.txt\n', ''),
        ('blame', '--line-porcelain', 'HEAD', '--', 'src/app.py'): (0, BLAME_OUTPUT, ''),
        ('config', '--get', 'remote.origin.url'): (0, 'git@github.com:octo/widgets.git\n', ''),
    })


@pytest.fixture
def reader(tmp_path, fake_git):
    with patch('repo_pulse.git_reader.run_git', fake_git):
        yield LocalGitReader(str(tmp_path))


class TestReaderInitialization:
    """Test cases for checkout detection."""

    def test_not_a_work_tree(self, tmp_path):
        with patch('repo_pulse.git_reader.run_git', return_value=(128, '', 'fatal: not a git repository')):
            with pytest.raises(NotAGitRepositoryError):
                LocalGitReader(str(tmp_path))

    def test_missing_directory(self, tmp_path):
        with pytest.raises(NotAGitRepositoryError):
            LocalGitReader(str(tmp_path / 'missing'))

    def test_has_git_metadata(self, tmp_path):
        assert has_git_metadata(str(tmp_path)) is False
        (tmp_path / '.git').mkdir()
        assert has_git_metadata(str(tmp_path)) is True

    def test_binary_paths(self):
        assert is_binary_path('assets/Logo.PNG')
        assert is_binary_path('lib/libfoo.so')
        assert not is_binary_path('src/app.py')


class TestCommits:
    """Test cases for reading commit history."""

    def test_grouped_by_author_most_recent_first(self, reader):
        commits = reader.commits_since_until()

        assert list(commits) == ['a@x.com', 'b@y.com']
        assert [c.message for c in commits['a@x.com']] == ['Add feature', 'Initial commit']
        first = commits['a@x.com'][0]
        assert first.additions == 10
        assert first.deletions == 2
        assert first.timestamp == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert commits['b@y.com'][0].additions == 5

    def test_since_until_filter(self, reader):
        commits = reader.commits_since_until(since='2024-01-01', until='2024-01-15')
        assert [c.sha[0] for c in commits['a@x.com']] == ['a']
        assert 'b@y.com' in commits

    def test_failed_log_returns_empty(self, tmp_path):
        git = FakeGit({('rev-parse',): (0, 'true\n', '')})
        with patch('repo_pulse.git_reader.run_git', git):
            assert LocalGitReader(str(tmp_path)).commits_since_until() == {}


class TestOwnershipAndActivity:
    """Test cases for blame ownership, activity and remotes."""

    def test_lines_of_code_skips_binary_and_failing_files(self, reader, fake_git):
        assert reader.lines_of_code() == {'a@x.com': 2, 'b@y.com': 1}
        blamed = [call[-1] for call in fake_git.calls if call[0] == 'blame']
        assert 'logo.png' not in blamed
        assert 'broken.txt' in blamed

    def test_commit_activity_by_day(self, reader):
        assert reader.commit_activity_by_day() == {date(2023, 11, 1): 1, date(2024, 1, 15): 2}

    def test_remote_identifier(self, reader):
        assert reader.remote_identifier() == 'octo/widgets'


class TestRunGit:
    """Test cases for git process failures."""

    @patch('repo_pulse.git_reader.subprocess.run', side_effect=FileNotFoundError("No such file or directory: 'git'"))
    def test_missing_git_binary(self, mock_run, tmp_path):
        code, out, err = run_git(['status'], cwd=str(tmp_path))
        assert code != 0
        assert out == ''
        assert 'git' in err

    @patch('repo_pulse.git_reader.subprocess.run', side_effect=FileNotFoundError("No such file or directory: 'git'"))
    def test_missing_git_binary_is_not_a_checkout(self, mock_run, tmp_path):
        with pytest.raises(NotAGitRepositoryError):
            LocalGitReader(str(tmp_path))

    @patch('repo_pulse.git_reader.subprocess.run')
    def test_timeout_is_a_failed_command(self, mock_run, tmp_path):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=['git', 'blame'], timeout=300)
        code, out, _ = run_git(['blame', '--line-porcelain', 'HEAD', '--', 'big.txt'], cwd=str(tmp_path))
        assert code != 0
        assert out == ''
