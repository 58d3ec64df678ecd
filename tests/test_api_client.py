"""
Unit tests for the token-backed GitHub API client
"""

import os
import pytest
import requests
from datetime import date, datetime, timezone
from unittest.mock import Mock, patch

from repo_pulse.api_client import (
    GitHubAPIClient,
    STATS_MAX_ATTEMPTS,
    parse_commit,
    parse_commit_activity,
    parse_contributor_stats,
    parse_repository,
)
from repo_pulse.cache import CacheManager
from repo_pulse.exceptions import RemoteClientError


def make_response(status_code=200, data=None, url='https://api.github.com/test'):
    response = Mock()
    response.status_code = status_code
    response.url = url
    response.json.return_value = data
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    return response


def pr_payload(number, created_at, state='closed', merged_at=None, login='alice', **extra):
    payload = {
        'number': number,
        'title': f'PR {number}',
        'user': {'login': login},
        'created_at': created_at,
        'closed_at': merged_at,
        'merged_at': merged_at,
        'state': state,
    }
    payload.update(extra)
    return payload


class TestClientInitialization:
    """Test cases for session setup."""

    def test_token_sets_authorization_header(self):
        client = GitHubAPIClient('o/r', token='test_token')
        assert client.session.headers['Authorization'] == 'token test_token'
        assert client.repo_url == 'https://api.github.com/repos/o/r'

    def test_without_token(self):
        with patch.dict(os.environ, {}, clear=True):
            client = GitHubAPIClient('o/r')
            assert client.token is None
            assert 'Authorization' not in client.session.headers


class TestRequests:
    """Test cases for pagination and error handling."""

    @pytest.fixture
    def client(self):
        client = GitHubAPIClient('o/r', token='test_token')
        client.session = Mock()
        return client

    def test_pagination_stops_on_short_page(self, client):
        client.session.get.side_effect = [
            make_response(data=[{'id': i} for i in range(100)]),
            make_response(data=[{'id': 100}]),
        ]
        results = client.get_paginated('https://api.github.com/test')
        assert len(results) == 101
        assert client.session.get.call_count == 2

    def test_early_termination(self, client):
        client.session.get.return_value = make_response(data=[{'id': i} for i in range(100)])
        results = client.get_paginated('https://api.github.com/test', should_continue=lambda page: False)
        assert len(results) == 100
        assert client.session.get.call_count == 1

    def test_404_returns_empty(self, client):
        client.session.get.return_value = make_response(404)
        assert client.get_paginated('https://api.github.com/test') == []
        assert client.get_json('https://api.github.com/test') is None

    def test_403_raises_remote_error(self, client):
        client.session.get.return_value = make_response(403)
        with pytest.raises(RemoteClientError):
            client.get_paginated('https://api.github.com/test')

    def test_server_error_propagates(self, client):
        client.session.get.return_value = make_response(500)
        with pytest.raises(requests.exceptions.HTTPError):
            client.get_json('https://api.github.com/test')

    def test_network_error_propagates(self, client):
        client.session.get.side_effect = requests.exceptions.ConnectionError("Network error")
        with pytest.raises(requests.exceptions.ConnectionError):
            client.get_paginated('https://api.github.com/test')


class TestStatistics:
    """Test cases for repository statistics endpoints."""

    @pytest.fixture
    def client(self):
        client = GitHubAPIClient('o/r', token='test_token')
        client.session = Mock()
        return client

    @patch('repo_pulse.api_client.time.sleep')
    def test_retries_while_computing(self, mock_sleep, client):
        payload = [{'author': {'login': 'alice'}, 'total': 3,
                    'weeks': [{'w': 1704067200, 'a': 10, 'd': 2, 'c': 3}]}]
        client.session.get.side_effect = [make_response(202), make_response(200, payload)]

        stats = client.contributor_stats()

        assert mock_sleep.call_count == 1
        assert stats[0].author_key == 'alice'
        assert stats[0].weeks[0].week_start == date(2024, 1, 1)
        assert stats[0].weeks[0].commits == 3

    @patch('repo_pulse.api_client.time.sleep')
    def test_gives_up_after_max_attempts(self, mock_sleep, client):
        client.session.get.return_value = make_response(202)
        assert client.commit_activity() == []
        assert client.session.get.call_count == STATS_MAX_ATTEMPTS

    def test_uses_fresh_cache(self, tmp_path):
        cache = CacheManager(str(tmp_path / 'cache.json'))
        client = GitHubAPIClient('o/r', token='t', cache_manager=cache)
        client.session = Mock()
        client.session.get.return_value = make_response(200, [{'week': 1704067200, 'days': [1, 0, 0, 0, 0, 0, 2], 'total': 3}])

        first = client.commit_activity()
        second = client.commit_activity()

        assert client.session.get.call_count == 1
        assert first == second
        assert first[0].total == 3


class TestPullRequests:
    """Test cases for fetching pull requests."""

    @pytest.fixture
    def client(self):
        client = GitHubAPIClient('o/r', token='test_token')
        client.session = Mock()
        return client

    def test_filters_by_created_date_and_fetches_details(self, client):
        listing = [
            pr_payload(3, '2024-02-10T10:00:00Z', state='open'),
            pr_payload(2, '2024-01-20T10:00:00Z', merged_at='2024-01-22T10:00:00Z'),
            pr_payload(1, '2023-12-01T10:00:00Z'),
        ]
        details = {
            3: pr_payload(3, '2024-02-10T10:00:00Z', state='open', additions=7, deletions=1, changed_files=2),
            2: pr_payload(2, '2024-01-20T10:00:00Z', merged_at='2024-01-22T10:00:00Z',
                          additions=40, deletions=10, changed_files=4),
        }

        def get(url, params=None):
            if url.endswith('/pulls'):
                return make_response(data=listing)
            return make_response(data=details[int(url.rsplit('/', 1)[1])])

        client.session.get.side_effect = get

        prs = client.pull_requests(since='2024-01-01', until='2024-02-29')

        assert [pr.number for pr in prs] == [3, 2]
        merged = prs[1]
        assert merged.merged_at == datetime(2024, 1, 22, 10, 0, tzinfo=timezone.utc)
        assert merged.is_merged
        assert merged.additions == 40
        assert merged.changed_files == 4
        assert prs[0].state == 'open'
        assert prs[0].author_key == 'alice'

    def test_detail_failure_falls_back_to_listing(self, client):
        listing = [pr_payload(5, '2024-01-20T10:00:00Z', state='open')]

        def get(url, params=None):
            if url.endswith('/pulls'):
                return make_response(data=listing)
            raise requests.exceptions.ConnectionError('flaky')

        client.session.get.side_effect = get

        prs = client.pull_requests()

        assert len(prs) == 1
        assert prs[0].additions == 0

    def test_denied_detail_keeps_other_prs(self, client):
        listing = [
            pr_payload(6, '2024-01-21T10:00:00Z', state='open'),
            pr_payload(5, '2024-01-20T10:00:00Z', state='open'),
        ]

        def get(url, params=None):
            if url.endswith('/pulls'):
                return make_response(data=listing)
            if url.endswith('/pulls/5'):
                return make_response(403)
            return make_response(data=pr_payload(6, '2024-01-21T10:00:00Z', state='open', additions=9))

        client.session.get.side_effect = get

        prs = client.pull_requests()

        assert [pr.number for pr in prs] == [6, 5]
        assert prs[0].additions == 9
        assert prs[1].additions == 0

    def test_closed_pr_details_come_from_cache(self, tmp_path):
        cache = CacheManager(str(tmp_path / 'cache.json'))
        client = GitHubAPIClient('o/r', token='t', cache_manager=cache)
        client.session = Mock()
        merged = pr_payload(2, '2024-01-20T10:00:00Z', merged_at='2024-01-22T10:00:00Z')
        cache.put(cache.get_cache_key('o/r', 'pulls/2'), dict(merged, additions=40, deletions=10))
        client.session.get.return_value = make_response(data=[merged])

        prs = client.pull_requests()

        assert client.session.get.call_count == 1
        assert prs[0].additions == 40


class TestPayloadParsing:
    """Test cases for REST payload conversion."""

    def test_parse_commit_prefers_login(self):
        record = parse_commit({
            'sha': 'abc123',
            'author': {'login': 'alice'},
            'commit': {'message': 'Fix bug\n\nDetails', 'author': {'email': 'a@x.com', 'date': '2024-01-15T10:00:00Z'}},
        })
        assert record.author_key == 'alice'
        assert record.message == 'Fix bug'
        assert record.additions == 0

    def test_parse_commit_falls_back_to_email(self):
        record = parse_commit({'sha': 'abc', 'author': None,
                               'commit': {'message': 'x', 'author': {'email': 'a@x.com', 'date': None}}})
        assert record.author_key == 'a@x.com'
        assert record.timestamp is None

    def test_non_list_payloads(self):
        assert parse_contributor_stats({}) == []
        assert parse_commit_activity(None) == []
        assert parse_repository(None) is None

    def test_parse_repository(self):
        repo = parse_repository({'name': 'r', 'full_name': 'o/r', 'stargazers_count': 5,
                                 'forks_count': 2, 'open_issues_count': None})
        assert repo['full_name'] == 'o/r'
        assert repo['stars'] == 5
        assert repo['open_issues'] == 0
