"""
Tests for GitHub token authorization.
"""
import unittest
from unittest.mock import Mock

import requests

from cvpn_pki_manager.security.github_auth import GitHubAuthorizer

API = "https://api.github.com"


def response(payload, next_url=None, status=200):
    resp = Mock()
    resp.json.return_value = payload
    resp.links = {'next': {'url': next_url}} if next_url else {}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status} error")
    else:
        resp.raise_for_status.return_value = None
    return resp


class FakeGitHub:
    """Routes session.get calls to canned responses by URL."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers))
        return self.routes[url]


class TestGitHubAuthorizer(unittest.TestCase):

    def setUp(self):
        self.org = {'login': 'Example', 'id': 42}
        self.routes = {
            f"{API}/user": response({'login': 'alice'}),
            f"{API}/user/orgs?per_page=100": response([{'login': 'other', 'id': 1}],
                                                      next_url=f"{API}/user/orgs?page=2"),
            f"{API}/user/orgs?page=2": response([self.org]),
            f"{API}/user/teams?per_page=100": response([
                {'name': 'VPN Users', 'slug': 'vpn-users', 'organization': {'id': 42}},
                {'name': 'admins', 'slug': 'admins', 'organization': {'id': 7}},
            ]),
        }
        self.github = FakeGitHub(self.routes)

    def _authorizer(self, **kwargs):
        return GitHubAuthorizer("example", session=self.github, **kwargs)

    def test_org_member_allowed_without_lists(self):
        result = self._authorizer().authorize("ghp_token")

        self.assertTrue(result.is_authenticated)
        self.assertEqual(result.client_id, "alice")
        self.assertEqual(self.github.calls[0][1]['Authorization'], "Bearer ghp_token")

    def test_missing_token(self):
        result = self._authorizer().authorize("")

        self.assertFalse(result.is_authenticated)
        self.assertEqual(self.github.calls, [])

    def test_not_in_org(self):
        authorizer = GitHubAuthorizer("elsewhere", session=self.github)

        result = authorizer.authorize("ghp_token")

        self.assertFalse(result.is_authenticated)
        self.assertIn("org", result.error_message)

    def test_allowed_user_case_insensitive(self):
        result = self._authorizer(allowed_users=["ALICE"]).authorize("ghp_token")
        self.assertTrue(result.is_authenticated)

    def test_allowed_team_by_slug_or_name(self):
        self.assertTrue(self._authorizer(allowed_teams=["vpn-users"]).authorize("t").is_authenticated)
        self.assertTrue(self._authorizer(allowed_teams=["vpn users"]).authorize("t").is_authenticated)

    def test_team_of_another_org_is_ignored(self):
        result = self._authorizer(allowed_teams=["admins"]).authorize("t")

        self.assertFalse(result.is_authenticated)
        self.assertIn("allowed users/teams", result.error_message)

    def test_user_not_in_allowed_lists(self):
        result = self._authorizer(allowed_users=["bob"]).authorize("t")
        self.assertFalse(result.is_authenticated)

    def test_invalid_token(self):
        self.routes[f"{API}/user"] = response({'message': 'Bad credentials'}, status=401)

        result = self._authorizer().authorize("bad")

        self.assertFalse(result.is_authenticated)
        self.assertIn("GitHub authorization failed", result.error_message)


if __name__ == '__main__':
    unittest.main()
