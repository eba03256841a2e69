"""
Authorization of API callers through their GitHub personal access token.
"""
import logging
from typing import Any, Dict, Iterator, List, Optional

import requests

from .models import AuthenticationResult


class GitHubAuthorizer:
    """Checks that a token belongs to a member of the organization.

    When allowed users or teams are configured the member must also be one of
    the users or belong to one of the teams (name or slug, within the
    organization). Comparisons are case insensitive.
    """

    PER_PAGE = 100

    def __init__(self, organization: str,
                 allowed_users: Optional[List[str]] = None,
                 allowed_teams: Optional[List[str]] = None,
                 api_url: str = "https://api.github.com",
                 timeout: int = 10,
                 session: Optional[requests.Session] = None):
        self.organization = organization
        self.allowed_users = allowed_users or []
        self.allowed_teams = allowed_teams or []
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def authorize(self, token: str) -> AuthenticationResult:
        """Authorize the owner of ``token``."""
        if not token:
            return AuthenticationResult(False, None, "missing bearer token")

        headers = {
            'Authorization': f"Bearer {token}",
            'Accept': 'application/vnd.github+json',
        }
        try:
            user = self._get(f"{self.api_url}/user", headers).json()
            login = user['login']

            org = next((o for o in self._paginate("/user/orgs", headers)
                        if o.get('login', '').lower() == self.organization.lower()), None)
            if org is None:
                return AuthenticationResult(False, login, "user is not part of required org")

            if not self.allowed_users and not self.allowed_teams:
                return AuthenticationResult(True, login, None)

            if any(login.lower() == u.lower() for u in self.allowed_users):
                return AuthenticationResult(True, login, None)

            if self.allowed_teams and self._in_allowed_team(org, headers):
                return AuthenticationResult(True, login, None)

            return AuthenticationResult(False, login, "the user does not match any of the allowed users/teams")

        except (requests.exceptions.RequestException, KeyError, ValueError) as e:
            self.logger.warning(f"GitHub authorization failed: {e}")
            return AuthenticationResult(False, None, f"GitHub authorization failed: {e}")

    def _in_allowed_team(self, org: Dict[str, Any], headers: Dict[str, str]) -> bool:
        allowed = {t.lower() for t in self.allowed_teams}
        for team in self._paginate("/user/teams", headers):
            # Only teams of the configured organization count
            if (team.get('organization') or {}).get('id') != org.get('id'):
                continue
            names = {team.get('name', '').lower(), team.get('slug', '').lower()}
            if names & allowed:
                return True
        return False

    def _paginate(self, path: str, headers: Dict[str, str]) -> Iterator[Dict[str, Any]]:
        url = f"{self.api_url}{path}?per_page={self.PER_PAGE}"
        while url:
            response = self._get(url, headers)
            yield from response.json()
            url = response.links.get('next', {}).get('url')

    def _get(self, url: str, headers: Dict[str, str]) -> requests.Response:
        response = self.session.get(url, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        return response
