"""
ContractGov - Hosted Backend Client
Talks to a Supabase project: GoTrue for auth (/auth/v1) and PostgREST for
tables (/rest/v1). Row-level security is enforced by the project's
policies through the user's bearer token.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

import requests

from contractgov.config import Config
from contractgov.exceptions import AuthError, BackendError
from contractgov.models import AuthSession, User

logger = logging.getLogger(__name__)


class SupabaseBackend:
    """REST client for the hosted contract tables and user sessions."""

    def __init__(self, url: str = None, api_key: str = None, timeout: int = None,
                 http: requests.Session = None):
        self.url = (url or Config.SUPABASE_URL).rstrip('/')
        self.api_key = api_key or Config.SUPABASE_ANON_KEY
        self.timeout = timeout or Config.REQUEST_TIMEOUT
        self.http = http or requests.Session()
        logger.info(f"Supabase backend configured for {self.url}")

    def _headers(self, access_token: Optional[str] = None, prefer: str = None) -> Dict[str, str]:
        headers = {
            'apikey': self.api_key,
            'Authorization': f"Bearer {access_token or self.api_key}",
            'Content-Type': 'application/json',
        }
        if prefer:
            headers['Prefer'] = prefer
        return headers

    def _request(self, method: str, path: str, access_token: str = None, params=None,
                 json_data=None, prefer: str = None, error_class=BackendError):
        url = f"{self.url}{path}"
        try:
            response = self.http.request(
                method, url,
                params=params,
                json=json_data,
                headers=self._headers(access_token, prefer),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise BackendError(f"Falha de comunicação com o servidor: {e}") from e

        if not response.ok:
            message = _error_message(response)
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            if error_class is BackendError:
                raise BackendError(message, status_code=response.status_code)
            raise error_class(message, details={'status_code': response.status_code})

        if not response.content:
            return None
        return response.json()

    @contextmanager
    def transaction(self):
        """PostgREST calls are independent HTTP requests: no atomicity here.

        A failure between the contract write and the contact re-insert
        leaves the contract saved with a partial contact list.
        """
        yield

    # ==================
    # AUTH
    # ==================

    def sign_in(self, email: str, password: str) -> AuthSession:
        data = self._request(
            'POST', '/auth/v1/token',
            params={'grant_type': 'password'},
            json_data={'email': email, 'password': password},
            error_class=AuthError,
        )
        return _session_from(data)

    def refresh_session(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new session."""
        data = self._request(
            'POST', '/auth/v1/token',
            params={'grant_type': 'refresh_token'},
            json_data={'refresh_token': refresh_token},
            error_class=AuthError,
        )
        return _session_from(data)

    def sign_up(self, email: str, password: str) -> User:
        data = self._request(
            'POST', '/auth/v1/signup',
            json_data={'email': email, 'password': password},
            error_class=AuthError,
        )
        # With e-mail confirmation on, the user object comes back bare
        return _user_from(data.get('user') or data)

    def sign_out(self, access_token: str) -> None:
        self._request('POST', '/auth/v1/logout', access_token=access_token, error_class=AuthError)

    def get_user(self, access_token: Optional[str]) -> Optional[User]:
        if not access_token:
            return None
        try:
            data = self._request('GET', '/auth/v1/user', access_token=access_token)
        except BackendError as e:
            if e.status_code in (401, 403):
                return None
            raise
        return _user_from(data)

    # ==================
    # TABLE OPERATIONS
    # ==================

    def select(self, access_token: str, table: str, filters: Dict[str, Any] = None,
               order: Tuple[str, bool] = None, embed: str = None) -> List[Dict]:
        params = {'select': f"*,{embed}(*)" if embed else '*'}
        params.update(_eq_filters(filters))
        if order:
            column, descending = order
            params['order'] = f"{column}.{'desc' if descending else 'asc'}"
        return self._request('GET', f'/rest/v1/{table}', access_token=access_token, params=params) or []

    def insert(self, access_token: str, table: str, rows: List[Dict]) -> List[Dict]:
        return self._request(
            'POST', f'/rest/v1/{table}',
            access_token=access_token,
            json_data=rows,
            prefer='return=representation',
        ) or []

    def update(self, access_token: str, table: str, values: Dict[str, Any],
               filters: Dict[str, Any]) -> List[Dict]:
        return self._request(
            'PATCH', f'/rest/v1/{table}',
            access_token=access_token,
            params=_eq_filters(filters),
            json_data=values,
            prefer='return=representation',
        ) or []

    def delete(self, access_token: str, table: str, filters: Dict[str, Any]) -> int:
        deleted = self._request(
            'DELETE', f'/rest/v1/{table}',
            access_token=access_token,
            params=_eq_filters(filters),
            prefer='return=representation',
        )
        return len(deleted or [])


def _eq_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {column: f"eq.{value}" for column, value in (filters or {}).items()}


def _user_from(data: Dict[str, Any]) -> User:
    return User(id=str(data.get('id')), email=data.get('email') or '')


def _session_from(data: Dict[str, Any]) -> AuthSession:
    return AuthSession(
        access_token=data['access_token'],
        refresh_token=data.get('refresh_token'),
        user=_user_from(data.get('user') or {}),
    )


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ('message', 'msg', 'error_description', 'error'):
            if body.get(key):
                return str(body[key])
    return str(body)
