"""
ContractGov - Session Gate
Keeps the authenticated session in a mutable mapping (the Flask session in
the web app) and notifies subscribers when it changes.
"""

import logging
from typing import Callable, List, MutableMapping, Optional, Tuple

from contractgov.exceptions import AuthError, ContractGovError
from contractgov.models import AuthSession, User

logger = logging.getLogger(__name__)

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'
TOKEN_REFRESHED = 'TOKEN_REFRESHED'

SESSION_KEY = 'auth_session'

AuthCallback = Callable[[str, Optional[AuthSession]], None]


class AuthService:
    """Sign-in state for one client, backed by the configured backend.

    A user the backend has accepted is remembered for the access token it
    was validated with; the web app builds one service per request.
    """

    def __init__(self, backend, storage: MutableMapping = None):
        self.backend = backend
        self.storage = storage if storage is not None else {}
        self._listeners: List[AuthCallback] = []
        self._validated: Optional[Tuple[str, User]] = None

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        """Subscribe to SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED; returns the unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: str, session: Optional[AuthSession]):
        for callback in list(self._listeners):
            callback(event, session)

    def _store(self, session: Optional[AuthSession]):
        if session is None:
            self.storage.pop(SESSION_KEY, None)
        else:
            self.storage[SESSION_KEY] = session.to_dict()
        self._validated = None

    def get_session(self) -> Optional[AuthSession]:
        """The stored session, without asking the backend."""
        data = self.storage.get(SESSION_KEY)
        if not data:
            return None
        try:
            return AuthSession.from_dict(data)
        except (KeyError, TypeError):
            logger.warning("Discarding malformed stored session")
            self._store(None)
            return None

    def get_user(self) -> Optional[User]:
        """Validate the stored session with the backend.

        An expired access token is exchanged once through the refresh
        token; when that fails too the session ends.
        """
        session = self.get_session()
        if session is None:
            return None
        if self._validated and self._validated[0] == session.access_token:
            return self._validated[1]

        user = self.backend.get_user(session.access_token)
        if user is None and session.refresh_token:
            session = self._refresh(session)
            user = session.user if session else None

        if user is None:
            logger.info("Stored session is no longer valid")
            self._store(None)
            self._notify(SIGNED_OUT, None)
            return None

        self._validated = (session.access_token, user)
        return user

    def _refresh(self, session: AuthSession) -> Optional[AuthSession]:
        try:
            refreshed = self.backend.refresh_session(session.refresh_token)
        except AuthError as e:
            logger.info(f"Session refresh rejected: {e}")
            return None
        self._store(refreshed)
        logger.info(f"Refreshed session for {refreshed.user.email}")
        self._notify(TOKEN_REFRESHED, refreshed)
        return refreshed

    def sign_in(self, email: str, password: str) -> AuthSession:
        session = self.backend.sign_in(email, password)
        self._store(session)
        logger.info(f"User {session.user.email} signed in")
        self._notify(SIGNED_IN, session)
        return session

    def sign_up(self, email: str, password: str) -> User:
        """Register an account. The caller signs in separately."""
        if not email or not password:
            raise AuthError('E-mail e senha são obrigatórios.')
        user = self.backend.sign_up(email, password)
        logger.info(f"User {user.email} registered")
        return user

    def sign_out(self) -> None:
        session = self.get_session()
        if session is not None:
            try:
                self.backend.sign_out(session.access_token)
            except ContractGovError as e:
                logger.warning(f"Backend sign-out failed, clearing local session anyway: {e}")
        self._store(None)
        self._notify(SIGNED_OUT, None)
