"""
ContractGov - Store Proxy
Fetches and persists contracts with their contacts through the backend.
"""

import logging
from typing import List, Optional

from contractgov.config import Config
from contractgov.exceptions import NotAuthenticatedError
from contractgov.models import Contato, Contrato, Profile

logger = logging.getLogger(__name__)

CONTRACTS_TABLE = 'contratos'
CONTACTS_TABLE = 'contatos'
PROFILES_TABLE = 'profiles'


class ContractStore:
    """Contract persistence for the signed-in user.

    Access control is the backend's job; this only refuses to act without
    a session.
    """

    def __init__(self, backend, auth):
        self.backend = backend
        self.auth = auth

    def _token(self) -> str:
        user = self.auth.get_user()
        if user is None:
            raise NotAuthenticatedError()
        return self.auth.get_session().access_token

    def fetch_all(self) -> List[Contrato]:
        """Every contract of the user with its contacts, newest first."""
        token = self._token()
        rows = self.backend.select(
            token, CONTRACTS_TABLE,
            order=('created_at', True),
            embed=CONTACTS_TABLE,
        )
        return [Contrato.from_dict(row) for row in rows]

    def upsert(self, contrato: Contrato, contatos: List[Contato]) -> str:
        """Insert or update a contract, then replace its contacts wholesale.

        Contacts without a name are dropped. Returns the contract id.
        """
        token = self._token()
        user = self.auth.get_session().user
        record = contrato.to_record()
        record['user_id'] = user.id
        is_editing = bool(contrato.id)
        contatos = [c for c in contatos if not c.is_blank()]

        with self.backend.transaction():
            if is_editing:
                self.backend.update(token, CONTRACTS_TABLE, record, {'id': contrato.id})
                contrato_id = contrato.id
            else:
                inserted = self.backend.insert(token, CONTRACTS_TABLE, [record])
                contrato_id = str(inserted[0]['id'])

            if is_editing:
                self.backend.delete(token, CONTACTS_TABLE, {'contrato_id': contrato_id})

            if contatos:
                self.backend.insert(token, CONTACTS_TABLE, [c.to_record(contrato_id) for c in contatos])

        logger.info(f"{'Updated' if is_editing else 'Created'} contract {contrato_id} "
                    f"with {len(contatos)} contacts")
        return contrato_id

    def delete(self, contrato_id: str) -> None:
        token = self._token()
        self.backend.delete(token, CONTRACTS_TABLE, {'id': contrato_id})
        logger.info(f"Deleted contract {contrato_id}")

    def get_profile(self) -> Optional[Profile]:
        token = self._token()
        user = self.auth.get_session().user
        rows = self.backend.select(token, PROFILES_TABLE, filters={'id': user.id})
        return Profile.from_dict(rows[0]) if rows else None


# Global backend instance
_backend = None

def get_backend():
    """Get or create the configured backend: hosted when configured, else SQLite."""
    global _backend
    if _backend is None:
        if Config.use_remote_backend():
            from contractgov.supabase_backend import SupabaseBackend
            _backend = SupabaseBackend()
        else:
            from contractgov.database import get_database
            _backend = get_database()
    return _backend


def set_backend(backend) -> None:
    global _backend
    _backend = backend
