"""Shared fixtures: a throwaway SQLite backend and signed-in clients."""

from datetime import date

import pytest

from contractgov.auth import AuthService
from contractgov.database import DatabaseManager
from contractgov.models import Contrato
from contractgov.store import ContractStore, set_backend


@pytest.fixture
def db(tmp_path):
    """Fresh local backend per test."""
    return DatabaseManager(tmp_path / "contracts.db")


@pytest.fixture
def make_auth(db):
    """Register and sign in a user, returning its AuthService."""
    def _make(email="gestor@orgao.gov.br", password="segredo123"):
        auth = AuthService(db)
        auth.sign_up(email, password)
        auth.sign_in(email, password)
        return auth
    return _make


@pytest.fixture
def auth(make_auth):
    return make_auth()


@pytest.fixture
def store(db, auth):
    return ContractStore(db, auth)


@pytest.fixture
def use_backend(db):
    """Route get_backend() to the test database."""
    set_backend(db)
    yield db
    set_backend(None)


def make_contract(**overrides):
    """Contract with sensible defaults for tests."""
    values = dict(
        cliente_orgao="Prefeitura de Campinas",
        estado="SP",
        valor_global=100000.0,
        status="Ativo",
        data_inicio=date(2024, 3, 1),
        data_encerramento=date(2025, 3, 1),
        prazo_execucao=date(2024, 9, 1),
    )
    values.update(overrides)
    return Contrato(**values)
