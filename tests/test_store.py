"""Validate contract persistence through the store proxy on the local backend."""

import pytest

from contractgov.auth import AuthService
from contractgov.exceptions import BackendError, NotAuthenticatedError
from contractgov.models import Contato
from contractgov.store import ContractStore
from tests.conftest import make_contract


class TestContractStore:
    """Validate fetch, upsert and delete for a signed-in user."""

    def test_insert_and_fetch(self, store):
        contrato_id = store.upsert(make_contract(), [Contato("Ana", "ana@orgao.gov.br", "1199")])

        contratos = store.fetch_all()

        assert len(contratos) == 1
        assert contratos[0].id == contrato_id
        assert contratos[0].cliente_orgao == "Prefeitura de Campinas"
        assert [c.nome for c in contratos[0].contatos] == ["Ana"]

    def test_blank_contacts_are_dropped(self, store):
        store.upsert(make_contract(), [Contato("Ana"), Contato("   ", "sem@nome.com"), Contato("")])

        contatos = store.fetch_all()[0].contatos

        assert [c.nome for c in contatos] == ["Ana"]

    def test_edit_replaces_contacts(self, store):
        contrato = make_contract()
        contrato.id = store.upsert(contrato, [Contato("Antigo 1"), Contato("Antigo 2"), Contato("Antigo 3")])

        store.upsert(contrato, [Contato("Novo 1"), Contato("Novo 2")])

        saved = store.fetch_all()
        assert len(saved) == 1
        assert sorted(c.nome for c in saved[0].contatos) == ["Novo 1", "Novo 2"]

    def test_edit_updates_fields(self, store):
        contrato = make_contract(instalados_elevadores=0)
        contrato.id = store.upsert(contrato, [])

        contrato.instalados_elevadores = 3
        contrato.status = "Encerrado"
        store.upsert(contrato, [])

        saved = store.fetch_all()[0]
        assert saved.instalados_elevadores == 3
        assert saved.status == "Encerrado"

    def test_newest_first(self, store):
        store.upsert(make_contract(cliente_orgao="Primeiro"), [])
        store.upsert(make_contract(cliente_orgao="Segundo"), [])

        assert [c.cliente_orgao for c in store.fetch_all()] == ["Segundo", "Primeiro"]

    def test_delete_keeps_other_contacts(self, store):
        keep_id = store.upsert(make_contract(cliente_orgao="Fica"), [Contato("Carlos")])
        gone_id = store.upsert(make_contract(cliente_orgao="Sai"), [Contato("Beatriz")])

        store.delete(gone_id)

        contratos = store.fetch_all()
        assert [c.id for c in contratos] == [keep_id]
        assert [c.nome for c in contratos[0].contatos] == ["Carlos"]

    def test_delete_cascades_to_contacts(self, db, store):
        contrato_id = store.upsert(make_contract(), [Contato("Carlos")])

        store.delete(contrato_id)

        assert db.get_statistics()["total_contacts"] == 0

    def test_get_profile(self, store):
        profile = store.get_profile()

        assert profile.email == "gestor@orgao.gov.br"
        assert profile.is_admin


class TestAccessControl:
    """Validate session checks and per-user row visibility."""

    def test_requires_session(self, db):
        store = ContractStore(db, AuthService(db))

        with pytest.raises(NotAuthenticatedError) as exc:
            store.fetch_all()

        assert exc.value.message == "Usuário não autenticado"

    def test_users_only_see_their_own_contracts(self, db, make_auth):
        alice = ContractStore(db, make_auth("alice@orgao.gov.br"))
        bruno = ContractStore(db, make_auth("bruno@orgao.gov.br"))

        contrato_id = alice.upsert(make_contract(), [Contato("Ana")])

        assert bruno.fetch_all() == []
        assert bruno.get_profile().role == "user"
        bruno.delete(contrato_id)
        assert len(alice.fetch_all()) == 1

    def test_cannot_attach_contacts_to_foreign_contract(self, db, make_auth):
        alice = make_auth("alice@orgao.gov.br")
        bruno = make_auth("bruno@orgao.gov.br")
        contrato_id = ContractStore(db, alice).upsert(make_contract(), [])

        with pytest.raises(BackendError) as exc:
            db.insert(bruno.get_session().access_token, "contatos",
                      [{"contrato_id": contrato_id, "nome": "Intruso"}])

        assert exc.value.status_code == 403

    def test_failed_contact_insert_rolls_back_contract(self, db, store, monkeypatch):
        original_insert = db.insert

        def failing_insert(token, table, rows):
            if table == "contatos":
                raise BackendError("insert failed")
            return original_insert(token, table, rows)

        monkeypatch.setattr(db, "insert", failing_insert)

        with pytest.raises(BackendError):
            store.upsert(make_contract(), [Contato("Ana")])

        monkeypatch.setattr(db, "insert", original_insert)
        assert store.fetch_all() == []
