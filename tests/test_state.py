"""Validate screen routing and the application state."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from contractgov.exceptions import BackendError, InvalidTransition
from contractgov.models import Contato
from contractgov.state import SAVE_ERROR_MESSAGE, AppState, Screen, ScreenRouter
from contractgov.store import ContractStore
from tests.conftest import make_contract


class TestScreenRouter:
    """Validate the allowed screen transitions."""

    def test_starts_on_dashboard(self):
        router = ScreenRouter()

        assert router.screen == Screen.DASHBOARD
        assert router.title == "Página Inicial"

    def test_form_opens_from_list_only(self):
        router = ScreenRouter()

        with pytest.raises(InvalidTransition):
            router.open_form()

        router.navigate(Screen.LIST)
        contrato = make_contract(id="c1")
        router.open_form(contrato)

        assert router.screen == Screen.FORM
        assert router.editing is contrato

    def test_navigate_cannot_target_form(self):
        with pytest.raises(InvalidTransition):
            ScreenRouter(Screen.LIST).navigate(Screen.FORM)

    def test_close_form_returns_to_list(self):
        router = ScreenRouter(Screen.LIST)
        router.open_form(make_contract())

        router.close_form()

        assert router.screen == Screen.LIST
        assert router.editing is None

    def test_close_without_form(self):
        with pytest.raises(InvalidTransition):
            ScreenRouter(Screen.DASHBOARD).close_form()

    def test_sidebar_leaves_form(self):
        router = ScreenRouter(Screen.LIST)
        router.open_form(make_contract())

        router.navigate(Screen.DASHBOARD)

        assert router.screen == Screen.DASHBOARD
        assert router.editing is None

    def test_restored_from_string(self):
        assert ScreenRouter("LIST").screen == Screen.LIST


class TestAppState:
    """Validate loading, saving and auth reactions against the local backend."""

    def test_loads_on_start(self, db, auth, store):
        store.upsert(make_contract(qtde_elevadores=4), [])
        state = AppState(auth, ContractStore(db, auth))

        state.start()

        assert state.is_authenticated
        assert len(state.contratos) == 1
        assert state.metrics.total_elevators_contracted == 4
        assert state.profile.role_label == "Administrador"

    def test_profile_loaded_without_contracts(self, auth, store):
        store.upsert(make_contract(), [])
        state = AppState(auth, store, ScreenRouter(Screen.LIST))

        state.start(load=False)

        assert state.contratos == []
        assert state.profile.role_label == "Administrador"

    def test_sign_out_resets(self, db, auth, store):
        store.upsert(make_contract(), [])
        state = AppState(auth, store, ScreenRouter(Screen.LIST))
        state.start()

        auth.sign_out()

        assert not state.is_authenticated
        assert state.contratos == []
        assert state.profile is None
        assert state.router.screen == Screen.DASHBOARD

    def test_stop_unsubscribes(self, db, auth, store):
        state = AppState(auth, store)
        state.start()
        state.stop()

        auth.sign_out()

        assert state.is_authenticated

    def test_save_reloads_and_closes_form(self, auth, store):
        state = AppState(auth, store, ScreenRouter(Screen.LIST))
        state.start()
        state.new_contract()

        error = state.save_contract(make_contract(), [Contato("Ana"), Contato("")])

        assert error is None
        assert state.router.screen == Screen.LIST
        assert [c.nome for c in state.contratos[0].contatos] == ["Ana"]

    def test_save_failure_keeps_form(self, auth):
        store = MagicMock()
        store.upsert.side_effect = BackendError("timeout")
        state = AppState(auth, store, ScreenRouter(Screen.LIST))
        state.new_contract()

        error = state.save_contract(make_contract(), [])

        assert error == SAVE_ERROR_MESSAGE
        assert state.router.screen == Screen.FORM

    def test_load_failure_leaves_empty_list(self, auth):
        store = MagicMock()
        store.fetch_all.side_effect = BackendError("offline")
        store.get_profile.side_effect = BackendError("offline")
        state = AppState(auth, store)

        state.load_data(date(2024, 6, 10))

        assert state.contratos == []
        assert state.profile is None
        assert state.metrics.total_contracts == 0

    def test_delete(self, auth, store):
        state = AppState(auth, store, ScreenRouter(Screen.LIST))
        keep = store.upsert(make_contract(cliente_orgao="Fica"), [])
        gone = store.upsert(make_contract(cliente_orgao="Sai"), [])
        state.start()

        assert state.delete_contract(gone)
        assert [c.id for c in state.contratos] == [keep]
        assert state.find(gone) is None

    def test_delete_failure_is_logged_only(self, auth):
        store = MagicMock()
        store.delete.side_effect = BackendError("offline")
        state = AppState(auth, store)

        assert state.delete_contract("c1") is False
        store.fetch_all.assert_not_called()
