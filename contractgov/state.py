"""
ContractGov - Application State
Screen routing plus the session, profile and contract list that the views
render. Derived metrics are recomputed explicitly after every load.
"""

import logging
from datetime import date
from enum import Enum
from typing import List, Optional

from contractgov.auth import SIGNED_IN, SIGNED_OUT
from contractgov.exceptions import ContractGovError, InvalidTransition
from contractgov.metrics import Metrics, aggregate, approaching_deadlines
from contractgov.models import AuthSession, Contato, Contrato, Profile

logger = logging.getLogger(__name__)

SAVE_ERROR_MESSAGE = 'Erro ao salvar contrato. Verifique o console.'


class Screen(str, Enum):
    DASHBOARD = 'DASHBOARD'
    LIST = 'LIST'
    FORM = 'FORM'


SCREEN_TITLES = {
    Screen.DASHBOARD: 'Página Inicial',
    Screen.LIST: 'Lista de Contratos',
    Screen.FORM: 'Formulário de Contrato',
}


class ScreenRouter:
    """Dashboard, list and form; the form carries the record being edited."""

    def __init__(self, screen: Screen = Screen.DASHBOARD, editing: Optional[Contrato] = None):
        self.screen = Screen(screen)
        self.editing = editing

    @property
    def title(self) -> str:
        return SCREEN_TITLES[self.screen]

    def navigate(self, screen: Screen):
        """Sidebar navigation to the dashboard or the list."""
        screen = Screen(screen)
        if screen == Screen.FORM:
            raise InvalidTransition('O formulário é aberto a partir da lista de contratos.')
        self.screen = screen
        self.editing = None

    def open_form(self, contrato: Optional[Contrato] = None):
        """New (no record) or edit (record to prefill), from the list."""
        if self.screen not in (Screen.LIST, Screen.FORM):
            raise InvalidTransition(f"Cannot open the form from {self.screen.value}")
        self.screen = Screen.FORM
        self.editing = contrato

    def close_form(self):
        """Back to the list after a save or a cancel."""
        if self.screen != Screen.FORM:
            raise InvalidTransition(f"No form open on {self.screen.value}")
        self.screen = Screen.LIST
        self.editing = None


class AppState:
    """State shared by the views of one signed-in client."""

    def __init__(self, auth, store, router: ScreenRouter = None):
        self.auth = auth
        self.store = store
        self.router = router or ScreenRouter()
        self.session: Optional[AuthSession] = None
        self.profile: Optional[Profile] = None
        self.contratos: List[Contrato] = []
        self.metrics = Metrics()
        self.is_loading = False
        self._unsubscribe = None

    def start(self, load: bool = True):
        """Pick up the stored session and follow later auth changes.

        The profile is always loaded; the contract list only when asked.
        """
        self.session = self.auth.get_session()
        self._unsubscribe = self.auth.on_auth_state_change(self.on_auth_change)
        if self.session is None:
            return
        if load:
            self.load_data()
        else:
            self.load_profile()

    def stop(self):
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def on_auth_change(self, event: str, session: Optional[AuthSession]):
        # TOKEN_REFRESHED only swaps the tokens
        self.session = session
        if event == SIGNED_IN and session:
            self.load_data()
        elif event == SIGNED_OUT:
            self.contratos = []
            self.profile = None
            self.metrics = aggregate([])
            self.router = ScreenRouter()

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def load_data(self, today: Optional[date] = None):
        """Fetch the contract list; failures are logged and leave it empty."""
        self.is_loading = True
        try:
            self.contratos = self.store.fetch_all()
        except ContractGovError as e:
            logger.error(f"Erro ao carregar contratos: {e}")
            self.contratos = []
        finally:
            self.is_loading = False
        self.metrics = aggregate(self.contratos, today)
        self.load_profile()

    def load_profile(self):
        try:
            self.profile = self.store.get_profile()
        except ContractGovError as e:
            logger.error(f"Erro ao carregar perfil: {e}")
            self.profile = None

    def approaching_deadlines(self, today: Optional[date] = None) -> List[Contrato]:
        return approaching_deadlines(self.contratos, today)

    def find(self, contrato_id: str) -> Optional[Contrato]:
        return next((c for c in self.contratos if c.id == contrato_id), None)

    def edit_contract(self, contrato: Contrato):
        self.router.open_form(contrato)

    def new_contract(self):
        self.router.open_form(None)

    def cancel_form(self):
        self.router.close_form()

    def save_contract(self, contrato: Contrato, contatos: List[Contato]) -> Optional[str]:
        """Persist and go back to the list; returns the alert text on failure."""
        try:
            self.store.upsert(contrato, contatos)
        except ContractGovError as e:
            logger.error(f"Erro ao salvar contrato: {e}")
            return SAVE_ERROR_MESSAGE
        self.load_data()
        if self.router.screen == Screen.FORM:
            self.router.close_form()
        else:
            self.router.navigate(Screen.LIST)
        return None

    def delete_contract(self, contrato_id: str) -> bool:
        """Delete an already-confirmed contract; failures are only logged."""
        try:
            self.store.delete(contrato_id)
        except ContractGovError as e:
            logger.error(f"Erro ao excluir contrato: {e}")
            return False
        self.load_data()
        return True
