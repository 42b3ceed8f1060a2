"""
ContractGov - Web Application
Contract management dashboard for elevator and accessibility-platform
installation contracts with public agencies.
"""

import io
import sys
import logging
from datetime import date, datetime
from functools import wraps
from pathlib import Path

from flask import Flask, render_template, request, jsonify, send_file, redirect, url_for, session, flash, g, abort
from flask_cors import CORS

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from contractgov.auth import AuthService
from contractgov.config import Config
from contractgov.exceptions import (
    BackendError, ContractGovError, InvalidTransition, NotAuthenticatedError, ValidationError,
)
from contractgov.metrics import (
    contracts_frame, deadline_alerts, deadline_status, filter_contracts, format_currency, format_date,
)
from contractgov.models import CONTRACT_STATUSES, ESTADOS, Contato, Contrato
from contractgov.report import build_report, report_filename
from contractgov.state import AppState, Screen, ScreenRouter
from contractgov.store import ContractStore, get_backend
from web.forms import parse_contract_form

# Configure logging
logging.basicConfig(level=Config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = Config.SECRET_KEY
CORS(app, resources={r"/api/*": {"origins": "*"}})

SIGNUP_MESSAGE = 'Cadastro realizado! Verifique seu e-mail ou tente fazer login.'
UNAVAILABLE_MESSAGE = 'Serviço indisponível no momento. Tente novamente em instantes.'
FORM_FROM_LIST_MESSAGE = 'Abra o formulário a partir da lista de contratos.'


def get_auth() -> AuthService:
    """Session gate bound to this browser's Flask session, shared within a request."""
    if 'auth' not in g:
        g.auth = AuthService(get_backend(), session)
    return g.auth


def get_state(load: bool = True) -> AppState:
    """Application state for this request, with the screen restored from the session."""
    auth = get_auth()
    store = ContractStore(get_backend(), auth)
    router = ScreenRouter(session.get('screen', Screen.DASHBOARD.value))
    state = AppState(auth, store, router)
    state.start(load=load)
    g.state = state
    return state


def login_required(view):
    """Block every view until the backend accepts the session."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if get_auth().get_user() is None:
            if request.path.startswith('/api/'):
                return jsonify({'error': NotAuthenticatedError().message}), 401
            return redirect(url_for('login'))
        return view(*args, **kwargs)
    return wrapped


@app.after_request
def remember_screen(response):
    state = g.get('state')
    if state is not None and state.is_authenticated:
        session['screen'] = state.router.screen.value
    return response


@app.errorhandler(NotAuthenticatedError)
def handle_not_authenticated(error):
    logger.warning(f"Unauthenticated request to {request.path}")
    if request.path.startswith('/api/'):
        return jsonify({'error': error.message}), 401
    return redirect(url_for('login'))


@app.errorhandler(BackendError)
def handle_backend_error(error):
    logger.error(f"Backend failure on {request.path}: {error}")
    if request.path.startswith('/api/'):
        return jsonify({'error': UNAVAILABLE_MESSAGE}), 503
    flash(UNAVAILABLE_MESSAGE, 'danger')
    return render_template('unavailable.html', title='ContractGov'), 503


# ==========================
# ROUTES - SESSION
# ==========================

@app.route('/')
def index():
    return redirect(url_for('dashboard'))


@app.route('/login', methods=['GET', 'POST'])
def login():
    """Sign-in screen; also hosts the sign-up form."""
    auth = get_auth()
    mode = request.args.get('mode', 'login')
    error = None

    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')
        try:
            auth.sign_in(email, password)
            session['screen'] = Screen.DASHBOARD.value
            return redirect(url_for('dashboard'))
        except ContractGovError as e:
            logger.info(f"Sign-in rejected for {email}: {e}")
            error = e.message or 'Ocorreu um erro na autenticação.'
    elif auth.get_session() is not None and auth.get_user() is not None:
        return redirect(url_for('dashboard'))

    return render_template('auth.html', mode=mode, error=error, title='ContractGov')


@app.route('/signup', methods=['POST'])
def signup():
    auth = get_auth()
    email = request.form.get('email', '').strip()
    try:
        auth.sign_up(email, request.form.get('password', ''))
    except ContractGovError as e:
        logger.info(f"Sign-up rejected for {email}: {e}")
        return render_template('auth.html', mode='signup', error=e.message, title='ContractGov'), 400

    flash(SIGNUP_MESSAGE, 'success')
    return redirect(url_for('login'))


@app.route('/logout')
def logout():
    get_auth().sign_out()
    session.pop('screen', None)
    return redirect(url_for('login'))


# ==========================
# ROUTES - DASHBOARD
# ==========================

@app.route('/dashboard')
@login_required
def dashboard():
    """KPI cards, deadline alerts and the per-state chart."""
    state = get_state()
    state.router.navigate(Screen.DASHBOARD)
    today = date.today()

    alerts = [
        {'contrato': c, 'status': deadline_status(c, today)}
        for c in state.approaching_deadlines(today)
    ]
    chart = [
        {'state': p.state, 'count': p.count, 'instalados': p.instalados, 'contratados': p.contratados}
        for p in state.metrics.chart_data
    ]

    return render_template('dashboard.html',
                           metrics=state.metrics,
                           alerts=alerts,
                           chart_data=chart,
                           title='Dashboard de Gestão')


# ==========================
# ROUTES - CONTRACTS
# ==========================

@app.route('/contracts')
@login_required
def contracts_list():
    """All contracts with search by client or state."""
    state = get_state()
    state.router.navigate(Screen.LIST)

    search = request.args.get('search', '').strip()
    contracts = filter_contracts(state.contratos, search)
    today = date.today()

    return render_template('contracts.html',
                           contracts=contracts,
                           deadline_statuses={c.id: deadline_status(c, today) for c in contracts},
                           search=search,
                           title='Listagem de Contratos')


def render_form(contrato: Contrato, errors=None, status_code=200):
    contatos = contrato.contatos or [Contato()]
    return render_template('contract_form.html',
                           contrato=contrato,
                           contatos=contatos,
                           is_editing=bool(contrato.id),
                           errors=errors or {},
                           estados=ESTADOS,
                           statuses=CONTRACT_STATUSES,
                           title='Editar Contrato' if contrato.id else 'Novo Contrato'), status_code


@app.route('/contracts/new')
@login_required
def contract_new():
    state = get_state(load=False)
    try:
        state.new_contract()
    except InvalidTransition as e:
        logger.info(f"Form not opened: {e}")
        flash(FORM_FROM_LIST_MESSAGE, 'warning')
        state.router.navigate(Screen.LIST)
        return redirect(url_for('contracts_list'))
    return render_form(Contrato.new())


@app.route('/contracts/<contract_id>/edit')
@login_required
def contract_edit(contract_id):
    state = get_state()
    contrato = state.find(contract_id)
    if contrato is None:
        abort(404)
    try:
        state.edit_contract(contrato)
    except InvalidTransition as e:
        logger.info(f"Form not opened: {e}")
        flash(FORM_FROM_LIST_MESSAGE, 'warning')
        state.router.navigate(Screen.LIST)
        return redirect(url_for('contracts_list'))
    return render_form(contrato)


@app.route('/contracts/save', methods=['POST'])
@login_required
def contract_save():
    state = get_state(load=False)
    try:
        contrato, contatos = parse_contract_form(request.form)
    except ValidationError as e:
        flash(e.message, 'danger')
        return render_form(e.details['contrato'], errors=e.details['errors'], status_code=400)

    error = state.save_contract(contrato, contatos)
    if error:
        flash(error, 'danger')
        contrato.contatos = contatos
        return render_form(contrato, status_code=500)

    flash('Contrato salvo com sucesso.', 'success')
    return redirect(url_for('contracts_list'))


@app.route('/contracts/cancel', methods=['POST'])
@login_required
def contract_cancel():
    state = get_state(load=False)
    try:
        state.cancel_form()
    except InvalidTransition:
        state.router.navigate(Screen.LIST)
    return redirect(url_for('contracts_list'))


@app.route('/contracts/<contract_id>/delete', methods=['POST'])
@login_required
def contract_delete(contract_id):
    """Delete after the confirmation prompt shown by the list page."""
    state = get_state(load=False)
    state.router.navigate(Screen.LIST)
    if state.delete_contract(contract_id):
        flash('Contrato excluído.', 'success')
    return redirect(url_for('contracts_list'))


# ==========================
# EXPORT
# ==========================

@app.route('/export/pdf')
@login_required
def export_pdf():
    """Download the strategic report as PDF."""
    state = get_state()
    today = date.today()
    pdf = build_report(state.contratos, state.metrics, generated_on=today)

    return send_file(
        io.BytesIO(pdf),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=report_filename(today)
    )


# ==========================
# API ROUTES
# ==========================

@app.route('/api/contracts')
@login_required
def api_contracts():
    """Get all contracts."""
    state = get_state()
    return jsonify([c.to_dict() for c in state.contratos])


@app.route('/api/summary')
@login_required
def api_summary():
    """Get dashboard metrics."""
    state = get_state()
    return jsonify(state.metrics.to_dict())


@app.route('/api/alerts')
@login_required
def api_alerts():
    """Get approaching execution deadlines."""
    state = get_state()
    return jsonify(deadline_alerts(state.contratos))


@app.route('/api/export')
@login_required
def api_export():
    """Export contracts to CSV."""
    state = get_state()

    output = io.StringIO()
    contracts_frame(state.contratos).to_csv(output, index=False)
    output.seek(0)

    return send_file(
        io.BytesIO(output.getvalue().encode('utf-8')),
        mimetype='text/csv',
        as_attachment=True,
        download_name=f'contratos_export_{datetime.now().strftime("%Y%m%d")}.csv'
    )


# ==========================
# TEMPLATE CONTEXT
# ==========================

@app.context_processor
def inject_globals():
    """Inject global variables into templates."""
    state = g.get('state')
    user_email = ''
    if state is not None and state.session is not None:
        user_email = state.session.user.email

    return {
        'now': datetime.now,
        'currency': format_currency,
        'fmt_date': format_date,
        'current_screen': state.router.screen.value if state is not None else None,
        'screen_title': state.router.title if state is not None else '',
        'profile': state.profile if state is not None else None,
        'user_email': user_email,
        'user_initials': user_email[:2].upper(),
    }


if __name__ == '__main__':
    # Seed a demo account on an empty local database
    if not Config.use_remote_backend():
        stats = get_backend().get_statistics()
        if stats['total_users'] == 0:
            logger.info("No users found, generating sample data...")
            from data.sample_data import generate_sample_data
            generate_sample_data()

    app.run(debug=True, port=5002)
