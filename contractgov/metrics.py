"""
ContractGov - Metrics
Dashboard KPIs, the per-state installed vs contracted series and deadline
alerts, derived from the in-memory contract list.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

import pandas as pd

from contractgov.config import Config
from contractgov.models import (
    Contrato, OPEN_STATUSES, STATUS_ATIVO, STATUS_PENDENTE,
)

logger = logging.getLogger(__name__)

DEADLINE_OVERDUE = 'overdue'
DEADLINE_DUE_SOON = 'due_soon'
DEADLINE_OK = 'ok'

FRAME_COLUMNS = [
    'id', 'cliente_orgao', 'estado', 'valor_global', 'status',
    'qtde_plataformas', 'qtde_elevadores',
    'instalados_plataformas', 'instalados_elevadores',
    'objeto_contrato', 'data_inicio', 'data_encerramento', 'prazo_execucao',
    'data_conclusao_instalacao', 'garantia_dias',
]

UNIT_COLUMNS = ['qtde_plataformas', 'qtde_elevadores', 'instalados_plataformas', 'instalados_elevadores']


@dataclass
class StateTotals:
    """Totals for one state code."""
    state: str
    count: int = 0
    sales: float = 0.0
    elevators: int = 0
    platforms: int = 0
    inst_elevators: int = 0
    inst_platforms: int = 0

    @property
    def contratados(self) -> int:
        return self.elevators + self.platforms

    @property
    def instalados(self) -> int:
        return self.inst_elevators + self.inst_platforms


@dataclass
class ChartPoint:
    """One bar group of the per-state chart."""
    state: str
    count: int
    instalados: int
    contratados: int


@dataclass
class Metrics:
    """Dashboard figures for a contract list."""
    sales_year: float = 0.0
    sales_month: float = 0.0
    global_sales: float = 0.0
    active: int = 0
    pending: int = 0
    total_contracts: int = 0
    total_elevators_contracted: int = 0
    total_platforms_contracted: int = 0
    total_elevators_installed: int = 0
    total_platforms_installed: int = 0
    by_state: Dict[str, StateTotals] = field(default_factory=dict)
    chart_data: List[ChartPoint] = field(default_factory=list)

    @property
    def total_contracted(self) -> int:
        return self.total_elevators_contracted + self.total_platforms_contracted

    @property
    def total_installed(self) -> int:
        return self.total_elevators_installed + self.total_platforms_installed

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['total_contracted'] = self.total_contracted
        data['total_installed'] = self.total_installed
        for state, totals in self.by_state.items():
            data['by_state'][state]['contratados'] = totals.contratados
            data['by_state'][state]['instalados'] = totals.instalados
        return data


def contracts_frame(contratos: List[Contrato]) -> pd.DataFrame:
    """Tabular view of the contract list, one row per contract."""
    records = []
    for c in contratos:
        record = c.to_record()
        record['id'] = c.id
        records.append(record)

    df = pd.DataFrame(records, columns=FRAME_COLUMNS)
    df['valor_global'] = df['valor_global'].fillna(0).astype(float)
    for column in UNIT_COLUMNS:
        df[column] = df[column].fillna(0).astype(int)
    return df


def aggregate(contratos: List[Contrato], today: Optional[date] = None) -> Metrics:
    """Compute the dashboard metrics for a contract list."""
    today = today or date.today()
    df = contracts_frame(contratos)
    if df.empty:
        return Metrics()

    start = pd.to_datetime(df['data_inicio'], errors='coerce')
    in_year = start.dt.year == today.year
    in_month = in_year & (start.dt.month == today.month)

    metrics = Metrics(
        sales_year=float(df.loc[in_year, 'valor_global'].sum()),
        sales_month=float(df.loc[in_month, 'valor_global'].sum()),
        global_sales=float(df['valor_global'].sum()),
        active=int((df['status'] == STATUS_ATIVO).sum()),
        pending=int((df['status'] == STATUS_PENDENTE).sum()),
        total_contracts=len(df),
        total_elevators_contracted=int(df['qtde_elevadores'].sum()),
        total_platforms_contracted=int(df['qtde_plataformas'].sum()),
        total_elevators_installed=int(df['instalados_elevadores'].sum()),
        total_platforms_installed=int(df['instalados_plataformas'].sum()),
    )

    # Groups keep the order in which each state first appears
    grouped = df.groupby('estado', sort=False).agg(
        count=('estado', 'size'),
        sales=('valor_global', 'sum'),
        elevators=('qtde_elevadores', 'sum'),
        platforms=('qtde_plataformas', 'sum'),
        inst_elevators=('instalados_elevadores', 'sum'),
        inst_platforms=('instalados_plataformas', 'sum'),
    )

    for state, row in grouped.iterrows():
        metrics.by_state[state] = StateTotals(
            state=state,
            count=int(row['count']),
            sales=float(row['sales']),
            elevators=int(row['elevators']),
            platforms=int(row['platforms']),
            inst_elevators=int(row['inst_elevators']),
            inst_platforms=int(row['inst_platforms']),
        )

    ranked = grouped.sort_values('count', ascending=False, kind='stable')
    metrics.chart_data = [
        ChartPoint(
            state=state,
            count=int(row['count']),
            instalados=int(row['inst_elevators'] + row['inst_platforms']),
            contratados=int(row['elevators'] + row['platforms']),
        )
        for state, row in ranked.iterrows()
    ]

    return metrics


def deadline_status(contrato: Contrato, today: Optional[date] = None,
                    window_days: int = Config.DEADLINE_WINDOW_DAYS) -> Optional[str]:
    """Styling class of a contract's execution deadline."""
    deadline = contrato.prazo_execucao
    if deadline is None:
        return None
    today = today or date.today()
    if deadline < today:
        return DEADLINE_OVERDUE
    if deadline <= today + timedelta(days=window_days):
        return DEADLINE_DUE_SOON
    return DEADLINE_OK


def approaching_deadlines(contratos: List[Contrato], today: Optional[date] = None,
                          window_days: int = Config.DEADLINE_WINDOW_DAYS) -> List[Contrato]:
    """Open contracts due within the window, overdue ones included, soonest first."""
    today = today or date.today()
    limit = today + timedelta(days=window_days)
    due = [
        c for c in contratos
        if c.status in OPEN_STATUSES and c.prazo_execucao is not None and c.prazo_execucao <= limit
    ]
    return sorted(due, key=lambda c: c.prazo_execucao)


def deadline_alerts(contratos: List[Contrato], today: Optional[date] = None) -> List[Dict]:
    """Approaching deadlines as plain dicts for the JSON API."""
    today = today or date.today()
    alerts = []
    for c in approaching_deadlines(contratos, today):
        alerts.append({
            'contrato_id': c.id,
            'cliente_orgao': c.cliente_orgao,
            'estado': c.estado,
            'status': c.status,
            'prazo_execucao': c.prazo_execucao.isoformat(),
            'days_left': (c.prazo_execucao - today).days,
            'deadline_status': deadline_status(c, today),
        })
    return alerts


def filter_contracts(contratos: List[Contrato], term: str) -> List[Contrato]:
    """Case-insensitive search on client/agency name or state code."""
    term = (term or '').strip().lower()
    if not term:
        return list(contratos)
    return [
        c for c in contratos
        if term in c.cliente_orgao.lower() or term in c.estado.lower()
    ]


def format_currency(value: float) -> str:
    """Format as Brazilian reais, e.g. R$ 1.234,56."""
    value = float(value or 0)
    formatted = f"{abs(value):,.2f}".translate(str.maketrans(',.', '.,'))
    return f"-R$ {formatted}" if value < 0 else f"R$ {formatted}"


def format_date(value: Optional[date]) -> str:
    return value.strftime('%d/%m/%Y') if value else 'N/A'
