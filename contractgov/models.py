"""
ContractGov - Data Model
Contracts, their contacts, and user profiles as stored in the backend tables.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

STATUS_ATIVO = 'Ativo'
STATUS_PENDENTE = 'Pendente'
STATUS_ENCERRADO = 'Encerrado'
STATUS_CANCELADO = 'Cancelado'

CONTRACT_STATUSES = [STATUS_ATIVO, STATUS_PENDENTE, STATUS_ENCERRADO, STATUS_CANCELADO]
OPEN_STATUSES = (STATUS_ATIVO, STATUS_PENDENTE)

ESTADOS = [
    'AC', 'AL', 'AP', 'AM', 'BA', 'CE', 'DF', 'ES', 'GO', 'MA', 'MT', 'MS', 'MG',
    'PA', 'PB', 'PR', 'PE', 'PI', 'RJ', 'RN', 'RS', 'RO', 'RR', 'SC', 'SP', 'SE', 'TO'
]

ROLE_ADMIN = 'admin'
ROLE_USER = 'user'

# Columns of the contratos table written by the application
CONTRACT_COLUMNS = [
    'cliente_orgao', 'estado', 'valor_global', 'status',
    'qtde_plataformas', 'qtde_elevadores',
    'instalados_plataformas', 'instalados_elevadores',
    'objeto_contrato', 'data_inicio', 'data_encerramento', 'prazo_execucao',
    'data_conclusao_instalacao', 'garantia_dias',
]


def parse_date(value: Any) -> Optional[date]:
    """Parse a stored date ('YYYY-MM-DD' or a timestamp) into a date."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _as_int(value: Any) -> int:
    if value in (None, ''):
        return 0
    return int(float(value))


def _as_float(value: Any) -> float:
    if value in (None, ''):
        return 0.0
    return float(value)


@dataclass
class Contato:
    """A contact person attached to a contract."""
    nome: str = ''
    email: str = ''
    telefone: str = ''
    id: Optional[str] = None
    contrato_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Contato':
        return cls(
            nome=data.get('nome') or '',
            email=data.get('email') or '',
            telefone=data.get('telefone') or '',
            id=_optional_str(data.get('id')),
            contrato_id=_optional_str(data.get('contrato_id')),
        )

    def is_blank(self) -> bool:
        return self.nome.strip() == ''

    def to_record(self, contrato_id: str) -> Dict[str, Any]:
        return {
            'nome': self.nome,
            'email': self.email,
            'telefone': self.telefone,
            'contrato_id': contrato_id,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'contrato_id': self.contrato_id,
            'nome': self.nome,
            'email': self.email,
            'telefone': self.telefone,
        }


@dataclass
class Contrato:
    """A government equipment-installation contract."""
    cliente_orgao: str = ''
    estado: str = ''
    valor_global: float = 0.0
    status: str = STATUS_PENDENTE
    qtde_plataformas: int = 0
    qtde_elevadores: int = 0
    instalados_plataformas: int = 0
    instalados_elevadores: int = 0
    objeto_contrato: str = ''
    data_inicio: Optional[date] = None
    data_encerramento: Optional[date] = None
    prazo_execucao: Optional[date] = None
    data_conclusao_instalacao: Optional[date] = None
    garantia_dias: Optional[int] = None
    contatos: List[Contato] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def new(cls, today: Optional[date] = None) -> 'Contrato':
        """A blank contract with the form defaults."""
        return cls(data_inicio=today or date.today())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Contrato':
        """Build a contract from a backend row (with embedded contatos).

        Rows written before the installed/warranty revision may lack those
        columns; they read as zero / None.
        """
        garantia = data.get('garantia_dias')
        return cls(
            id=_optional_str(data.get('id')),
            cliente_orgao=data.get('cliente_orgao') or '',
            estado=data.get('estado') or '',
            valor_global=_as_float(data.get('valor_global')),
            status=data.get('status') or STATUS_PENDENTE,
            qtde_plataformas=_as_int(data.get('qtde_plataformas')),
            qtde_elevadores=_as_int(data.get('qtde_elevadores')),
            instalados_plataformas=_as_int(data.get('instalados_plataformas')),
            instalados_elevadores=_as_int(data.get('instalados_elevadores')),
            objeto_contrato=data.get('objeto_contrato') or '',
            data_inicio=parse_date(data.get('data_inicio')),
            data_encerramento=parse_date(data.get('data_encerramento')),
            prazo_execucao=parse_date(data.get('prazo_execucao')),
            data_conclusao_instalacao=parse_date(data.get('data_conclusao_instalacao')),
            garantia_dias=_as_int(garantia) if garantia not in (None, '') else None,
            contatos=[Contato.from_dict(c) for c in data.get('contatos') or []],
            created_at=data.get('created_at'),
        )

    @property
    def total_contratado(self) -> int:
        return self.qtde_elevadores + self.qtde_plataformas

    @property
    def total_instalado(self) -> int:
        return self.instalados_elevadores + self.instalados_plataformas

    @property
    def fim_garantia(self) -> Optional[date]:
        """Warranty end: installation completion plus the warranty days."""
        if self.data_conclusao_instalacao is None or self.garantia_dias is None:
            return None
        return self.data_conclusao_instalacao + timedelta(days=self.garantia_dias)

    def to_record(self) -> Dict[str, Any]:
        """Row written to the contratos table; contacts are stored apart."""
        return {
            'cliente_orgao': self.cliente_orgao,
            'estado': self.estado,
            'valor_global': self.valor_global,
            'status': self.status,
            'qtde_plataformas': self.qtde_plataformas,
            'qtde_elevadores': self.qtde_elevadores,
            'instalados_plataformas': self.instalados_plataformas,
            'instalados_elevadores': self.instalados_elevadores,
            'objeto_contrato': self.objeto_contrato,
            'data_inicio': _format_date(self.data_inicio),
            'data_encerramento': _format_date(self.data_encerramento),
            'prazo_execucao': _format_date(self.prazo_execucao),
            'data_conclusao_instalacao': _format_date(self.data_conclusao_instalacao),
            'garantia_dias': self.garantia_dias,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_record()
        data['id'] = self.id
        data['created_at'] = self.created_at
        data['contatos'] = [c.to_dict() for c in self.contatos]
        return data


@dataclass
class User:
    id: str
    email: str = ''


@dataclass
class AuthSession:
    access_token: str
    user: User
    refresh_token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'access_token': self.access_token,
            'refresh_token': self.refresh_token,
            'user': {'id': self.user.id, 'email': self.user.email},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuthSession':
        user = data.get('user') or {}
        return cls(
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token'),
            user=User(id=str(user.get('id')), email=user.get('email') or ''),
        )


@dataclass
class Profile:
    """User profile; the role only changes labels, never data access."""
    id: str
    email: str = ''
    nome: Optional[str] = None
    role: str = ROLE_USER

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        return cls(
            id=str(data.get('id')),
            email=data.get('email') or '',
            nome=data.get('nome'),
            role=data.get('role') or ROLE_USER,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def role_label(self) -> str:
        return 'Administrador' if self.is_admin else 'Usuário'


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
