"""
Sample data generator for ContractGov.
Creates a demo account and realistic installation contracts across states.
"""

import logging
from datetime import date, timedelta
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from contractgov.auth import AuthService
from contractgov.database import get_database
from contractgov.exceptions import AuthError
from contractgov.models import Contato, Contrato
from contractgov.store import ContractStore

logger = logging.getLogger(__name__)

DEMO_EMAIL = 'demo@contractgov.local'
DEMO_PASSWORD = 'contractgov'


def sample_contracts(today: date = None):
    """Contracts spread over several states, statuses and deadlines."""
    today = today or date.today()
    year_start = date(today.year, 1, 1)

    return [
        (
            Contrato(
                cliente_orgao='Prefeitura Municipal de São Paulo',
                estado='SP', valor_global=1850000.00, status='Ativo',
                qtde_elevadores=12, qtde_plataformas=8,
                instalados_elevadores=7, instalados_plataformas=5,
                objeto_contrato='Fornecimento e instalação de elevadores em unidades básicas de saúde',
                data_inicio=year_start + timedelta(days=20),
                data_encerramento=today + timedelta(days=300),
                prazo_execucao=today + timedelta(days=10),
            ),
            [Contato('Mariana Costa', 'mariana.costa@prefeitura.sp.gov.br', '(11) 3113-4000')],
        ),
        (
            Contrato(
                cliente_orgao='Secretaria de Educação do Estado de SP',
                estado='SP', valor_global=920000.00, status='Pendente',
                qtde_elevadores=0, qtde_plataformas=14,
                objeto_contrato='Plataformas elevatórias para escolas estaduais',
                data_inicio=today.replace(day=1),
                data_encerramento=today + timedelta(days=365),
                prazo_execucao=today + timedelta(days=90),
            ),
            [],
        ),
        (
            Contrato(
                cliente_orgao='Tribunal de Justiça de Minas Gerais',
                estado='MG', valor_global=640000.00, status='Ativo',
                qtde_elevadores=4, qtde_plataformas=2,
                instalados_elevadores=4, instalados_plataformas=1,
                objeto_contrato='Modernização de elevadores do fórum central',
                data_inicio=date(today.year - 1, 6, 1),
                data_encerramento=today + timedelta(days=120),
                prazo_execucao=today - timedelta(days=5),
            ),
            [
                Contato('Ricardo Alves', 'ralves@tjmg.jus.br', '(31) 3237-6000'),
                Contato('Fernanda Lima', 'flima@tjmg.jus.br', ''),
            ],
        ),
        (
            Contrato(
                cliente_orgao='Universidade Federal do Rio de Janeiro',
                estado='RJ', valor_global=480000.00, status='Encerrado',
                qtde_elevadores=3, qtde_plataformas=0,
                instalados_elevadores=3,
                objeto_contrato='Elevadores para os blocos do centro de tecnologia',
                data_inicio=date(today.year - 2, 3, 15),
                data_encerramento=date(today.year - 1, 3, 15),
                prazo_execucao=date(today.year - 1, 1, 31),
                data_conclusao_instalacao=date(today.year - 1, 1, 20),
                garantia_dias=730,
            ),
            [Contato('Paulo Menezes', 'paulo.menezes@ufrj.br', '(21) 3938-9600')],
        ),
        (
            Contrato(
                cliente_orgao='Câmara Municipal de Curitiba',
                estado='PR', valor_global=210000.00, status='Cancelado',
                qtde_elevadores=1, qtde_plataformas=1,
                objeto_contrato='Elevador e plataforma para o plenário',
                data_inicio=date(today.year - 1, 9, 1),
                data_encerramento=date(today.year, 9, 1),
                prazo_execucao=today - timedelta(days=30),
            ),
            [],
        ),
        (
            Contrato(
                cliente_orgao='Governo do Estado da Bahia',
                estado='BA', valor_global=1320000.00, status='Ativo',
                qtde_elevadores=6, qtde_plataformas=10,
                instalados_elevadores=2, instalados_plataformas=6,
                objeto_contrato='Acessibilidade em hospitais da rede estadual',
                data_inicio=year_start + timedelta(days=45),
                data_encerramento=today + timedelta(days=540),
                prazo_execucao=today + timedelta(days=15),
            ),
            [Contato('Juliana Santos', 'juliana.santos@saude.ba.gov.br', '(71) 3115-9000')],
        ),
    ]


def generate_sample_data():
    """Generate the demo account and its contracts in the local database."""
    db = get_database()
    auth = AuthService(db)
    store = ContractStore(db, auth)

    try:
        auth.sign_up(DEMO_EMAIL, DEMO_PASSWORD)
        logger.info(f"Created demo user {DEMO_EMAIL}")
    except AuthError:
        logger.info(f"Demo user {DEMO_EMAIL} already exists")

    auth.sign_in(DEMO_EMAIL, DEMO_PASSWORD)

    contracts = sample_contracts()
    for contrato, contatos in contracts:
        store.upsert(contrato, contatos)
    logger.info(f"Created {len(contracts)} contracts")

    auth.sign_out()
    logger.info(f"Sample data generation complete: {db.get_statistics()}")


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    generate_sample_data()
