"""
Contract form parsing.
Turns submitted form fields into a contract and its contact rows.
"""

from datetime import datetime
from typing import List, Tuple

from contractgov.exceptions import ValidationError
from contractgov.models import CONTRACT_STATUSES, ESTADOS, STATUS_PENDENTE, Contato, Contrato

REQUIRED_DATES = {
    'data_inicio': 'Data de Início',
    'data_encerramento': 'Data de Encerramento',
    'prazo_execucao': 'Prazo de Execução / Instalação',
}

UNIT_FIELDS = ['qtde_plataformas', 'qtde_elevadores', 'instalados_plataformas', 'instalados_elevadores']


def _parse_date(form, field_name, errors, label=None):
    value = (form.get(field_name) or '').strip()
    if not value:
        if label:
            errors[field_name] = f"{label} é obrigatória."
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        errors[field_name] = 'Data inválida.'
        return None


def _parse_number(form, field_name, errors, cast=float, required=False):
    value = (form.get(field_name) or '').strip()
    if value == '':
        if required:
            errors[field_name] = 'Campo obrigatório.'
        return cast(0)
    try:
        return cast(value.replace(',', '.')) if cast is float else int(value)
    except (TypeError, ValueError):
        errors[field_name] = 'Número inválido.'
        return cast(0)


def parse_contract_form(form) -> Tuple[Contrato, List[Contato]]:
    """Build the contract and contacts from a submitted form.

    Raises ValidationError carrying the field errors and the partially
    parsed values so the form can be shown again.
    """
    errors = {}

    contrato = Contrato(
        id=(form.get('id') or '').strip() or None,
        cliente_orgao=(form.get('cliente_orgao') or '').strip(),
        estado=(form.get('estado') or '').strip().upper(),
        status=form.get('status') or STATUS_PENDENTE,
        objeto_contrato=(form.get('objeto_contrato') or '').strip(),
    )

    if not contrato.cliente_orgao:
        errors['cliente_orgao'] = 'Informe o cliente / órgão.'
    if contrato.estado not in ESTADOS:
        errors['estado'] = 'Selecione o estado.'
    if contrato.status not in CONTRACT_STATUSES:
        errors['status'] = 'Status inválido.'

    contrato.valor_global = _parse_number(form, 'valor_global', errors, required=True)
    for field_name in UNIT_FIELDS:
        setattr(contrato, field_name, _parse_number(form, field_name, errors, cast=int))

    for field_name, label in REQUIRED_DATES.items():
        setattr(contrato, field_name, _parse_date(form, field_name, errors, label))
    contrato.data_conclusao_instalacao = _parse_date(form, 'data_conclusao_instalacao', errors)

    if (form.get('garantia_dias') or '').strip():
        contrato.garantia_dias = _parse_number(form, 'garantia_dias', errors, cast=int)

    nomes = form.getlist('contato_nome')
    emails = form.getlist('contato_email')
    telefones = form.getlist('contato_telefone')
    contatos = [
        Contato(
            nome=nome.strip(),
            email=(emails[i] if i < len(emails) else '').strip(),
            telefone=(telefones[i] if i < len(telefones) else '').strip(),
        )
        for i, nome in enumerate(nomes)
    ]
    contrato.contatos = contatos

    if errors:
        raise ValidationError('Verifique os campos do contrato.',
                              details={'errors': errors, 'contrato': contrato})

    return contrato, [c for c in contatos if not c.is_blank()]
