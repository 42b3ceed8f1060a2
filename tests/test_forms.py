"""Validate contract form parsing."""

from datetime import date

import pytest
from werkzeug.datastructures import MultiDict

from contractgov.exceptions import ValidationError
from web.forms import parse_contract_form


def valid_form(**overrides):
    data = MultiDict([
        ("cliente_orgao", "Prefeitura de Recife"),
        ("estado", "pe"),
        ("status", "Ativo"),
        ("valor_global", "250000,75"),
        ("qtde_elevadores", "3"),
        ("qtde_plataformas", ""),
        ("instalados_elevadores", "1"),
        ("instalados_plataformas", "0"),
        ("objeto_contrato", "Elevadores para escolas"),
        ("data_inicio", "2024-02-01"),
        ("data_encerramento", "2025-02-01"),
        ("prazo_execucao", "2024-08-01"),
        ("contato_nome", "Ana"),
        ("contato_email", "ana@recife.pe.gov.br"),
        ("contato_telefone", "(81) 3355-0000"),
        ("contato_nome", ""),
        ("contato_email", "ignorado@recife.pe.gov.br"),
        ("contato_telefone", ""),
    ])
    for key, value in overrides.items():
        data.setlist(key, [value])
    return data


class TestParseContractForm:
    """Validate conversion and validation of submitted fields."""

    def test_valid_form(self):
        contrato, contatos = parse_contract_form(valid_form())

        assert contrato.id is None
        assert contrato.estado == "PE"
        assert contrato.valor_global == 250000.75
        assert contrato.qtde_elevadores == 3
        assert contrato.qtde_plataformas == 0
        assert contrato.prazo_execucao == date(2024, 8, 1)
        assert contrato.garantia_dias is None
        assert [c.nome for c in contatos] == ["Ana"]
        assert contatos[0].email == "ana@recife.pe.gov.br"

    def test_editing_keeps_id_and_warranty(self):
        contrato, _ = parse_contract_form(valid_form(
            id="c1", data_conclusao_instalacao="2024-07-20", garantia_dias="365"
        ))

        assert contrato.id == "c1"
        assert contrato.fim_garantia == date(2025, 7, 20)

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc:
            parse_contract_form(valid_form(cliente_orgao=" ", estado="XX", prazo_execucao=""))

        errors = exc.value.details["errors"]
        assert set(errors) == {"cliente_orgao", "estado", "prazo_execucao"}
        assert exc.value.details["contrato"].valor_global == 250000.75

    def test_invalid_numbers_and_dates(self):
        with pytest.raises(ValidationError) as exc:
            parse_contract_form(valid_form(qtde_elevadores="três", data_inicio="01/02/2024",
                                           valor_global=""))

        assert set(exc.value.details["errors"]) == {"qtde_elevadores", "data_inicio", "valor_global"}

    def test_installed_above_contracted_is_accepted(self):
        contrato, _ = parse_contract_form(valid_form(instalados_elevadores="9"))

        assert contrato.instalados_elevadores == 9
