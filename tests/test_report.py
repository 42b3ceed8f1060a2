"""Validate the PDF report export."""

from datetime import date

from contractgov.metrics import aggregate
from contractgov.report import build_report, contract_rows, report_filename, state_rows, summary_lines
from tests.conftest import make_contract

TODAY = date(2024, 6, 10)


class TestReport:
    """Validate report content helpers and the rendered document."""

    def setup_method(self):
        self.contratos = [
            make_contract(cliente_orgao="Secretaria Estadual de Saúde do Estado de São Paulo",
                          qtde_elevadores=4, instalados_elevadores=2, valor_global=1500.5),
            make_contract(estado="MG", qtde_plataformas=3, instalados_plataformas=3),
        ]
        self.metrics = aggregate(self.contratos, TODAY)

    def test_filename(self):
        assert report_filename(date(2024, 3, 5)) == "Relatorio_Contratos_05-03-2024.pdf"

    def test_contract_rows(self):
        rows = contract_rows(self.contratos)

        assert rows[0][0] == "Secretaria Estadual de Saúde d"
        assert rows[0][2] == "R$ 1.500,50"
        assert rows[0][4] == "2/4"
        assert rows[1][5] == "3/3"

    def test_state_rows(self):
        assert state_rows(self.metrics) == [["SP", "1", "2", "4"], ["MG", "1", "3", "3"]]

    def test_summary(self):
        lines = summary_lines(self.contratos, self.metrics)

        assert "Total de Contratos: 2" in lines
        assert "Elevadores Instalados: 2 de 4 contratados" in lines
        assert "Total Geral Instalado: 5 unidades" in lines

    def test_build_report(self):
        pdf = build_report(self.contratos, self.metrics, generated_on=TODAY)

        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000

    def test_build_report_with_many_contracts(self):
        contratos = [make_contract(cliente_orgao=f"Órgão {i}") for i in range(120)]

        pdf = build_report(contratos, aggregate(contratos, TODAY), generated_on=TODAY)

        assert pdf.startswith(b"%PDF")

    def test_build_empty_report(self):
        pdf = build_report([], aggregate([], TODAY), generated_on=TODAY)

        assert pdf.startswith(b"%PDF")
