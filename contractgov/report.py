"""
ContractGov - Report Export
Renders the contract list and its metrics as a paginated PDF.
"""

import io
import logging
from datetime import date
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from contractgov.metrics import Metrics, format_currency
from contractgov.models import Contrato

logger = logging.getLogger(__name__)

BLUE = colors.Color(30 / 255, 64 / 255, 175 / 255)
GREEN = colors.Color(16 / 255, 185 / 255, 129 / 255)
GREY = colors.Color(100 / 255, 100 / 255, 100 / 255)
FOOTER_GREY = colors.Color(150 / 255, 150 / 255, 150 / 255)

CONTRACT_HEADER = ['Cliente/Órgão', 'UF', 'Valor', 'Status', 'Elev. Inst/Tot', 'Plat. Inst/Tot']
CONTRACT_COL_WIDTHS = [50 * mm, 15 * mm, 30 * mm, 25 * mm, 25 * mm, 25 * mm]
STATE_HEADER = ['Estado', 'Nº Contratos', 'Unidades Instaladas', 'Unidades Contratadas']


class NumberedCanvas(canvas.Canvas):
    """Canvas that stamps "Página i de n" once the page count is known."""

    def __init__(self, *args, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        page_count = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(page_count)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def _draw_footer(self, page_count: int):
        self.setFont('Helvetica', 8)
        self.setFillColor(FOOTER_GREY)
        self.drawString(14 * mm, 7 * mm, f"ContractGov - Página {self._pageNumber} de {page_count}")


def report_filename(day: Optional[date] = None) -> str:
    day = day or date.today()
    return f"Relatorio_Contratos_{day.strftime('%d-%m-%Y')}.pdf"


def summary_lines(contratos: List[Contrato], metrics: Metrics) -> List[str]:
    """Executive summary text, one line per entry ('' is a blank line)."""
    return [
        f"Faturamento Anual: {format_currency(metrics.sales_year)}",
        f"Faturamento Global: {format_currency(metrics.global_sales)}",
        f"Contratos Ativos: {metrics.active}",
        f"Contratos Pendentes: {metrics.pending}",
        f"Total de Contratos: {len(contratos)}",
        '',
        f"Elevadores Instalados: {metrics.total_elevators_installed} de "
        f"{metrics.total_elevators_contracted} contratados",
        f"Plataformas Instaladas: {metrics.total_platforms_installed} de "
        f"{metrics.total_platforms_contracted} contratadas",
        f"Total Geral Instalado: {metrics.total_installed} unidades",
    ]


def contract_rows(contratos: List[Contrato]) -> List[List[str]]:
    return [
        [
            c.cliente_orgao[:30],
            c.estado,
            format_currency(c.valor_global),
            c.status,
            f"{c.instalados_elevadores}/{c.qtde_elevadores}",
            f"{c.instalados_plataformas}/{c.qtde_plataformas}",
        ]
        for c in contratos
    ]


def state_rows(metrics: Metrics) -> List[List[str]]:
    return [
        [point.state, str(point.count), str(point.instalados), str(point.contratados)]
        for point in metrics.chart_data
    ]


def build_report(contratos: List[Contrato], metrics: Metrics,
                 generated_on: Optional[date] = None) -> bytes:
    """Render the strategic contract report and return the PDF bytes."""
    generated_on = generated_on or date.today()
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('ReportTitle', parent=styles['Title'], fontSize=20,
                                 textColor=BLUE, alignment=0, spaceAfter=4)
    date_style = ParagraphStyle('ReportDate', parent=styles['Normal'], fontSize=10, textColor=GREY)
    heading_style = ParagraphStyle('ReportHeading', parent=styles['Heading2'], fontSize=14,
                                   textColor=colors.black, spaceBefore=8, spaceAfter=6)
    body_style = ParagraphStyle('ReportBody', parent=styles['Normal'], fontSize=10,
                                textColor=colors.Color(60 / 255, 60 / 255, 60 / 255), leading=13)

    story = [
        Paragraph('Relatório Estratégico de Contratos', title_style),
        Paragraph(f"Gerado em: {generated_on.strftime('%d/%m/%Y')}", date_style),
        Spacer(1, 10 * mm),
        Paragraph('Resumo Executivo', heading_style),
    ]
    for line in summary_lines(contratos, metrics):
        story.append(Paragraph(escape(line), body_style) if line else Spacer(1, 4 * mm))
    story.append(Spacer(1, 8 * mm))

    if contratos:
        story.append(Paragraph('Lista de Contratos', heading_style))
        table = Table([CONTRACT_HEADER] + contract_rows(contratos),
                      colWidths=CONTRACT_COL_WIDTHS, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), BLUE),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
            ('TOPPADDING', (0, 0), (-1, -1), 2),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
        ]))
        story.extend([table, Spacer(1, 10 * mm)])

    if metrics.chart_data:
        story.append(Paragraph('Estatísticas por Estado', heading_style))
        table = Table([STATE_HEADER] + state_rows(metrics), repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), GREEN),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]))
        story.append(table)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=14 * mm, rightMargin=14 * mm,
                            topMargin=15 * mm, bottomMargin=15 * mm,
                            title='Relatório Estratégico de Contratos', author='ContractGov')
    doc.build(story, canvasmaker=NumberedCanvas)
    logger.info(f"Built PDF report with {len(contratos)} contracts")
    return buffer.getvalue()
