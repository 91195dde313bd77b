"""
Project workbook export.
"""

import logging
from io import BytesIO

import openpyxl
from openpyxl.styles import Alignment, Font

from infrastructure.persistence.models import Project

from .tree import build_project_tree

logger = logging.getLogger(__name__)

HEADERS = [
    'N°', 'Désignation', 'Unité', 'Quantité', 'PU HT', 'TVA (%)', 'Total HT', 'Total TTC',
]


def _number(value):
    return float(value) if value not in (None, '') else None


def export_project_workbook(project: Project) -> bytes:
    """Priced tree of a project as an .xlsx document."""
    tree = build_project_tree(project)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Métré"

    header_font = Font(bold=True)
    for col, header in enumerate(HEADERS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center')

    row = 2

    def node_row(designation, nom, total, level):
        nonlocal row
        ws.cell(row=row, column=1, value=designation)
        ws.cell(row=row, column=2, value=f"{'  ' * level}{nom}").font = header_font
        ws.cell(row=row, column=8, value=_number(total))
        row += 1

    def line_rows(lines, level):
        nonlocal row
        for line in lines:
            unit_price = line['nouv_prix'] or line['prix_catalogue']
            ws.cell(row=row, column=2, value=f"{'  ' * level}{line['nom']}")
            ws.cell(row=row, column=3, value=line['unite'])
            ws.cell(row=row, column=4, value=_number(line['quantite']))
            ws.cell(row=row, column=5, value=_number(unit_price))
            ws.cell(row=row, column=6, value=_number(line['tva']))
            ws.cell(row=row, column=7, value=_number(line['prix_total_ht']))
            ws.cell(row=row, column=8, value=_number(line['total_ttc']))
            row += 1

    for lot in tree['lots']:
        node_row(lot['designation'], lot['nom'], lot['prix_total'], 0)
        for ouvrage in lot['ouvrages']:
            node_row(ouvrage['designation'], ouvrage['nom'], ouvrage['prix_total'], 1)
            line_rows(ouvrage['articles'], 2)
            for bloc in ouvrage['blocs']:
                node_row(bloc['designation'], bloc['nom'], bloc['pt'], 2)
                line_rows(bloc['articles'], 3)

    row += 1
    ws.cell(row=row, column=7, value="Coût").font = header_font
    ws.cell(row=row, column=8, value=_number(tree['cout']))
    row += 1
    ws.cell(row=row, column=7, value="Prix de vente").font = header_font
    ws.cell(row=row, column=8, value=_number(tree['prix_vente']))

    # Auto-width columns
    for column in ws.columns:
        max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        ws.column_dimensions[column[0].column_letter].width = max_length + 2

    buffer = BytesIO()
    wb.save(buffer)
    logger.info(f"Exported project {project.pk} workbook ({row - 1} rows)")
    return buffer.getvalue()
