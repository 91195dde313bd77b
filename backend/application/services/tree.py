"""
Project tree read model.

Nested, designation-ordered view of a project used by the API and the
workbook export.
"""

from collections import defaultdict
from typing import Any, Dict, List

from domain.hierarchy.designation import in_sibling_order
from infrastructure.persistence.models import Ouvrage, Project, ProjectArticle, ProjectLot, Structure


def _money(value) -> str:
    return str(value) if value is not None else None


def _line(line: ProjectArticle) -> Dict[str, Any]:
    article = line.article
    return {
        'id': line.pk,
        'article_id': line.article_id,
        'reference': article.reference if article else None,
        'nom': article.nom if article else None,
        'unite': article.unite if article else None,
        'prix_catalogue': _money(article.prix_unitaire) if article else None,
        'quantite': str(line.quantite),
        'nouv_prix': _money(line.nouv_prix),
        'tva': str(line.tva),
        'prix_total_ht': _money(line.prix_total_ht),
        'total_ttc': _money(line.total_ttc),
        'description': line.description,
        'localisation': line.localisation,
    }


def build_project_tree(project: Project) -> Dict[str, Any]:
    project_lots = in_sibling_order(ProjectLot.objects.filter(project=project).select_related('lot'))
    ouvrages = Ouvrage.objects.filter(project_lot__project=project)
    lines = (
        ProjectArticle.objects.filter(project=project, structure__isnull=False)
        .select_related('structure', 'article')
        .order_by('position', 'id')
    )

    ouvrages_by_lot = defaultdict(list)
    for ouvrage in ouvrages:
        ouvrages_by_lot[ouvrage.project_lot_id].append(ouvrage)

    lines_by_pair = defaultdict(list)
    for line in lines:
        lines_by_pair[(line.structure.ouvrage_id, line.structure.bloc_id)].append(_line(line))

    blocs_by_ouvrage = defaultdict(list)
    structures = Structure.objects.filter(
        ouvrage__project_lot__project=project, bloc__isnull=False
    ).select_related('bloc')
    for structure in structures:
        blocs_by_ouvrage[structure.ouvrage_id].append(structure.bloc)

    lots: List[Dict[str, Any]] = []
    for project_lot in project_lots:
        lot_ouvrages = []
        for ouvrage in in_sibling_order(ouvrages_by_lot[project_lot.pk]):
            lot_ouvrages.append({
                'id': ouvrage.pk,
                'designation': ouvrage.designation,
                'nom': ouvrage.nom,
                'prix_total': _money(ouvrage.prix_total),
                'articles': lines_by_pair[(ouvrage.pk, None)],
                'blocs': [
                    {
                        'id': bloc.pk,
                        'designation': bloc.designation,
                        'nom': bloc.nom,
                        'unite': bloc.unite,
                        'quantite': _money(bloc.quantite),
                        'pu': _money(bloc.pu),
                        'pt': _money(bloc.pt),
                        'articles': lines_by_pair[(ouvrage.pk, bloc.pk)],
                    }
                    for bloc in in_sibling_order(blocs_by_ouvrage[ouvrage.pk])
                ],
            })
        lots.append({
            'id': project_lot.pk,
            'lot_id': project_lot.lot_id,
            'designation': project_lot.designation,
            'nom': project_lot.lot.nom,
            'prix_total': _money(project_lot.prix_total),
            'prix_vente': _money(project_lot.prix_vente),
            'ouvrages': lot_ouvrages,
        })

    return {
        'id': str(project.pk),
        'nom': project.nom,
        'cout': _money(project.cout),
        'prix_vente': _money(project.prix_vente),
        'coefficient': str(project.coefficient),
        'lots': lots,
    }
