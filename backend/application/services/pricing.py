"""
Price roll-up engine.

Recomputes, bottom-up, the derived money fields of the hierarchy:

    line (HT / TTC) -> bloc (pt, pu) -> ouvrage (prix_total)
        -> project lot (prix_total, prix_vente) -> project (cout, prix_vente)

Every operation is idempotent and reads only persisted rows, so callers
may invoke them redundantly. They run inside the caller's transaction.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Optional

from django.db import DatabaseError, transaction
from django.db.models import Sum

from domain.pricing.calculations import line_totals, money, sell_price, unit_price
from domain.shared.exceptions import EntityNotFoundException, RecalculationWarning
from infrastructure.persistence.models import (
    Bloc,
    Ouvrage,
    Project,
    ProjectArticle,
    ProjectLot,
    Structure,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def _sum(queryset, field: str) -> Decimal:
    return money(queryset.aggregate(total=Sum(field))['total'] or ZERO)


@contextmanager
def recalculation_guard(scope: str, project_id):
    """
    Savepoint around a recompute.

    A database failure rolls back to the savepoint and is logged as a
    RecalculationWarning; the surrounding mutation carries on.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as e:
        warning = RecalculationWarning(scope, project_id, e)
        logger.warning(warning.message)


class PriceRollupEngine:

    # -------------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------------

    def price_line(self, line: ProjectArticle, catalog_price: Optional[Decimal] = None) -> ProjectArticle:
        """Fill ``prix_total_ht`` and ``total_ttc`` of a line (not saved)."""
        if catalog_price is None and line.article_id is not None:
            catalog_price = line.article.prix_unitaire
        totals = line_totals(line.quantite, catalog_price, line.tva, price_override=line.nouv_prix)
        line.prix_total_ht = totals.prix_total_ht
        line.total_ttc = totals.total_ttc
        return line

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def recalc_bloc(self, bloc_id: int, project_id) -> Bloc:
        """
        ``pt`` = TTC sum of the bloc's lines in this project,
        ``pu`` = ``pt / quantite`` (null without a positive quantity).
        """
        try:
            bloc = Bloc.objects.get(pk=bloc_id)
        except Bloc.DoesNotExist:
            raise EntityNotFoundException('Bloc', bloc_id)

        pt = _sum(
            ProjectArticle.objects.filter(project_id=project_id, structure__bloc_id=bloc_id),
            'total_ttc',
        )
        pu = unit_price(pt, bloc.quantite)
        Bloc.objects.filter(pk=bloc_id).update(pt=pt, pu=pu)
        bloc.pt, bloc.pu = pt, pu
        return bloc

    def recalc_ouvrage(self, ouvrage_id: int) -> Ouvrage:
        """
        TTC sum of every line anchored anywhere under the ouvrage.

        Lines attached directly to the ouvrage and lines inside its blocs
        are summed once each; bloc totals are not added on top.
        """
        try:
            ouvrage = Ouvrage.objects.select_related('project_lot').get(pk=ouvrage_id)
        except Ouvrage.DoesNotExist:
            raise EntityNotFoundException('Ouvrage', ouvrage_id)

        prix_total = _sum(
            ProjectArticle.objects.filter(
                project_id=ouvrage.project_lot.project_id,
                structure__ouvrage_id=ouvrage_id,
            ),
            'total_ttc',
        )
        Ouvrage.objects.filter(pk=ouvrage_id).update(prix_total=prix_total)
        ouvrage.prix_total = prix_total
        return ouvrage

    def recalc_project_sell_price(self, project_id) -> Project:
        """
        ``cout`` = sum of ouvrage totals; ``prix_vente`` = ``cout`` x coefficient.

        Lot associations get the same treatment for their own ouvrages.
        """
        try:
            project = Project.objects.get(pk=project_id)
        except Project.DoesNotExist:
            raise EntityNotFoundException('Project', project_id)

        coefficient = project.coefficient
        for project_lot in ProjectLot.objects.filter(project_id=project_id):
            lot_total = _sum(Ouvrage.objects.filter(project_lot=project_lot), 'prix_total')
            ProjectLot.objects.filter(pk=project_lot.pk).update(
                prix_total=lot_total,
                prix_vente=sell_price(lot_total, coefficient),
            )

        cout = _sum(Ouvrage.objects.filter(project_lot__project_id=project_id), 'prix_total')
        prix_vente = sell_price(cout, coefficient)
        Project.objects.filter(pk=project_id).update(cout=cout, prix_vente=prix_vente)
        project.cout, project.prix_vente = cout, prix_vente
        logger.debug(f"Project {project_id}: cout={cout} coefficient={coefficient:.4f} prix_vente={prix_vente}")
        return project

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def recalc_after(
        self,
        project_id,
        ouvrage_ids: Iterable[int] = (),
        bloc_ids: Iterable[int] = (),
    ) -> Project:
        """Blocs first, then ouvrages, then the project."""
        existing_blocs = set(Bloc.objects.filter(pk__in=set(bloc_ids)).values_list('pk', flat=True))
        for bloc_id in sorted(existing_blocs):
            self.recalc_bloc(bloc_id, project_id)
        existing_ouvrages = set(Ouvrage.objects.filter(pk__in=set(ouvrage_ids)).values_list('pk', flat=True))
        for ouvrage_id in sorted(existing_ouvrages):
            self.recalc_ouvrage(ouvrage_id)
        return self.recalc_project_sell_price(project_id)

    def recalc_project_tree(self, project_id) -> Project:
        """Full pass over every node of the project."""
        ouvrage_ids = Ouvrage.objects.filter(project_lot__project_id=project_id).values_list('pk', flat=True)
        bloc_ids = (
            Structure.objects.filter(ouvrage__project_lot__project_id=project_id, bloc__isnull=False)
            .values_list('bloc_id', flat=True)
        )
        return self.recalc_after(project_id, ouvrage_ids=list(ouvrage_ids), bloc_ids=list(bloc_ids))
