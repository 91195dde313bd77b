"""
Designation sequencer.

Hierarchical labels ("1", "2", "2.1", ...) are rebuilt from sibling order
after structural changes:

- project lots: "1".."n" within the project
- ouvrages: "1".."m" within their lot
- blocs: "<ouvrage designation>.<i>" within their ouvrage

Labels are unique within their parent only: two lots of the same project
each start their ouvrages at "1", so both can hold an ouvrage "1" with a
bloc "1.1". Callers that need a project-wide reference use the node id.

A bloc shared by several ouvrages keeps the label of the last ouvrage
renumbered.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence

from domain.hierarchy.designation import in_sibling_order, number, parse_start
from domain.shared.exceptions import ValidationException
from infrastructure.persistence.models import Bloc, Ouvrage, ProjectLot

from .pricing import recalculation_guard

logger = logging.getLogger(__name__)


def _relabel(pairs) -> int:
    changed = 0
    for node, value in pairs:
        if node.designation != value:
            type(node).objects.filter(pk=node.pk).update(designation=value)
            node.designation = value
            changed += 1
    return changed


class DesignationSequencer:

    def recalculate(
        self,
        project_id,
        lot_id: Optional[int] = None,
        target_ouvrage_id: Optional[int] = None,
        start_label: Optional[Any] = None,
    ) -> int:
        """
        Renumber one scope. Returns the number of labels rewritten.

        ``lot_id`` is a project-lot id. ``start_label`` sets the first
        ordinal of the top level of the scope.
        """
        start = parse_start(start_label)
        with recalculation_guard('designation', project_id):
            if target_ouvrage_id is not None:
                ouvrage = Ouvrage.objects.filter(pk=target_ouvrage_id).first()
                if ouvrage is None:
                    return 0
                return self._number_blocs(ouvrage, start)

            if lot_id is not None:
                project_lot = ProjectLot.objects.filter(pk=lot_id, project_id=project_id).first()
                if project_lot is None:
                    return 0
                return self._number_ouvrages(project_lot, start)

            return self._number_project(project_id, start)
        return 0

    def _number_project(self, project_id, start: int) -> int:
        project_lots = in_sibling_order(ProjectLot.objects.filter(project_id=project_id))
        changed = _relabel(number(project_lots, start))
        for project_lot in project_lots:
            changed += self._number_ouvrages(project_lot)
        logger.debug(f"Renumbered project {project_id}: {changed} labels changed")
        return changed

    def _number_ouvrages(self, project_lot: ProjectLot, start: int = 1) -> int:
        ouvrages = in_sibling_order(Ouvrage.objects.filter(project_lot=project_lot))
        changed = _relabel(number(ouvrages, start))
        for ouvrage in ouvrages:
            changed += self._number_blocs(ouvrage)
        return changed

    def _number_blocs(self, ouvrage: Ouvrage, start: int = 1) -> int:
        blocs = in_sibling_order(Bloc.objects.filter(structures__ouvrage=ouvrage).distinct())
        return _relabel(number(blocs, start, prefix=ouvrage.designation))

    # -------------------------------------------------------------------------
    # Explicit ordering
    # -------------------------------------------------------------------------

    def reorder(self, model, ordered_ids: Sequence[int], siblings: Iterable) -> List[int]:
        """
        Give ``siblings`` the order of ``ordered_ids``.

        ``ordered_ids`` must name every sibling exactly once. Positions are
        written as 1..n; labels follow on the next recalculate.
        """
        current = {node.pk: node for node in siblings}
        wanted = [int(pk) for pk in ordered_ids]
        if len(set(wanted)) != len(wanted) or set(wanted) != set(current):
            raise ValidationException(
                "Reorder must list every sibling exactly once",
                field='ordered_ids',
                value=list(ordered_ids),
            )
        for position, pk in enumerate(wanted, start=1):
            if current[pk].position != position:
                model.objects.filter(pk=pk).update(position=position)
        return wanted
