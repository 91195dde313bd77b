"""
Identity space shared by ouvrages and blocs.

Some lookups address an ouvrage or a bloc by its bare numeric id, so the
two tables must never hand out the same id. Table sequences cannot see
each other; every allocation is checked against both tables here, under
a database-wide lock so concurrent transactions on different projects
cannot both claim the same id.
"""

import logging
from typing import Optional

from django.conf import settings
from django.core.management.color import no_style
from django.db import connection
from django.db.models import Max

from domain.shared.exceptions import ConflictException
from infrastructure.persistence.models import Bloc, Ouvrage, Structure, StructureActionChoices

logger = logging.getLogger(__name__)

OUVRAGE = 'ouvrage'
BLOC = 'bloc'

# pg_advisory_xact_lock key guarding ouvrage and bloc id allocation
ALLOCATION_LOCK_KEY = 7_301_001


class IdentitySpaceResolver:
    """Finds ids that are free in both the ouvrage and the bloc table."""

    def __init__(self, max_probes: Optional[int] = None):
        self.max_probes = max_probes or settings.IDENTITY_MAX_PROBES

    @staticmethod
    def _model(kind: str):
        if kind == OUVRAGE:
            return Ouvrage
        if kind == BLOC:
            return Bloc
        raise ValueError(f"Unknown node kind: {kind}")

    def is_taken(self, candidate: int, kind: str, exclude_pk: Optional[int] = None) -> bool:
        """
        Whether ``candidate`` is used by any node.

        The row being re-keyed (``exclude_pk`` in the ``kind`` table) does
        not count. Structure rows of the other kind count as well, so a
        bloc or ouvrage deleted mid-transaction cannot leave a dangling
        reference behind.
        """
        own = self._model(kind).objects.filter(pk=candidate)
        if exclude_pk is not None:
            own = own.exclude(pk=exclude_pk)
        if own.exists():
            return True

        if kind == OUVRAGE:
            return (
                Bloc.objects.filter(pk=candidate).exists()
                or Structure.objects.filter(bloc_id=candidate, action=StructureActionChoices.BLOC).exists()
            )
        return (
            Ouvrage.objects.filter(pk=candidate).exists()
            or Structure.objects.filter(ouvrage_id=candidate, action=StructureActionChoices.OUVRAGE).exists()
        )

    def next_safe_id(self, candidate: int, kind: str, exclude_pk: Optional[int] = None) -> int:
        """Smallest id >= ``candidate`` unused by either table."""
        probe = candidate
        for _ in range(self.max_probes):
            if not self.is_taken(probe, kind, exclude_pk=exclude_pk):
                if probe != candidate:
                    logger.info(f"{kind} id {candidate} collides with the shared id space, using {probe}")
                return probe
            probe += 1
        raise ConflictException(
            f"No free {kind} id found after {self.max_probes} attempts from {candidate}",
            resource=kind,
            candidate=candidate,
        )

    def next_free_id(self, kind: str) -> int:
        """First safe id above every existing ouvrage and bloc id."""
        highest = max(
            Ouvrage.objects.aggregate(m=Max('id'))['m'] or 0,
            Bloc.objects.aggregate(m=Max('id'))['m'] or 0,
        )
        return self.next_safe_id(highest + 1, kind)

    @staticmethod
    def lock() -> None:
        """
        Hold the allocation lock until the current transaction ends.

        PostgreSQL only: SQLite already serializes writers.
        """
        if connection.vendor != 'postgresql':
            return
        with connection.cursor() as cursor:
            cursor.execute('SELECT pg_advisory_xact_lock(%s)', [ALLOCATION_LOCK_KEY])

    @staticmethod
    def sync_sequence(model) -> None:
        """Move the table sequence past ids that were written explicitly."""
        statements = connection.ops.sequence_reset_sql(no_style(), [model])
        if not statements:
            return
        with connection.cursor() as cursor:
            for sql in statements:
                cursor.execute(sql)
