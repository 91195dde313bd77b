"""
Structure index.

Line items never point at ouvrages or blocs directly: they hang off a
Structure row for the (ouvrage, bloc-or-null) pair. Rows are created on
first use and reused afterwards.
"""

import logging
from typing import List, Optional

from django.db import IntegrityError, transaction

from infrastructure.persistence.models import Bloc, Ouvrage, Structure, StructureActionChoices

logger = logging.getLogger(__name__)


class StructureIndex:

    def find(self, ouvrage_id: int, bloc_id: Optional[int] = None) -> Optional[Structure]:
        qs = Structure.objects.filter(ouvrage_id=ouvrage_id)
        if bloc_id is None:
            qs = qs.filter(bloc__isnull=True)
        else:
            qs = qs.filter(bloc_id=bloc_id)
        return qs.first()

    def find_or_create(self, ouvrage_id: int, bloc_id: Optional[int] = None) -> Structure:
        """
        Structure row of the pair, created if missing.

        A concurrent insert of the same pair loses on the unique
        constraint inside a savepoint; the existing row is returned.
        """
        existing = self.find(ouvrage_id, bloc_id)
        if existing is not None:
            return existing

        action = StructureActionChoices.OUVRAGE if bloc_id is None else StructureActionChoices.BLOC
        try:
            with transaction.atomic():
                return Structure.objects.create(ouvrage_id=ouvrage_id, bloc_id=bloc_id, action=action)
        except IntegrityError:
            structure = self.find(ouvrage_id, bloc_id)
            if structure is None:
                raise
            return structure

    def blocs_of(self, ouvrage_id: int) -> List[Bloc]:
        """Blocs attached under an ouvrage."""
        return list(
            Bloc.objects.filter(structures__ouvrage_id=ouvrage_id).distinct()
        )

    def ouvrage_ids_of(self, bloc_id: int) -> List[int]:
        return list(
            Structure.objects.filter(bloc_id=bloc_id)
            .values_list('ouvrage_id', flat=True)
            .distinct()
        )

    def remove_ouvrage(self, ouvrage: Ouvrage) -> List[int]:
        """
        Delete an ouvrage with its structure rows and their lines.

        Blocs that no other ouvrage references are deleted too. Returns the
        ids of the blocs that were deleted.
        """
        ouvrage_id = ouvrage.pk
        bloc_ids = list(
            Structure.objects.filter(ouvrage_id=ouvrage_id, bloc__isnull=False)
            .values_list('bloc_id', flat=True)
        )
        ouvrage.delete()

        orphans = list(
            Bloc.objects.filter(pk__in=bloc_ids, structures__isnull=True)
            .values_list('pk', flat=True)
        )
        if orphans:
            Bloc.objects.filter(pk__in=orphans).delete()
            logger.debug(f"Removed orphan blocs {orphans} with ouvrage {ouvrage_id}")
        return orphans

    def detach_bloc(self, ouvrage_id: int, bloc_id: int) -> bool:
        """
        Remove the (ouvrage, bloc) structure rows and their lines.

        The bloc row itself is deleted only when no other ouvrage still
        references it. Returns True when the bloc row was deleted.
        """
        Structure.objects.filter(ouvrage_id=ouvrage_id, bloc_id=bloc_id).delete()
        if Structure.objects.filter(bloc_id=bloc_id).exists():
            return False
        Bloc.objects.filter(pk=bloc_id).delete()
        return True
