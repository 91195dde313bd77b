"""
Hierarchy Service.

Write operations on a project tree: project -> lot -> ouvrage -> bloc ->
article line. Each public method is one mutation: access check, writes,
price roll-up and designation pass in a single transaction, with its
event drafts dispatched after commit.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Max

from domain.shared.events import EventAction
from domain.shared.exceptions import ConflictException, EntityNotFoundException, ValidationException
from infrastructure.persistence.models import (
    Bloc,
    Lot,
    Ouvrage,
    Project,
    ProjectArticle,
    ProjectLot,
    ProjectTeamMember,
    Structure,
)

from .catalog import CatalogLookup
from .designation import DesignationSequencer
from .events import project_audience
from .identity import BLOC, OUVRAGE
from .mutations import MutationContext, TransactionalMutationShell
from .pricing import PriceRollupEngine, recalculation_guard
from .structure import StructureIndex

logger = logging.getLogger(__name__)

User = get_user_model()

PROJECT_FIELDS = ('nom', 'description', 'marge_brut', 'marge_net')
BLOC_FIELDS = ('nom', 'unite', 'quantite')
LINE_FIELDS = ('quantite', 'nouv_prix', 'tva', 'description', 'localisation')

REORDER_KINDS = ('lot', 'ouvrage', 'bloc')


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


def _change(old: Any, new: Any) -> Dict[str, Any]:
    return {'from': _jsonable(old), 'to': _jsonable(new)}


def parse_decimal(
    field: str,
    value: Any,
    allow_none: bool = False,
    minimum: Optional[Decimal] = Decimal('0'),
    maximum: Optional[Decimal] = None,
) -> Optional[Decimal]:
    """Strict decimal parsing for user input."""
    if value is None or value == '':
        if allow_none:
            return None
        raise ValidationException(f"{field} is required", field=field, value=value)
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationException(f"{field} must be a number", field=field, value=value)
    if not number.is_finite():
        raise ValidationException(f"{field} must be a finite number", field=field, value=value)
    if minimum is not None and number < minimum:
        raise ValidationException(f"{field} must be >= {minimum}", field=field, value=value)
    if maximum is not None and number >= maximum:
        raise ValidationException(f"{field} must be < {maximum}", field=field, value=value)
    return number


def parse_name(field: str, value: Any) -> str:
    name = (value or '').strip() if isinstance(value, str) or value is None else str(value).strip()
    if not name:
        raise ValidationException(f"{field} is required", field=field, value=value)
    return name


def _next_position(queryset) -> int:
    return (queryset.aggregate(m=Max('position'))['m'] or 0) + 1


class HierarchyService:
    """Mutations of one actor on project hierarchies."""

    def __init__(
        self,
        actor,
        shell: Optional[TransactionalMutationShell] = None,
        pricing: Optional[PriceRollupEngine] = None,
        designations: Optional[DesignationSequencer] = None,
        structures: Optional[StructureIndex] = None,
        catalog: Optional[CatalogLookup] = None,
    ):
        self.actor = actor
        self.shell = shell or TransactionalMutationShell(actor)
        self.pricing = pricing or PriceRollupEngine()
        self.designations = designations or DesignationSequencer()
        self.structures = structures or StructureIndex()
        self.catalog = catalog or CatalogLookup()

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    def _get_project_lot(project: Project, project_lot_id) -> ProjectLot:
        try:
            return ProjectLot.objects.select_related('lot').get(pk=project_lot_id, project=project)
        except (ProjectLot.DoesNotExist, ValueError, TypeError):
            raise EntityNotFoundException('ProjectLot', project_lot_id)

    @staticmethod
    def _get_ouvrage(project: Project, ouvrage_id) -> Ouvrage:
        try:
            return Ouvrage.objects.select_related('project_lot__lot').get(
                pk=ouvrage_id, project_lot__project=project
            )
        except (Ouvrage.DoesNotExist, ValueError, TypeError):
            raise EntityNotFoundException('Ouvrage', ouvrage_id)

    @staticmethod
    def _get_attached_bloc(ouvrage: Ouvrage, bloc_id) -> Bloc:
        try:
            return Bloc.objects.filter(structures__ouvrage=ouvrage).distinct().get(pk=bloc_id)
        except (Bloc.DoesNotExist, ValueError, TypeError):
            raise EntityNotFoundException('Bloc', bloc_id)

    @staticmethod
    def _get_line(project: Project, line_id) -> ProjectArticle:
        try:
            return ProjectArticle.objects.select_related(
                'structure__ouvrage__project_lot__lot', 'structure__bloc', 'article'
            ).get(pk=line_id, project=project, structure__isnull=False)
        except (ProjectArticle.DoesNotExist, ValueError, TypeError):
            raise EntityNotFoundException('ProjectArticle', line_id)

    @staticmethod
    def _resolve_users(user_ids: Iterable[Any]) -> List:
        ids = list(dict.fromkeys(str(uid) for uid in user_ids))
        try:
            users = list(User.objects.filter(pk__in=ids))
        except ValidationError:
            raise ValidationException("Unknown user id", field='team', value=ids)
        if len(users) != len(ids):
            found = {str(u.pk) for u in users}
            missing = [uid for uid in ids if uid not in found]
            raise ValidationException("Unknown user id", field='team', value=missing)
        return users

    # =========================================================================
    # Recompute helpers
    # =========================================================================

    def _refresh(self, project_id, ouvrage_ids: Iterable[int] = (), bloc_ids: Iterable[int] = ()) -> None:
        with recalculation_guard('price', project_id):
            self.pricing.recalc_after(project_id, ouvrage_ids=ouvrage_ids, bloc_ids=bloc_ids)

    def _renumber(self, project_id, lot_id=None, target_ouvrage_id=None, start_label=None) -> None:
        self.designations.recalculate(
            project_id,
            lot_id=lot_id,
            target_ouvrage_id=target_ouvrage_id,
            start_label=start_label,
        )

    @staticmethod
    def _ensure_placeholder(project_lot: ProjectLot) -> None:
        """Keep an emptied lot visible with a placeholder line."""
        if ProjectArticle.objects.filter(project_lot=project_lot).exists():
            return
        ProjectArticle.objects.create(
            project_id=project_lot.project_id,
            project_lot=project_lot,
            quantite=Decimal('0'),
        )

    @staticmethod
    def _node_fields(ouvrage: Ouvrage, bloc: Optional[Bloc] = None) -> Dict[str, Any]:
        fields = {
            'lot': ouvrage.project_lot.lot.nom,
            'lot_id': ouvrage.project_lot_id,
            'ouvrage_id': ouvrage.pk,
            'ouvrage_nom': ouvrage.nom,
        }
        if bloc is not None:
            fields['bloc_id'] = bloc.pk
            fields['bloc_nom'] = bloc.nom
        return fields

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(
        self,
        nom: str,
        description: str = '',
        marge_brut: Any = 0,
        marge_net: Any = 0,
        team: Iterable[Any] = (),
    ) -> Project:
        nom = parse_name('nom', nom)
        marge_brut = parse_decimal('marge_brut', marge_brut, maximum=Decimal('100'))
        marge_net = parse_decimal('marge_net', marge_net, maximum=Decimal('100'))
        members = self._resolve_users(team)

        with self.shell.mutation() as ctx:
            project = Project.objects.create(
                nom=nom,
                description=description or '',
                marge_brut=marge_brut,
                marge_net=marge_net,
                created_by=self.actor,
                updated_by=self.actor,
            )
            ctx.project = project
            ProjectTeamMember.objects.bulk_create(
                [ProjectTeamMember(project=project, user=user) for user in members]
            )
            self._refresh(project.pk)
            ctx.emit(EventAction.PROJECT_CREATED)

        logger.info(f"Project created: {project.nom} ({project.pk})")
        project.refresh_from_db()
        return project

    def update_project(self, project_id, **values) -> Project:
        unknown = set(values) - set(PROJECT_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown project fields: {sorted(unknown)}", field=sorted(unknown)[0])
        if 'nom' in values:
            values['nom'] = parse_name('nom', values['nom'])
        for name in ('marge_brut', 'marge_net'):
            if name in values:
                values[name] = parse_decimal(name, values[name], maximum=Decimal('100'))

        with self.shell.mutation(project_id) as ctx:
            project = ctx.project
            changes = {}
            for name, value in values.items():
                old = getattr(project, name)
                if old != value:
                    changes[name] = _change(old, value)
                    setattr(project, name, value)

            if changes:
                project.updated_by = self.actor
                project.save()
                if 'marge_brut' in changes or 'marge_net' in changes:
                    self._refresh(project.pk)
                ctx.emit(EventAction.PROJECT_UPDATED, project_nom=project.nom, metadata={'changes': changes})

        project.refresh_from_db()
        return project

    def update_team(self, project_id, user_ids: Iterable[Any], muted: Iterable[Any] = ()) -> List[ProjectTeamMember]:
        """Replace the team; reported as an ``equipe`` change."""
        users = self._resolve_users(user_ids)
        muted_ids = {str(uid) for uid in muted}

        with self.shell.mutation(project_id, operation='manage_team') as ctx:
            project = ctx.project
            current = {m.user_id: m for m in project.team_members.select_related('user')}
            before = sorted(m.user.username for m in current.values())

            wanted = {user.pk: user for user in users}
            project.team_members.exclude(user_id__in=list(wanted)).delete()
            for user_id, user in wanted.items():
                is_muted = str(user_id) in muted_ids
                member = current.get(user_id)
                if member is None:
                    ProjectTeamMember.objects.create(project=project, user=user, is_muted=is_muted)
                elif member.is_muted != is_muted:
                    member.is_muted = is_muted
                    member.save(update_fields=['is_muted', 'updated_at'])

            after = sorted(user.username for user in users)
            if before != after:
                ctx.emit(
                    EventAction.PROJECT_UPDATED,
                    metadata={'changes': {'equipe': {'from': before, 'to': after}}},
                )

        return list(ProjectTeamMember.objects.filter(project_id=project_id).select_related('user'))

    def delete_project(self, project_id) -> None:
        with self.shell.mutation(project_id, operation='delete') as ctx:
            project = ctx.project
            recipients = tuple(project_audience(project.pk, self.actor.pk))
            bloc_ids = list(
                Structure.objects.filter(ouvrage__project_lot__project=project, bloc__isnull=False)
                .values_list('bloc_id', flat=True)
            )
            ctx.emit(EventAction.PROJECT_DELETED, recipients=recipients)

            project.delete()
            orphans = Bloc.objects.filter(pk__in=bloc_ids, structures__isnull=True)
            orphans.delete()

        logger.info(f"Project deleted: {project_id}")

    # =========================================================================
    # Lots
    # =========================================================================

    @staticmethod
    def _find_or_create_lot(nom: str) -> Lot:
        lot = Lot.objects.filter(nom=nom).first()
        if lot is not None:
            return lot
        try:
            with transaction.atomic():
                return Lot.objects.create(nom=nom)
        except IntegrityError:
            return Lot.objects.get(nom=nom)

    def _ensure_lot(self, ctx: MutationContext, nom: Any) -> Tuple[ProjectLot, bool]:
        nom = parse_name('lot', nom)
        project = ctx.project
        lot = self._find_or_create_lot(nom)

        project_lot = ProjectLot.objects.select_related('lot').filter(project=project, lot=lot).first()
        if project_lot is not None:
            return project_lot, False

        project_lot = ProjectLot.objects.create(
            project=project,
            lot=lot,
            position=_next_position(ProjectLot.objects.filter(project=project)),
        )
        self._renumber(project.pk)
        ctx.emit(EventAction.LOT_CREATED, lot=lot.nom, lot_id=project_lot.pk)
        return project_lot, True

    def ensure_lot(self, project_id, nom: str) -> ProjectLot:
        """Lot of the project with that name, created on first use."""
        with self.shell.mutation(project_id) as ctx:
            project_lot, _ = self._ensure_lot(ctx, nom)
        project_lot.refresh_from_db()
        return project_lot

    def delete_lot(self, project_id, project_lot_id) -> None:
        with self.shell.mutation(project_id, operation='delete') as ctx:
            project_lot = self._get_project_lot(ctx.project, project_lot_id)
            if project_lot.ouvrages.exists():
                raise ConflictException(
                    f"Lot '{project_lot.lot.nom}' still has ouvrages",
                    resource='project_lot',
                    project_lot_id=project_lot.pk,
                )
            name = project_lot.lot.nom
            project_lot.delete()
            self._renumber(ctx.project.pk)
            self._refresh(ctx.project.pk)
            ctx.emit(EventAction.LOT_DELETED, lot=name)

    # =========================================================================
    # Ouvrages
    # =========================================================================

    def create_ouvrage(
        self,
        project_id,
        nom: str,
        lot_id: Optional[int] = None,
        lot_nom: Optional[str] = None,
        position: Optional[int] = None,
    ) -> Ouvrage:
        nom = parse_name('nom', nom)
        if lot_id is None and not lot_nom:
            raise ValidationException("A lot is required", field='lot_id')

        with self.shell.mutation(project_id) as ctx:
            if lot_id is not None:
                project_lot = self._get_project_lot(ctx.project, lot_id)
            else:
                project_lot, _ = self._ensure_lot(ctx, lot_nom)

            ouvrage = self.shell.create_node(
                Ouvrage,
                OUVRAGE,
                project_lot=project_lot,
                nom=nom,
                position=position or _next_position(Ouvrage.objects.filter(project_lot=project_lot)),
            )
            self._renumber(ctx.project.pk, lot_id=project_lot.pk)
            self._refresh(ctx.project.pk, ouvrage_ids=[ouvrage.pk])
            ouvrage = self._get_ouvrage(ctx.project, ouvrage.pk)
            ctx.emit(EventAction.GBLOC_CREATED, **self._node_fields(ouvrage))

        return ouvrage

    def update_ouvrage(self, project_id, ouvrage_id, nom: Optional[str] = None,
                       designation: Optional[str] = None) -> Ouvrage:
        """
        Rename an ouvrage or set its label.

        An edited label is kept and its blocs are renumbered under it.
        """
        with self.shell.mutation(project_id) as ctx:
            ouvrage = self._get_ouvrage(ctx.project, ouvrage_id)
            changes = {}
            if nom is not None:
                nom = parse_name('nom', nom)
                if nom != ouvrage.nom:
                    changes['nom'] = _change(ouvrage.nom, nom)
                    ouvrage.nom = nom
            if designation is not None:
                designation = str(designation).strip()
                if designation and designation != ouvrage.designation:
                    changes['designation'] = _change(ouvrage.designation, designation)
                    ouvrage.designation = designation

            if changes:
                ouvrage.save(update_fields=['nom', 'designation', 'updated_at'])
                if 'designation' in changes:
                    self._renumber(ctx.project.pk, target_ouvrage_id=ouvrage.pk)
                ctx.emit(EventAction.GBLOC_UPDATED, metadata={'changes': changes}, **self._node_fields(ouvrage))

        return ouvrage

    def delete_ouvrage(self, project_id, ouvrage_id) -> List[int]:
        """Delete an ouvrage; returns the ids of blocs removed with it."""
        with self.shell.mutation(project_id, operation='delete') as ctx:
            ouvrage = self._get_ouvrage(ctx.project, ouvrage_id)
            fields = self._node_fields(ouvrage)
            project_lot = ouvrage.project_lot
            bloc_ids = [bloc.pk for bloc in self.structures.blocs_of(ouvrage.pk)]

            removed_blocs = self.structures.remove_ouvrage(ouvrage)
            self._ensure_placeholder(project_lot)
            self._renumber(ctx.project.pk, lot_id=project_lot.pk)
            # shared blocs lose this ouvrage's lines
            self._refresh(ctx.project.pk, bloc_ids=bloc_ids)
            ctx.emit(EventAction.GBLOC_DELETED, metadata={'removed_blocs': removed_blocs}, **fields)

        return removed_blocs

    def duplicate_ouvrage(self, project_id, ouvrage_id, nom: Optional[str] = None) -> Ouvrage:
        """
        Copy an ouvrage with its blocs and lines into the same lot.

        Copied blocs get ids above the new ouvrage id.
        """
        with self.shell.mutation(project_id) as ctx:
            source = self._get_ouvrage(ctx.project, ouvrage_id)
            project_lot = source.project_lot
            copy = self.shell.create_node(
                Ouvrage,
                OUVRAGE,
                project_lot=project_lot,
                nom=parse_name('nom', nom) if nom is not None else f"{source.nom} (copie)",
                position=_next_position(Ouvrage.objects.filter(project_lot=project_lot)),
            )

            new_blocs = []
            for structure in source.structures.select_related('bloc').order_by('id'):
                bloc = structure.bloc
                if bloc is None:
                    target = self.structures.find_or_create(copy.pk, None)
                else:
                    new_bloc = self.shell.create_node(
                        Bloc,
                        BLOC,
                        min_id=copy.pk + 1,
                        nom=bloc.nom,
                        unite=bloc.unite,
                        quantite=bloc.quantite,
                        position=bloc.position,
                    )
                    new_blocs.append(new_bloc.pk)
                    target = self.structures.find_or_create(copy.pk, new_bloc.pk)

                ProjectArticle.objects.bulk_create([
                    ProjectArticle(
                        project=ctx.project,
                        project_lot=project_lot,
                        structure=target,
                        article_id=line.article_id,
                        quantite=line.quantite,
                        nouv_prix=line.nouv_prix,
                        tva=line.tva,
                        prix_total_ht=line.prix_total_ht,
                        total_ttc=line.total_ttc,
                        description=line.description,
                        localisation=line.localisation,
                        position=line.position,
                    )
                    for line in structure.articles.filter(project=ctx.project).order_by('position', 'id')
                ])

            self._renumber(ctx.project.pk, lot_id=project_lot.pk)
            self._refresh(ctx.project.pk, ouvrage_ids=[copy.pk], bloc_ids=new_blocs)
            copy = self._get_ouvrage(ctx.project, copy.pk)
            ctx.emit(
                EventAction.GBLOC_DUPLICATED,
                metadata={'source_id': source.pk, 'blocs': new_blocs},
                **self._node_fields(copy),
            )

        return copy

    # =========================================================================
    # Blocs
    # =========================================================================

    def create_bloc(
        self,
        project_id,
        ouvrage_id,
        nom: str,
        quantite: Any = None,
        unite: str = '',
        position: Optional[int] = None,
    ) -> Bloc:
        nom = parse_name('nom', nom)
        quantite = parse_decimal('quantite', quantite, allow_none=True)

        with self.shell.mutation(project_id) as ctx:
            ouvrage = self._get_ouvrage(ctx.project, ouvrage_id)
            bloc = self.shell.create_node(
                Bloc,
                BLOC,
                nom=nom,
                unite=unite or '',
                quantite=quantite,
                position=position or _next_position(Bloc.objects.filter(structures__ouvrage=ouvrage)),
            )
            self.structures.find_or_create(ouvrage.pk, bloc.pk)
            self._renumber(ctx.project.pk, target_ouvrage_id=ouvrage.pk)
            self._refresh(ctx.project.pk, ouvrage_ids=[ouvrage.pk], bloc_ids=[bloc.pk])
            bloc.refresh_from_db()
            ctx.emit(EventAction.BLOC_CREATED, **self._node_fields(ouvrage, bloc))

        return bloc

    def attach_bloc(self, project_id, ouvrage_id, bloc_id) -> Structure:
        """Attach a bloc already used in the project under another ouvrage."""
        with self.shell.mutation(project_id) as ctx:
            ouvrage = self._get_ouvrage(ctx.project, ouvrage_id)
            bloc = (
                Bloc.objects.filter(pk=bloc_id, structures__ouvrage__project_lot__project=ctx.project)
                .distinct()
                .first()
            )
            if bloc is None:
                raise EntityNotFoundException('Bloc', bloc_id)

            existing = self.structures.find(ouvrage.pk, bloc.pk)
            if existing is not None:
                return existing

            structure = self.structures.find_or_create(ouvrage.pk, bloc.pk)
            self._renumber(ctx.project.pk, target_ouvrage_id=ouvrage.pk)
            self._refresh(ctx.project.pk, ouvrage_ids=[ouvrage.pk], bloc_ids=[bloc.pk])
            ctx.emit(EventAction.BLOC_ATTACHED, **self._node_fields(ouvrage, bloc))

        return structure

    def update_bloc(self, project_id, ouvrage_id, bloc_id, **values) -> Bloc:
        unknown = set(values) - set(BLOC_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown bloc fields: {sorted(unknown)}", field=sorted(unknown)[0])
        if 'nom' in values:
            values['nom'] = parse_name('nom', values['nom'])
        if 'quantite' in values:
            values['quantite'] = parse_decimal('quantite', values['quantite'], allow_none=True)
        if 'unite' in values:
            values['unite'] = values['unite'] or ''

        with self.shell.mutation(project_id) as ctx:
            ouvrage = self._get_ouvrage(ctx.project, ouvrage_id)
            bloc = self._get_attached_bloc(ouvrage, bloc_id)
            changes = {}
            for name, value in values.items():
                old = getattr(bloc, name)
                if old != value:
                    changes[name] = _change(old, value)
                    setattr(bloc, name, value)

            if changes:
                bloc.save(update_fields=list(changes) + ['updated_at'])
                if 'quantite' in changes:
                    self._refresh(ctx.project.pk, bloc_ids=[bloc.pk])
                    bloc.refresh_from_db()
                ctx.emit(EventAction.BLOC_UPDATED, metadata={'changes': changes}, **self._node_fields(ouvrage, bloc))

        return bloc

    def delete_bloc(self, project_id, ouvrage_id, bloc_id) -> bool:
        """
        Remove a bloc from an ouvrage.

        Returns True when the bloc itself was deleted (no other ouvrage
        referenced it).
        """
        with self.shell.mutation(project_id, operation='delete') as ctx:
            ouvrage = self._get_ouvrage(ctx.project, ouvrage_id)
            bloc = self._get_attached_bloc(ouvrage, bloc_id)
            fields = self._node_fields(ouvrage, bloc)

            deleted = self.structures.detach_bloc(ouvrage.pk, bloc.pk)
            self._ensure_placeholder(ouvrage.project_lot)
            self._renumber(ctx.project.pk, target_ouvrage_id=ouvrage.pk)
            self._refresh(
                ctx.project.pk,
                ouvrage_ids=[ouvrage.pk],
                bloc_ids=[] if deleted else [bloc.pk],
            )
            ctx.emit(EventAction.BLOC_DELETED, metadata={'bloc_removed': deleted}, **fields)

        return deleted

    # =========================================================================
    # Article lines
    # =========================================================================

    def add_article(
        self,
        project_id,
        ouvrage_id,
        article_id,
        quantite: Any,
        bloc_id: Optional[int] = None,
        nouv_prix: Any = None,
        tva: Any = None,
        description: str = '',
        localisation: str = '',
    ) -> ProjectArticle:
        """Add a catalog article under an ouvrage, or under one of its blocs."""
        quantite = parse_decimal('quantite', quantite)
        nouv_prix = parse_decimal('nouv_prix', nouv_prix, allow_none=True)
        tva = parse_decimal('tva', tva, allow_none=True)

        with self.shell.mutation(project_id) as ctx:
            ouvrage = self._get_ouvrage(ctx.project, ouvrage_id)
            bloc = self._get_attached_bloc(ouvrage, bloc_id) if bloc_id is not None else None
            entry = self.catalog.get(article_id)

            structure = self.structures.find_or_create(ouvrage.pk, bloc.pk if bloc else None)
            project_lot = ouvrage.project_lot
            ProjectArticle.objects.filter(
                project_lot=project_lot, structure__isnull=True, article__isnull=True
            ).delete()

            line = ProjectArticle(
                project=ctx.project,
                project_lot=project_lot,
                structure=structure,
                article_id=entry.id,
                quantite=quantite,
                nouv_prix=nouv_prix,
                tva=tva if tva is not None else entry.tva,
                description=description or '',
                localisation=localisation or '',
                position=_next_position(ProjectArticle.objects.filter(structure=structure)),
            )
            self.pricing.price_line(line, entry.prix_unitaire)
            line.save()

            self._renumber(ctx.project.pk, lot_id=project_lot.pk)
            self._refresh(ctx.project.pk, ouvrage_ids=[ouvrage.pk], bloc_ids=[bloc.pk] if bloc else [])
            ctx.emit(
                EventAction.ARTICLE_ADDED,
                article_id=line.pk,
                metadata={'reference': entry.reference, 'nom': entry.nom, 'quantite': str(quantite)},
                **self._node_fields(ouvrage, bloc),
            )

        return line

    def update_article(self, project_id, line_id, **values) -> ProjectArticle:
        unknown = set(values) - set(LINE_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown line fields: {sorted(unknown)}", field=sorted(unknown)[0])
        if 'quantite' in values:
            values['quantite'] = parse_decimal('quantite', values['quantite'])
        if 'nouv_prix' in values:
            values['nouv_prix'] = parse_decimal('nouv_prix', values['nouv_prix'], allow_none=True)
        if 'tva' in values:
            values['tva'] = parse_decimal('tva', values['tva'])

        with self.shell.mutation(project_id) as ctx:
            line = self._get_line(ctx.project, line_id)
            changes = {}
            for name, value in values.items():
                old = getattr(line, name)
                if old != value:
                    changes[name] = _change(old, value)
                    setattr(line, name, value)

            if changes:
                self.pricing.price_line(line)
                line.save()
                structure = line.structure
                self._refresh(
                    ctx.project.pk,
                    ouvrage_ids=[structure.ouvrage_id],
                    bloc_ids=[structure.bloc_id] if structure.bloc_id else [],
                )
                ctx.emit(
                    EventAction.ARTICLE_UPDATED,
                    article_id=line.pk,
                    metadata={'changes': changes},
                    **self._node_fields(structure.ouvrage, structure.bloc),
                )

        return line

    def delete_article(self, project_id, line_id) -> None:
        """
        Remove a line.

        The last line of a lot becomes a placeholder instead so the lot
        stays visible.
        """
        with self.shell.mutation(project_id, operation='delete') as ctx:
            line = self._get_line(ctx.project, line_id)
            structure = line.structure
            fields = self._node_fields(structure.ouvrage, structure.bloc)
            metadata = {'reference': line.article.reference, 'nom': line.article.nom} if line.article else {}
            line_pk = line.pk

            others = ProjectArticle.objects.filter(project_lot_id=line.project_lot_id).exclude(pk=line.pk)
            if line.project_lot_id is not None and not others.exists():
                line.structure = None
                line.article = None
                line.nouv_prix = None
                line.quantite = Decimal('0')
                line.prix_total_ht = Decimal('0')
                line.total_ttc = Decimal('0')
                line.save()
            else:
                line.delete()

            self._renumber(ctx.project.pk, lot_id=fields['lot_id'])
            self._refresh(
                ctx.project.pk,
                ouvrage_ids=[structure.ouvrage_id],
                bloc_ids=[structure.bloc_id] if structure.bloc_id else [],
            )
            ctx.emit(EventAction.ARTICLE_DELETED, article_id=line_pk, metadata=metadata, **fields)

    # =========================================================================
    # Ordering
    # =========================================================================

    def reorder(self, project_id, kind: str, ordered_ids: Iterable[Any], parent_id=None) -> List[int]:
        """
        Reorder siblings.

        ``kind`` is ``lot`` (project lots of the project), ``ouvrage``
        (``parent_id`` = project lot) or ``bloc`` (``parent_id`` = ouvrage).
        """
        if kind not in REORDER_KINDS:
            raise ValidationException(f"Unknown kind '{kind}'", field='kind', value=kind)
        try:
            ordered_ids = [int(pk) for pk in ordered_ids]
        except (TypeError, ValueError):
            raise ValidationException("ordered_ids must be integers", field='ordered_ids', value=ordered_ids)

        with self.shell.mutation(project_id) as ctx:
            project = ctx.project
            fields = {}
            if kind == 'lot':
                order = self.designations.reorder(
                    ProjectLot, ordered_ids, ProjectLot.objects.filter(project=project)
                )
                self._renumber(project.pk)
            elif kind == 'ouvrage':
                project_lot = self._get_project_lot(project, parent_id)
                order = self.designations.reorder(
                    Ouvrage, ordered_ids, Ouvrage.objects.filter(project_lot=project_lot)
                )
                self._renumber(project.pk, lot_id=project_lot.pk)
                fields = {'lot': project_lot.lot.nom, 'lot_id': project_lot.pk}
            else:
                ouvrage = self._get_ouvrage(project, parent_id)
                order = self.designations.reorder(
                    Bloc, ordered_ids, Bloc.objects.filter(structures__ouvrage=ouvrage).distinct()
                )
                self._renumber(project.pk, target_ouvrage_id=ouvrage.pk)
                fields = self._node_fields(ouvrage)

            ctx.emit(EventAction.HIERARCHY_REORDERED, metadata={'kind': kind, 'order': order}, **fields)

        return order
