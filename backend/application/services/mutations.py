"""
Transactional mutation shell.

Every hierarchy write runs inside ``TransactionalMutationShell.mutation``:

    with shell.mutation(project_id) as ctx:
        ... writes ...
        ctx.emit(EventAction.BLOC_CREATED, bloc_id=bloc.pk, bloc_nom=bloc.nom)

Access is checked and the project row locked before any write. Event
drafts collected on the context are queued on the ``dispatch_events``
task only once the transaction has committed, so the caller never waits
on notification writes or push delivery. A failure anywhere rolls back
everything, id re-keys included.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from domain.shared.events import EventAction, HierarchyEvent
from domain.shared.exceptions import AuthorizationException, ConflictException, EntityNotFoundException
from infrastructure.persistence.models import Project

from .identity import IdentitySpaceResolver

logger = logging.getLogger(__name__)


@dataclass
class MutationContext:
    actor: Any
    project: Optional[Project] = None
    drafts: List[HierarchyEvent] = field(default_factory=list)

    def emit(self, action: EventAction, **fields) -> HierarchyEvent:
        """Queue an event draft for dispatch after commit."""
        fields.setdefault('actor_id', self.actor.pk if self.actor is not None else None)
        if self.project is not None:
            fields.setdefault('project_id', self.project.pk)
            fields.setdefault('project_nom', self.project.nom)
        draft = HierarchyEvent(action=action, **fields)
        self.drafts.append(draft)
        return draft


def can_access(user, project: Project) -> bool:
    """Admins, the creator and team members may work on a project."""
    if user is None or not user.is_authenticated:
        return False
    return bool(user.is_admin) or project.has_member(user)


class TransactionalMutationShell:

    def __init__(
        self,
        actor,
        identity: Optional[IdentitySpaceResolver] = None,
        dispatcher: Optional[Callable[[List[HierarchyEvent]], Any]] = None,
    ):
        self.actor = actor
        self.identity = identity or IdentitySpaceResolver()
        self._dispatcher = dispatcher

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def ensure_access(self, project_id, operation: str = 'modify', lock: bool = False) -> Project:
        queryset = Project.objects.all()
        if lock:
            queryset = queryset.select_for_update()
        try:
            project = queryset.get(pk=project_id)
        except (Project.DoesNotExist, ValidationError, ValueError):
            raise EntityNotFoundException('Project', project_id)

        if not can_access(self.actor, project):
            raise AuthorizationException(operation, f'project:{project_id}')
        return project

    # -------------------------------------------------------------------------
    # Transaction
    # -------------------------------------------------------------------------

    @contextmanager
    def mutation(self, project_id=None, operation: str = 'modify'):
        with transaction.atomic():
            project = None
            if project_id is not None:
                project = self.ensure_access(project_id, operation=operation, lock=True)
            context = MutationContext(actor=self.actor, project=project)

            yield context

            drafts = list(context.drafts)
            if drafts:
                transaction.on_commit(lambda: self._dispatch(drafts))

    def _dispatch(self, drafts: List[HierarchyEvent]) -> None:
        try:
            if self._dispatcher is not None:
                self._dispatcher(drafts)
            else:
                from application.tasks.notification_tasks import dispatch_events

                dispatch_events.delay([draft.to_payload() for draft in drafts])
        except Exception as e:
            logger.error(f"Event dispatch failed for {[d.action.value for d in drafts]}: {e}")

    # -------------------------------------------------------------------------
    # Node allocation
    # -------------------------------------------------------------------------

    def create_node(self, model, kind: str, min_id: Optional[int] = None, **fields):
        """
        Insert an ouvrage or bloc with an id free in both tables.

        The row is inserted with its table sequence id and re-keyed to the
        first safe id (never below ``min_id``). A unique violation retries
        with an explicit id above every existing node. Allocation holds
        the identity lock until the surrounding transaction ends, and the
        table sequence is moved past any id written explicitly.
        """
        attempts = settings.IDENTITY_ALLOCATION_ATTEMPTS
        explicit_id = None
        self.identity.lock()
        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    if explicit_id is None:
                        node = model.objects.create(**fields)
                        candidate = max(node.pk, min_id or 0)
                        safe_id = self.identity.next_safe_id(candidate, kind, exclude_pk=node.pk)
                        if safe_id != node.pk:
                            model.objects.filter(pk=node.pk).update(id=safe_id)
                            node.pk = safe_id
                            self.identity.sync_sequence(model)
                    else:
                        node = model.objects.create(pk=explicit_id, **fields)
                        self.identity.sync_sequence(model)
                return node
            except IntegrityError as e:
                explicit_id = max(self.identity.next_free_id(kind), min_id or 0)
                logger.warning(f"{kind} insert collided (attempt {attempt}/{attempts}), retrying with id {explicit_id}: {e}")

        raise ConflictException(
            f"Could not allocate a {kind} id after {attempts} attempts",
            resource=kind,
        )
