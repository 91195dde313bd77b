"""
Project Tasks.

Celery tasks that reconcile derived project values after a mutation.
"""

from celery import shared_task
from django.db import transaction
import logging

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def reconcile_project_aggregates(
    self,
    project_id: str,
    lot_id: int = None,
    target_ouvrage_id: int = None,
    recalc_designations: bool = False,
):
    """
    Re-run the sell price (and optionally designation) pass of a project.

    When the sell price moved, one system ``project_recalculated`` event is
    recorded. System events schedule nothing, so this never re-triggers
    itself.
    """
    from application.services.designation import DesignationSequencer
    from application.services.events import EventNotificationService
    from application.services.pricing import PriceRollupEngine
    from domain.shared.events import EventAction, HierarchyEvent
    from infrastructure.persistence.models import Project

    try:
        with transaction.atomic():
            try:
                project = Project.objects.select_for_update().get(id=project_id)
            except Project.DoesNotExist:
                logger.info(f"Project {project_id} is gone, nothing to reconcile")
                return {'project_id': project_id, 'skipped': True}

            before = project.prix_vente
            if recalc_designations:
                DesignationSequencer().recalculate(
                    project_id,
                    lot_id=lot_id,
                    target_ouvrage_id=target_ouvrage_id,
                )
            project = PriceRollupEngine().recalc_project_sell_price(project_id)
            changed = project.prix_vente != before

            if changed:
                draft = HierarchyEvent(
                    action=EventAction.PROJECT_RECALCULATED,
                    project_id=project.pk,
                    project_nom=project.nom,
                    metadata={'changes': {
                        'prix_vente': {'from': str(before), 'to': str(project.prix_vente)},
                    }},
                    is_system_event=True,
                )
                transaction.on_commit(lambda: EventNotificationService().create_system_event(draft))

        if changed:
            logger.info(f"Reconciled project {project_id}: prix_vente {before} -> {project.prix_vente}")
        return {
            'project_id': project_id,
            'prix_vente': str(project.prix_vente),
            'changed': changed,
        }

    except Exception as e:
        logger.error(f"Error reconciling project {project_id}: {e}")
        raise self.retry(exc=e, countdown=60)


@shared_task
def recalculate_project_tree(project_id: str):
    """Full price and designation pass over one project."""
    from application.services.designation import DesignationSequencer
    from application.services.pricing import PriceRollupEngine

    with transaction.atomic():
        DesignationSequencer().recalculate(project_id)
        project = PriceRollupEngine().recalc_project_tree(project_id)

    logger.info(f"Recalculated project {project_id}: cout={project.cout} prix_vente={project.prix_vente}")
    return {
        'project_id': project_id,
        'cout': str(project.cout),
        'prix_vente': str(project.prix_vente),
    }
