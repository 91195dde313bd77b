"""
Recalculate Project Command.

Full designation and price pass over one or every project. Safe to run
repeatedly.
"""

from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = 'Renumber designations and recompute prices of projects'

    def add_arguments(self, parser):
        parser.add_argument(
            'project_ids',
            nargs='*',
            help='Project ids (default: all projects)'
        )
        parser.add_argument(
            '--async',
            action='store_true',
            dest='use_celery',
            help='Queue one Celery task per project instead of running inline'
        )

    def handle(self, *args, **options):
        from django.core.exceptions import ValidationError

        from application.tasks.project_tasks import recalculate_project_tree
        from infrastructure.persistence.models import Project

        project_ids = options['project_ids']
        if project_ids:
            try:
                found = {str(pk) for pk in Project.objects.filter(pk__in=project_ids).values_list('pk', flat=True)}
            except ValidationError:
                raise CommandError('Project ids must be UUIDs')
            missing = [pk for pk in project_ids if pk not in found]
            if missing:
                raise CommandError(f"Unknown project(s): {', '.join(missing)}")
        else:
            project_ids = [str(pk) for pk in Project.objects.values_list('pk', flat=True)]

        for project_id in project_ids:
            if options['use_celery']:
                recalculate_project_tree.delay(project_id)
                self.stdout.write(f'Queued {project_id}')
            else:
                result = recalculate_project_tree(project_id)
                self.stdout.write(
                    f"{project_id}: cout={result['cout']} prix_vente={result['prix_vente']}"
                )

        self.stdout.write(self.style.SUCCESS(f'Done: {len(project_ids)} project(s)'))
