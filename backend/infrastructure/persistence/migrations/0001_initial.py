import uuid
from decimal import Decimal

import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import simple_history.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('username', models.CharField(max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='Identifiant')),
                ('email', models.EmailField(max_length=254, unique=True, verbose_name='Email')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='Prénom')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='Nom')),
                ('is_admin', models.BooleanField(db_index=True, default=False, verbose_name='Administrateur')),
                ('last_activity', models.DateTimeField(blank=True, null=True, verbose_name='Dernière activité')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'Utilisateur',
                'verbose_name_plural': 'Utilisateurs',
                'db_table': 'users',
                'ordering': ['last_name', 'first_name'],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='CatalogArticle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de modification')),
                ('reference', models.CharField(max_length=100, unique=True, verbose_name='Référence')),
                ('nom', models.CharField(max_length=500, verbose_name='Désignation')),
                ('unite', models.CharField(blank=True, max_length=20, verbose_name='Unité')),
                ('prix_unitaire', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(0)], verbose_name='Prix unitaire HT')),
                ('tva', models.DecimalField(decimal_places=2, default=Decimal('20'), max_digits=5, verbose_name='TVA (%)')),
            ],
            options={
                'verbose_name': 'Article du catalogue',
                'verbose_name_plural': 'Articles du catalogue',
                'db_table': 'catalog_articles',
                'ordering': ['reference'],
            },
        ),
        migrations.CreateModel(
            name='Lot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('nom', models.CharField(max_length=255, unique=True, verbose_name='Lot')),
            ],
            options={
                'verbose_name': 'Lot',
                'verbose_name_plural': 'Lots',
                'db_table': 'lots',
                'ordering': ['nom'],
            },
        ),
        migrations.CreateModel(
            name='Project',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de modification')),
                ('version', models.PositiveIntegerField(default=1, verbose_name='Version')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Actif')),
                ('nom', models.CharField(max_length=255, verbose_name='Nom du projet')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('marge_brut', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=6, verbose_name='Marge brute (%)')),
                ('marge_net', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=6, verbose_name='Marge nette (%)')),
                ('cout', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Coût total')),
                ('prix_vente', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Prix de vente')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='project_created', to=settings.AUTH_USER_MODEL, verbose_name='Créé par')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='project_updated', to=settings.AUTH_USER_MODEL, verbose_name='Modifié par')),
            ],
            options={
                'verbose_name': 'Projet',
                'verbose_name_plural': 'Projets',
                'db_table': 'projects',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ProjectTeamMember',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de modification')),
                ('is_muted', models.BooleanField(default=False, verbose_name='Notifications coupées')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='team_members', to='persistence.project', verbose_name='Projet')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='project_memberships', to=settings.AUTH_USER_MODEL, verbose_name='Utilisateur')),
            ],
            options={
                'verbose_name': "Membre de l'équipe",
                'verbose_name_plural': "Membres de l'équipe",
                'db_table': 'project_team_members',
            },
        ),
        migrations.AddField(
            model_name='project',
            name='team',
            field=models.ManyToManyField(blank=True, related_name='team_projects', through='persistence.ProjectTeamMember', to=settings.AUTH_USER_MODEL, verbose_name='Équipe'),
        ),
        migrations.AddIndex(
            model_name='project',
            index=models.Index(fields=['created_by'], name='projects_created_6f1d2a_idx'),
        ),
        migrations.AddConstraint(
            model_name='projectteammember',
            constraint=models.UniqueConstraint(fields=('project', 'user'), name='uniq_project_team_member'),
        ),
        migrations.CreateModel(
            name='HistoricalProject',
            fields=[
                ('created_at', models.DateTimeField(blank=True, editable=False, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(blank=True, editable=False, verbose_name='Date de modification')),
                ('version', models.PositiveIntegerField(default=1, verbose_name='Version')),
                ('id', models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, verbose_name='ID')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Actif')),
                ('nom', models.CharField(max_length=255, verbose_name='Nom du projet')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('marge_brut', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=6, verbose_name='Marge brute (%)')),
                ('marge_net', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=6, verbose_name='Marge nette (%)')),
                ('cout', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Coût total')),
                ('prix_vente', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Prix de vente')),
                ('history_id', models.AutoField(primary_key=True, serialize=False)),
                ('history_date', models.DateTimeField(db_index=True)),
                ('history_change_reason', models.CharField(max_length=100, null=True)),
                ('history_type', models.CharField(choices=[('+', 'Created'), ('~', 'Changed'), ('-', 'Deleted')], max_length=1)),
                ('created_by', models.ForeignKey(blank=True, db_constraint=False, null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Créé par')),
                ('history_user', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('updated_by', models.ForeignKey(blank=True, db_constraint=False, null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Modifié par')),
            ],
            options={
                'verbose_name': 'historical Projet',
                'verbose_name_plural': 'historical Projets',
                'ordering': ('-history_date', '-history_id'),
                'get_latest_by': ('history_date', 'history_id'),
            },
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name='ProjectLot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de modification')),
                ('designation', models.CharField(blank=True, max_length=50, verbose_name='Désignation')),
                ('position', models.PositiveIntegerField(default=0, verbose_name='Position')),
                ('prix_total', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Prix total')),
                ('prix_vente', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Prix de vente')),
                ('lot', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='project_lots', to='persistence.lot', verbose_name='Lot')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lots', to='persistence.project', verbose_name='Projet')),
            ],
            options={
                'verbose_name': 'Lot du projet',
                'verbose_name_plural': 'Lots du projet',
                'db_table': 'project_lots',
                'ordering': ['project', 'position', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='projectlot',
            constraint=models.UniqueConstraint(fields=('project', 'lot'), name='uniq_project_lot'),
        ),
        migrations.CreateModel(
            name='Ouvrage',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de modification')),
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('nom', models.CharField(max_length=500, verbose_name="Nom de l'ouvrage")),
                ('designation', models.CharField(blank=True, max_length=50, verbose_name='Désignation')),
                ('position', models.PositiveIntegerField(default=0, verbose_name='Position')),
                ('prix_total', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Prix total')),
                ('project_lot', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ouvrages', to='persistence.projectlot', verbose_name='Lot du projet')),
            ],
            options={
                'verbose_name': 'Ouvrage',
                'verbose_name_plural': 'Ouvrages',
                'db_table': 'ouvrages',
                'ordering': ['project_lot', 'position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Bloc',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de modification')),
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('nom', models.CharField(max_length=500, verbose_name='Nom du bloc')),
                ('unite', models.CharField(blank=True, max_length=20, verbose_name='Unité')),
                ('quantite', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True, verbose_name='Quantité')),
                ('pu', models.DecimalField(blank=True, decimal_places=2, max_digits=16, null=True, verbose_name='Prix unitaire')),
                ('pt', models.DecimalField(blank=True, decimal_places=2, max_digits=16, null=True, verbose_name='Prix total')),
                ('designation', models.CharField(blank=True, max_length=50, verbose_name='Désignation')),
                ('position', models.PositiveIntegerField(default=0, verbose_name='Position')),
            ],
            options={
                'verbose_name': 'Bloc',
                'verbose_name_plural': 'Blocs',
                'db_table': 'blocs',
                'ordering': ['position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Structure',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('ouvrage', 'Ouvrage'), ('bloc', 'Bloc')], max_length=10, verbose_name='Type')),
                ('bloc', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='structures', to='persistence.bloc', verbose_name='Bloc')),
                ('ouvrage', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='structures', to='persistence.ouvrage', verbose_name='Ouvrage')),
            ],
            options={
                'verbose_name': 'Structure',
                'verbose_name_plural': 'Structures',
                'db_table': 'structures',
            },
        ),
        migrations.AddIndex(
            model_name='structure',
            index=models.Index(fields=['bloc', 'action'], name='structures_bloc_id_3c9e1b_idx'),
        ),
        migrations.AddConstraint(
            model_name='structure',
            constraint=models.UniqueConstraint(fields=('ouvrage', 'bloc'), name='uniq_structure_ouvrage_bloc'),
        ),
        migrations.AddConstraint(
            model_name='structure',
            constraint=models.UniqueConstraint(condition=models.Q(('bloc__isnull', True)), fields=('ouvrage',), name='uniq_structure_ouvrage_direct'),
        ),
        migrations.CreateModel(
            name='ProjectArticle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Date de création')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Date de modification')),
                ('quantite', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=14, verbose_name='Quantité')),
                ('nouv_prix', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, verbose_name='Prix unitaire ajusté')),
                ('tva', models.DecimalField(decimal_places=2, default=Decimal('20'), max_digits=5, verbose_name='TVA (%)')),
                ('prix_total_ht', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Total HT')),
                ('total_ttc', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=16, verbose_name='Total TTC')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('localisation', models.CharField(blank=True, max_length=255, verbose_name='Localisation')),
                ('position', models.PositiveIntegerField(default=0, verbose_name='Position')),
                ('article', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='project_lines', to='persistence.catalogarticle', verbose_name='Article')),
                ('project', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='articles', to='persistence.project', verbose_name='Projet')),
                ('project_lot', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='articles', to='persistence.projectlot', verbose_name='Lot du projet')),
                ('structure', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='articles', to='persistence.structure', verbose_name='Structure')),
            ],
            options={
                'verbose_name': 'Article du projet',
                'verbose_name_plural': 'Articles du projet',
                'db_table': 'project_articles',
                'ordering': ['project', 'position', 'id'],
            },
        ),
        migrations.AddIndex(
            model_name='projectarticle',
            index=models.Index(fields=['project', 'structure'], name='project_art_project_8a2f4c_idx'),
        ),
        migrations.AddIndex(
            model_name='projectarticle',
            index=models.Index(fields=['project_lot'], name='project_art_project_5d7b10_idx'),
        ),
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[('project_created', 'Projet créé'), ('project_updated', 'Projet modifié'), ('project_deleted', 'Projet supprimé'), ('project_recalculated', 'Projet recalculé'), ('lot_created', 'Lot créé'), ('lot_deleted', 'Lot supprimé'), ('gbloc_created', 'Ouvrage créé'), ('gbloc_updated', 'Ouvrage modifié'), ('gbloc_deleted', 'Ouvrage supprimé'), ('gbloc_duplicated', 'Ouvrage dupliqué'), ('bloc_created', 'Bloc créé'), ('bloc_attached', 'Bloc rattaché'), ('bloc_updated', 'Bloc modifié'), ('bloc_deleted', 'Bloc supprimé'), ('article_added', 'Article ajouté'), ('article_updated', 'Article modifié'), ('article_deleted', 'Article supprimé'), ('hierarchy_reordered', 'Ordre modifié')], db_index=True, max_length=50, verbose_name='Action')),
                ('lot', models.CharField(blank=True, max_length=255, verbose_name='Lot')),
                ('ouvrage_id', models.IntegerField(blank=True, null=True, verbose_name='ID ouvrage')),
                ('bloc_id', models.IntegerField(blank=True, null=True, verbose_name='ID bloc')),
                ('article_id', models.IntegerField(blank=True, null=True, verbose_name='ID article')),
                ('project_nom_anc', models.CharField(blank=True, max_length=255, verbose_name='Nom du projet (historique)')),
                ('ouvrage_nom_anc', models.CharField(blank=True, max_length=500, verbose_name="Nom de l'ouvrage (historique)")),
                ('bloc_nom_anc', models.CharField(blank=True, max_length=500, verbose_name='Nom du bloc (historique)')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Métadonnées')),
                ('is_system_event', models.BooleanField(default=False, verbose_name='Événement système')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Date')),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='events', to=settings.AUTH_USER_MODEL, verbose_name='Auteur')),
                ('project', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='events', to='persistence.project', verbose_name='Projet')),
            ],
            options={
                'verbose_name': 'Événement',
                'verbose_name_plural': 'Événements',
                'db_table': 'events',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.AddIndex(
            model_name='event',
            index=models.Index(fields=['project', '-created_at'], name='events_project_2b8e61_idx'),
        ),
        migrations.AddIndex(
            model_name='event',
            index=models.Index(fields=['actor', 'action', 'project', '-created_at'], name='events_actor_i_9c4f07_idx'),
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('is_read', models.BooleanField(db_index=True, default=False, verbose_name='Lu')),
                ('read_at', models.DateTimeField(blank=True, null=True, verbose_name='Lu le')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Date')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to='persistence.event', verbose_name='Événement')),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL, verbose_name='Destinataire')),
            ],
            options={
                'verbose_name': 'Notification',
                'verbose_name_plural': 'Notifications',
                'db_table': 'notifications',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.AddIndex(
            model_name='notification',
            index=models.Index(fields=['recipient', 'is_read'], name='notificatio_recipie_41a7d3_idx'),
        ),
        migrations.AddConstraint(
            model_name='notification',
            constraint=models.UniqueConstraint(fields=('recipient', 'event'), name='uniq_notification_recipient_event'),
        ),
    ]
