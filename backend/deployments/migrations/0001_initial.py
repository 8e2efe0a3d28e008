# Generated manually

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('organizations', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PreDeployment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('ready', 'Ready'), ('published', 'Published'), ('error', 'Error')], db_index=True, default='pending', max_length=20)),
                ('trigger_type', models.CharField(choices=[('product', 'Product'), ('category', 'Category'), ('cms', 'CMS')], max_length=20)),
                ('trigger_action', models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete')], max_length=20)),
                ('entity_id', models.CharField(blank=True, max_length=100, null=True)),
                ('entity_type', models.CharField(blank=True, max_length=50, null=True)),
                ('changes', models.JSONField(blank=True, default=dict)),
                ('build_id', models.CharField(blank=True, max_length=100, null=True)),
                ('message', models.CharField(max_length=500)),
                ('error_details', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('published_at', models.DateTimeField(blank=True, null=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pre_deployments', to='organizations.organization')),
            ],
            options={
                'db_table': 'pre_deployments',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['organization', '-created_at'], name='pre_deploym_organiz_4c2d1e_idx')],
            },
        ),
        migrations.CreateModel(
            name='Deployment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('build_id', models.CharField(max_length=100, unique=True)),
                ('status', models.CharField(choices=[('building', 'Building'), ('uploading', 'Uploading'), ('success', 'Success'), ('error', 'Error')], default='building', max_length=20)),
                ('message', models.CharField(blank=True, max_length=500)),
                ('deploy_url', models.CharField(blank=True, max_length=500)),
                ('error_details', models.TextField(blank=True, null=True)),
                ('files_uploaded', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='deployments', to='organizations.organization')),
                ('triggered_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='deployments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'deployments',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
