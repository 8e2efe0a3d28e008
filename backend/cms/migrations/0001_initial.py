# Generated manually

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('organizations', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='HomePageContent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('section', models.CharField(db_index=True, max_length=100)),
                ('key', models.CharField(max_length=100)),
                ('value', models.TextField(blank=True)),
                ('type', models.CharField(choices=[('text', 'Text'), ('textarea', 'Long Text'), ('image', 'Image'), ('color', 'Color'), ('url', 'URL')], default='text', max_length=20)),
                ('display_name', models.CharField(blank=True, max_length=200)),
                ('description', models.TextField(blank=True, null=True)),
                ('sort_order', models.IntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='home_page_content', to='organizations.organization')),
            ],
            options={
                'db_table': 'home_page_content',
                'ordering': ['section', 'sort_order', 'key'],
            },
        ),
        migrations.AddConstraint(
            model_name='homepagecontent',
            constraint=models.UniqueConstraint(fields=('organization', 'section', 'key'), name='uniq_content_per_org_section_key'),
        ),
    ]
