import re

import django.core.validators
from django.db import migrations, models

import tasks.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('slug', models.CharField(help_text='Category id (letters, numbers, hyphens and underscores)', max_length=50, validators=[django.core.validators.RegexValidator(re.compile('^[A-Za-z0-9_-]{1,50}$'))])),
                ('display_name', models.CharField(max_length=100)),
                ('secondary_name', models.CharField(blank=True, default='', max_length=100)),
                ('weight', models.FloatField(default=0, help_text='Weight from 0 to 100; a scope may not total more than 100', validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('color', models.CharField(help_text='Hex color, e.g. #FF6B6B', max_length=7, validators=[django.core.validators.RegexValidator(re.compile('^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$'))])),
                ('is_default', models.BooleanField(default=False)),
                ('owner', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name_plural': 'categories',
                'ordering': ['-is_default', 'slug'],
            },
        ),
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=500)),
                ('project', models.CharField(blank=True, default='', max_length=200)),
                ('goal', models.CharField(blank=True, default='', max_length=1000)),
                ('update', models.CharField(blank=True, default='', max_length=2000)),
                ('type', models.CharField(choices=[('task', 'Task'), ('idea', 'Idea'), ('goal', 'Goal'), ('meeting', 'Meeting'), ('learning', 'Learning')], default='task', max_length=20)),
                ('status', models.CharField(choices=[('not_started', 'Not Started'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('on_hold', 'On Hold'), ('cancelled', 'Cancelled')], default='not_started', max_length=20)),
                ('due_date', models.DateField(blank=True, help_text='Task due date (optional)', null=True, validators=[tasks.models.validate_min_due_date])),
                ('is_repeating', models.BooleanField(default=False)),
                ('repeat_interval', models.CharField(blank=True, choices=[('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly')], max_length=10, null=True)),
                ('link', models.CharField(blank=True, default='', max_length=2048, validators=[tasks.models.validate_link])),
                ('priority_ratings', models.JSONField(blank=True, default=dict, help_text='Category id -> rating (0-5)', validators=[tasks.models.validate_rating_map])),
                ('priority_score', models.FloatField(default=0, editable=False)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('owner', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-priority_score', '-created_at'],
                'indexes': [
                    models.Index(fields=['owner', 'status'], name='task_owner_status_idx'),
                    models.Index(fields=['owner', 'due_date'], name='task_owner_due_idx'),
                    models.Index(fields=['owner', 'project'], name='task_owner_project_idx'),
                    models.Index(fields=['owner', '-priority_score'], name='task_owner_score_idx'),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name='category',
            constraint=models.UniqueConstraint(fields=('owner', 'slug'), name='unique_category_slug_per_owner'),
        ),
        migrations.AddConstraint(
            model_name='category',
            constraint=models.UniqueConstraint(condition=models.Q(('owner__isnull', True)), fields=('slug',), name='unique_global_category_slug'),
        ),
    ]
