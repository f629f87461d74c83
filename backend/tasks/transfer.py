"""
Import, export, backup and migration of task data.

This module moves data between the canonical ``Category``/``Task`` models
and external shapes: versioned JSON exports and backups, CSV, and the
legacy browser-local format (camelCase keys, Hebrew type and status labels,
JSON-encoded strings). Every category write goes through the
``CategoryRegistry`` so imports cannot break the weight invariant, and
imported scores are discarded and recomputed.

Per-item failures are collected into the result instead of aborting the
whole import.
"""

import csv
import json
import logging
from datetime import date, datetime, timezone as dt_timezone
from io import StringIO
from typing import Dict, List, Mapping, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from . import scoring
from .errors import InvalidImport, PriorityError
from .models import Category, Task, TaskStatus, TaskType
from .registry import CategoryRegistry
from .serializers import CategorySerializer, TaskSerializer


logger = logging.getLogger(__name__)

EXPORT_VERSION = '1.0'

# Labels used by the legacy browser-local store
LEGACY_TASK_TYPES = {
    'משימה': TaskType.TASK,
    'רעיון': TaskType.IDEA,
    'מטרה': TaskType.GOAL,
    'פגישה': TaskType.MEETING,
    'למידה': TaskType.LEARNING,
}

LEGACY_TASK_STATUSES = {
    'לא התחלתי': TaskStatus.NOT_STARTED,
    'בתהליך': TaskStatus.IN_PROGRESS,
    'הושלם': TaskStatus.COMPLETED,
    'בהמתנה': TaskStatus.ON_HOLD,
    'בוטל': TaskStatus.CANCELLED,
}

CSV_HEADERS = [
    'Title', 'Project', 'Goal', 'Update', 'Type', 'Status',
    'Due Date', 'Priority Score', 'Created At', 'Completed At', 'Link'
]


# ==================== Normalization ====================

def _pick(raw: Mapping, *keys, default=None):
    """Return the first present key, so snake_case and camelCase both work."""
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _parse_due_date(value) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value)[:10])
    if parsed is None:
        raise InvalidImport(f"Invalid due date: {value!r}")
    return parsed


def _parse_timestamp(value) -> Optional[datetime]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parse_datetime(str(value).replace('Z', '+00:00'))
        if parsed is None:
            raise InvalidImport(f"Invalid timestamp: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _load_json(value, what: str):
    """Browser storage keeps nested collections as JSON strings."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            raise InvalidImport(f"Invalid {what} format")
    return value


def normalize_task_type(value) -> str:
    if value in (None, ''):
        return TaskType.TASK
    return LEGACY_TASK_TYPES.get(value, value)


def normalize_task_status(value) -> str:
    if value in (None, ''):
        return TaskStatus.NOT_STARTED
    return LEGACY_TASK_STATUSES.get(value, value)


def normalize_category(raw: Mapping) -> Dict:
    """Map an external category record to registry input."""
    if not isinstance(raw, Mapping):
        raise InvalidImport("Category records must be objects")
    return {
        'id': _pick(raw, 'id', 'slug'),
        'display_name': _pick(raw, 'display_name', 'displayName', 'english'),
        'secondary_name': _pick(raw, 'secondary_name', 'secondaryName', 'hebrew', default=''),
        'weight': _pick(raw, 'weight', default=0),
        'color': _pick(raw, 'color', default='#000000'),
        'is_default': bool(_pick(raw, 'is_default', 'isDefault', default=False)),
    }


def normalize_task(raw: Mapping, owner: Optional[str] = None) -> Dict:
    """
    Map an external task record to ``Task`` field values.

    Any stored score in the record is ignored; it is recomputed on save.
    """
    if not isinstance(raw, Mapping):
        raise InvalidImport("Task records must be objects")
    is_repeating = bool(_pick(raw, 'is_repeating', 'isRepeating', default=False))
    return {
        'title': str(_pick(raw, 'title', default='')).strip(),
        'project': _pick(raw, 'project', default='') or '',
        'goal': _pick(raw, 'goal', default='') or '',
        'update': _pick(raw, 'update', 'notes', default='') or '',
        'type': normalize_task_type(_pick(raw, 'type')),
        'status': normalize_task_status(_pick(raw, 'status')),
        'due_date': _parse_due_date(_pick(raw, 'due_date', 'dueDate')),
        'is_repeating': is_repeating,
        'repeat_interval': _pick(raw, 'repeat_interval', 'repeatInterval') if is_repeating else None,
        'link': _pick(raw, 'link', default='') or '',
        'priority_ratings': scoring.validate_ratings(
            _pick(raw, 'priority_ratings', 'priorityRatings', default={})
        ),
        'completed_at': _parse_timestamp(_pick(raw, 'completed_at', 'completedAt')),
        'owner': owner,
    }


def _error_message(exc: Exception) -> str:
    if isinstance(exc, PriorityError):
        return exc.message
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, 'message_dict'):
            return '; '.join(
                f"{field}: {' '.join(messages)}"
                for field, messages in exc.message_dict.items()
            )
        return ' '.join(exc.messages)
    return str(exc)


def _save_task(fields: Dict, instance: Optional[Task] = None) -> Task:
    task = instance or Task()
    for attr, value in fields.items():
        setattr(task, attr, value)
    task.full_clean(exclude=['priority_score'])
    task.save()
    return task


# ==================== Export ====================

def _scope_querysets(owner: Optional[str]):
    return (
        Task.objects.for_owner(owner).order_by('-priority_score', '-created_at'),
        Category.objects.for_owner(owner).order_by('-is_default', 'slug'),
    )


def export_data(owner: Optional[str] = None, now: Optional[datetime] = None) -> Dict:
    """Versioned JSON export of the owner's tasks and categories."""
    now = now or timezone.now()
    tasks, categories = _scope_querysets(owner)
    context = {'now': now}
    task_data = TaskSerializer(tasks, many=True, context=context).data
    category_data = CategorySerializer(categories, many=True).data

    return {
        'version': EXPORT_VERSION,
        'export_date': now.isoformat(),
        'owner': owner,
        'data': {
            'tasks': task_data,
            'categories': category_data,
        },
        'meta': {
            'task_count': len(task_data),
            'category_count': len(category_data),
            'default_categories_included': any(c.is_default for c in categories),
        },
    }


def export_csv(tasks) -> str:
    """Render tasks as CSV text, one row per task."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)

    for task in tasks:
        writer.writerow([
            task.title,
            task.project,
            task.goal,
            task.update,
            task.type,
            task.status,
            task.due_date.isoformat() if task.due_date else '',
            task.priority_score,
            task.created_at.isoformat() if task.created_at else '',
            task.completed_at.isoformat() if task.completed_at else '',
            task.link,
        ])

    return output.getvalue()


def _status_statistics(tasks) -> Dict:
    overview = tasks.stats()['overview']
    return {
        'total': overview['total'],
        'completed': overview['completed'],
        'in_progress': overview['in_progress'],
    }


def create_backup(owner: Optional[str] = None, now: Optional[datetime] = None) -> Dict:
    """Full backup: the export document plus status statistics."""
    now = now or timezone.now()
    export = export_data(owner, now)
    statistics = _status_statistics(Task.objects.for_owner(owner))
    completion_rate = (
        round(statistics['completed'] / statistics['total'] * 100, 1)
        if statistics['total'] else 0
    )

    return {
        'version': EXPORT_VERSION,
        'backup_date': now.isoformat(),
        'owner': owner,
        'statistics': statistics,
        'data': export['data'],
        'meta': {
            'task_count': export['meta']['task_count'],
            'category_count': export['meta']['category_count'],
            'completion_rate': completion_rate,
        },
    }


# ==================== Import ====================

def _new_results() -> Dict:
    return {'imported': 0, 'skipped': 0, 'errors': []}


def _import_categories(
    records: List,
    owner: Optional[str],
    overwrite_existing: bool,
    results: Dict
) -> None:
    registry = CategoryRegistry(owner)
    for raw in records:
        label = raw.get('id', 'unknown') if isinstance(raw, Mapping) else 'unknown'
        try:
            record = normalize_category(raw)
            if owner is not None:
                record['is_default'] = False
            if record['is_default'] and not overwrite_existing:
                results['skipped'] += 1
                continue

            existing = Category.objects.for_owner(owner).filter(slug=record['id']).first()
            if existing is None:
                registry.create(record)
                results['imported'] += 1
            elif overwrite_existing:
                patch = {k: v for k, v in record.items() if k not in ('id', 'is_default')}
                CategoryRegistry(existing.owner).update(existing.slug, patch)
                results['imported'] += 1
            else:
                results['skipped'] += 1
        except (PriorityError, DjangoValidationError) as exc:
            logger.warning("Skipping category %s: %s", label, _error_message(exc))
            results['errors'].append({'category': label, 'error': _error_message(exc)})


def _import_tasks(
    records: List,
    owner: Optional[str],
    overwrite_existing: bool,
    results: Dict
) -> None:
    for raw in records:
        label = raw.get('title', 'unknown') if isinstance(raw, Mapping) else 'unknown'
        try:
            fields = normalize_task(raw, owner)
            existing = Task.objects.for_owner(owner).filter(
                title=fields['title'], project=fields['project']
            ).first()

            if existing is None:
                with transaction.atomic():
                    _save_task(fields)
                results['imported'] += 1
            elif overwrite_existing:
                with transaction.atomic():
                    _save_task(fields, instance=existing)
                results['imported'] += 1
            else:
                results['skipped'] += 1
        except (PriorityError, DjangoValidationError) as exc:
            logger.warning("Skipping task %s: %s", label, _error_message(exc))
            results['errors'].append({'task': label, 'error': _error_message(exc)})


def _summary(results: Dict) -> Dict:
    return {
        'total_imported': sum(r['imported'] for r in results.values()),
        'total_skipped': sum(r.get('skipped', 0) for r in results.values()),
        'total_errors': sum(len(r['errors']) for r in results.values()),
    }


def import_data(
    data: Mapping,
    owner: Optional[str] = None,
    overwrite_existing: bool = False,
    import_tasks: bool = True,
    import_categories: bool = True
) -> Dict:
    """
    Import tasks and categories from an export document's ``data`` section.

    Categories are imported first so the tasks that rate them score
    correctly. Default categories are skipped unless overwriting; existing
    tasks (same title and project) are skipped unless overwriting.
    """
    if not isinstance(data, Mapping):
        raise InvalidImport("Import data is required")

    results = {'tasks': _new_results(), 'categories': _new_results()}

    if import_categories and data.get('categories'):
        _import_categories(
            _load_json(data['categories'], 'categories'),
            owner, overwrite_existing, results['categories']
        )
    if import_tasks and data.get('tasks'):
        _import_tasks(
            _load_json(data['tasks'], 'tasks'),
            owner, overwrite_existing, results['tasks']
        )

    summary = _summary(results)
    logger.info(
        "Import finished for owner=%s: %d imported, %d skipped, %d errors",
        owner, summary['total_imported'], summary['total_skipped'], summary['total_errors']
    )
    return {'results': results, 'summary': summary}


def restore_backup(
    backup: Mapping,
    owner: Optional[str] = None,
    clear_existing: bool = False
) -> Dict:
    """
    Restore a backup document.

    With ``clear_existing`` the owner's tasks and non-default categories are
    removed first. Categories already present are left alone; every task in
    the backup is created.
    """
    if not isinstance(backup, Mapping) or not isinstance(backup.get('data'), Mapping):
        raise InvalidImport("Valid backup data is required")

    if clear_existing:
        with transaction.atomic():
            Task.objects.for_owner(owner).delete()
            Category.objects.for_owner(owner).filter(is_default=False).delete()
        logger.info("Cleared existing data for owner=%s before restore", owner)

    results = {'tasks': _new_results(), 'categories': _new_results()}
    _import_categories(
        backup['data'].get('categories') or [], owner, False, results['categories']
    )
    for raw in backup['data'].get('tasks') or []:
        label = raw.get('title', 'unknown') if isinstance(raw, Mapping) else 'unknown'
        try:
            with transaction.atomic():
                _save_task(normalize_task(raw, owner))
            results['tasks']['imported'] += 1
        except (PriorityError, DjangoValidationError) as exc:
            logger.warning("Skipping task %s during restore: %s", label, _error_message(exc))
            results['tasks']['errors'].append({'task': label, 'error': _error_message(exc)})

    meta = backup.get('meta') or {}
    return {
        'restored': {
            'tasks': results['tasks']['imported'],
            'categories': results['categories']['imported'],
        },
        'results': results,
        'original_backup': {
            'date': _pick(backup, 'backup_date', 'backupDate'),
            'version': backup.get('version'),
            'task_count': _pick(meta, 'task_count', 'taskCount', default=0),
            'category_count': _pick(meta, 'category_count', 'categoryCount', default=0),
        },
    }


def migrate_local_storage(payload, owner: Optional[str] = None) -> Dict:
    """
    Import the legacy browser-local store.

    ``payload`` is the storage snapshot (an object or its JSON text) with
    ``priorityCategories``, ``tasks`` and ``userProgress`` entries, each of
    which may itself be JSON text. Existing categories are kept; every task
    is created.
    """
    if payload in (None, ''):
        raise InvalidImport("localStorage data is required")
    parsed = _load_json(payload, 'localStorage data')
    if not isinstance(parsed, Mapping):
        raise InvalidImport("Invalid localStorage data format")

    results = {
        'tasks': {'imported': 0, 'errors': []},
        'categories': {'imported': 0, 'skipped': 0, 'errors': []},
    }

    if parsed.get('priorityCategories'):
        try:
            categories = _load_json(parsed['priorityCategories'], 'categories')
        except InvalidImport as exc:
            results['categories']['errors'].append({'category': 'general', 'error': exc.message})
        else:
            _import_categories(categories, owner, False, results['categories'])

    if parsed.get('tasks'):
        try:
            tasks = _load_json(parsed['tasks'], 'tasks')
        except InvalidImport as exc:
            results['tasks']['errors'].append({'task': 'general', 'error': exc.message})
        else:
            for raw in tasks:
                label = raw.get('title', 'unknown') if isinstance(raw, Mapping) else 'unknown'
                try:
                    with transaction.atomic():
                        _save_task(normalize_task(raw, owner))
                    results['tasks']['imported'] += 1
                except (PriorityError, DjangoValidationError) as exc:
                    results['tasks']['errors'].append({'task': label, 'error': _error_message(exc)})

    user_progress = None
    progress = parsed.get('userProgress')
    if isinstance(progress, Mapping):
        user_progress = {
            'points': progress.get('points', 0),
            'level': progress.get('level', 1),
            'achievements': progress.get('achievements', []),
        }

    summary = {
        'total_imported': results['tasks']['imported'] + results['categories']['imported'],
        'total_errors': len(results['tasks']['errors']) + len(results['categories']['errors']),
        'user_progress_migrated': user_progress is not None,
    }
    logger.info(
        "localStorage migration for owner=%s: %d imported, %d errors",
        owner, summary['total_imported'], summary['total_errors']
    )
    return {'results': results, 'user_progress': user_progress, 'summary': summary}


# ==================== Integrity ====================

def validate_data(owner: Optional[str] = None) -> Dict:
    """
    Read-only integrity report for an owner scope.

    Lists tasks missing ratings for scope categories, stored ratings outside
    [0, 5], a category total over 100 and duplicate category ids. Nothing is
    modified.
    """
    tasks, categories = _scope_querysets(owner)
    categories = list(categories)
    category_ids = [c.slug for c in categories]
    weight_check = scoring.validate_total(categories)

    task_issues = []
    for task in tasks:
        ratings = task.priority_ratings or {}
        missing = [slug for slug in category_ids if slug not in ratings]
        if missing:
            task_issues.append({
                'task_id': task.pk,
                'title': task.title,
                'issue': 'Missing priority ratings',
                'details': missing,
            })
        for category_id, rating in ratings.items():
            try:
                scoring.validate_rating(category_id, rating)
            except PriorityError:
                task_issues.append({
                    'task_id': task.pk,
                    'title': task.title,
                    'issue': 'Invalid rating value',
                    'details': f"{category_id}: {rating}",
                })

    category_issues = []
    if not weight_check.ok:
        category_issues.append({
            'issue': 'Total weight exceeds 100%',
            'details': f"Current total: {weight_check.total_weight:g}%",
        })
    duplicates = sorted({slug for slug in category_ids if category_ids.count(slug) > 1})
    if duplicates:
        category_issues.append({'issue': 'Duplicate category IDs', 'details': duplicates})

    is_valid = not task_issues and not category_issues
    return {
        'tasks': {'total': len(tasks), 'issues': task_issues},
        'categories': {
            'total': len(categories),
            'total_weight': weight_check.total_weight,
            'issues': category_issues,
        },
        'overall': {
            'is_valid': is_valid,
            'issues': [] if is_valid else [
                'Data integrity issues found. See detailed issues above.'
            ],
        },
    }
