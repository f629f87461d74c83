"""
API Views for the Priority Task Manager.

This module provides the REST API endpoints for categories, tasks and data
transfer. Typed failures raised by the registry, the scoring engine and the
transfer layer are turned into JSON responses by
``priority_exception_handler``, which is installed as the DRF exception
handler in settings.
"""

import logging
from typing import Mapping

from django.db import transaction
from django.db.models import F
from django.http import HttpResponse
from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import exception_handler

from . import transfer
from .errors import ErrorCode, InvalidImport, NotFound, PriorityError
from .models import Task, TaskStatus
from .registry import CategoryRegistry
from .scoring import DEFAULT_CATEGORIES, URGENCY_BONUS_TIERS, validate_total
from .serializers import (
    BulkWeightsSerializer,
    CategoryInputSerializer,
    CategorySerializer,
    CategoryWeightSerializer,
    TaskBulkSerializer,
    TaskDetailSerializer,
    TaskListQuerySerializer,
    TaskPrioritySerializer,
    TaskSerializer,
    TaskStatusSerializer,
)


logger = logging.getLogger(__name__)


# ============================================
# RATE LIMITING
# ============================================

class DataTransferThrottle(AnonRateThrottle):
    """Rate limit for export/import endpoints (``data_transfer`` rate in settings)."""
    scope = 'data_transfer'


# ============================================
# HELPERS
# ============================================

OWNER_PARAMETER = OpenApiParameter(
    'owner', OpenApiTypes.STR, description='Owner scope; omit for the shared scope'
)

TASK_SORTS = {
    'priority': ['-priority_score', '-created_at'],
    'date': ['-created_at'],
    'due': [F('due_date').asc(nulls_last=True), '-priority_score'],
    'title': ['title'],
    'status': ['status', '-priority_score'],
}


def priority_exception_handler(exc, context):
    """DRF exception handler that also understands ``PriorityError``."""
    if isinstance(exc, PriorityError):
        logger.info(
            "Rejected %s %s: %s",
            context['request'].method, context['request'].path, exc.message
        )
        return Response(exc.to_dict(), status=exc.http_status)
    return exception_handler(exc, context)


def _owner(request: Request):
    owner = request.query_params.get('owner')
    if owner is None and hasattr(request.data, 'get'):
        owner = request.data.get('owner')
    return owner or None


def _invalid_input(serializer, message: str = 'Invalid input data.') -> Response:
    return Response(
        {
            'success': False,
            'error_code': ErrorCode.ERR_VALIDATION.value,
            'errors': serializer.errors,
            'message': message
        },
        status=status.HTTP_400_BAD_REQUEST
    )


def _category_payload(categories) -> dict:
    check = validate_total(categories)
    return {
        'success': True,
        'categories': CategorySerializer(categories, many=True).data,
        'total_weight': check.total_weight,
        'is_valid_weight': check.ok,
    }


def _get_task(pk: int, owner) -> Task:
    task = Task.objects.for_owner(owner).filter(pk=pk).first()
    if task is None:
        raise NotFound('Task', pk)
    return task


def _flag(request: Request, name: str, default: bool = False) -> bool:
    value = request.query_params.get(name)
    if value is None:
        data = request.data if hasattr(request.data, 'get') else {}
        value = data.get(name, default)
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes')
    return bool(value)


def _transfer_body(request: Request):
    """Return the JSON object body and its ``options`` object."""
    body = request.data
    if not isinstance(body, Mapping):
        raise InvalidImport("Request body must be a JSON object")
    options = body.get('options') or {}
    if not isinstance(options, Mapping):
        raise InvalidImport("Options must be a JSON object")
    return body, options


# ============================================
# CATEGORY ENDPOINTS
# ============================================

@extend_schema(
    summary="List or create categories",
    description="""
    GET lists categories with their total weight. With `owner` the owner's
    scope is returned (defaults plus owned categories); otherwise only the
    defaults, or the whole shared scope when `defaults=false`.

    POST creates a category; rejected when the scope would exceed 100%.
    """,
    parameters=[
        OWNER_PARAMETER,
        OpenApiParameter('defaults', OpenApiTypes.BOOL, description='Defaults only (GET)'),
    ],
    request=CategoryInputSerializer,
    responses={200: OpenApiTypes.OBJECT, 201: CategorySerializer},
    tags=['Categories']
)
@api_view(['GET', 'POST'])
def category_collection(request: Request) -> Response:
    """
    GET  /api/categories/
    POST /api/categories/
    """
    owner = _owner(request)
    registry = CategoryRegistry(owner)

    if request.method == 'GET':
        if owner is None and _flag(request, 'defaults', default=True):
            categories = registry.list_defaults()
        else:
            categories = registry.list_for_owner()
        return Response(_category_payload(categories))

    serializer = CategoryInputSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Invalid category data.')

    category = registry.create(serializer.validated_data)
    logger.info("Created category %s (owner=%s, weight=%g)", category.slug, owner, category.weight)
    return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


@extend_schema(
    summary="Validate category weights",
    description="Report the scope's total weight without modifying anything.",
    parameters=[OWNER_PARAMETER],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Categories']
)
@api_view(['GET'])
def validate_weight(request: Request) -> Response:
    """
    GET /api/categories/validate-weight/
    """
    registry = CategoryRegistry(_owner(request))
    categories = registry.list_for_owner()
    check = registry.validate_scope()
    return Response({
        'success': True,
        'is_valid': check.ok,
        'total_weight': check.total_weight,
        'categories': [
            {'id': c.slug, 'display_name': c.display_name, 'weight': c.weight}
            for c in categories
        ]
    })


@extend_schema(
    summary="Get, update or delete a category",
    description="""
    PUT updates a category in place (partial payloads allowed). Default
    categories cannot lose their default status. DELETE is refused for
    default categories and for categories still rated by tasks.
    """,
    parameters=[OWNER_PARAMETER],
    request=CategoryInputSerializer,
    responses={200: CategorySerializer},
    tags=['Categories']
)
@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
def category_detail(request: Request, category_id: str) -> Response:
    """
    GET    /api/categories/<id>/
    PUT    /api/categories/<id>/
    DELETE /api/categories/<id>/
    """
    owner = _owner(request)
    registry = CategoryRegistry(owner)

    if request.method == 'GET':
        return Response(CategorySerializer(registry.get(category_id)).data)

    if request.method == 'DELETE':
        category = registry.delete(category_id)
        logger.info("Deleted category %s (owner=%s)", category.slug, owner)
        return Response({
            'success': True,
            'message': 'Category deleted successfully',
            'category': {'id': category.slug, 'display_name': category.display_name}
        })

    serializer = CategoryInputSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Invalid category data.')

    # Only fields the client sent; partial validation still fills defaults
    patch = {k: v for k, v in serializer.validated_data.items() if k in request.data}
    category = registry.update(category_id, patch)
    return Response(CategorySerializer(category).data)


@extend_schema(
    summary="Update a category's weight",
    parameters=[OWNER_PARAMETER],
    request=CategoryWeightSerializer,
    responses={200: CategorySerializer},
    tags=['Categories']
)
@api_view(['PATCH'])
def category_weight(request: Request, category_id: str) -> Response:
    """
    PATCH /api/categories/<id>/weight/
    """
    serializer = CategoryWeightSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Weight must be a number between 0 and 100')

    category = CategoryRegistry(_owner(request)).set_weight(
        category_id, serializer.validated_data['weight']
    )
    return Response(CategorySerializer(category).data)


@extend_schema(
    summary="Reset default categories",
    description="Delete all default categories and re-seed the canonical set.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Categories']
)
@api_view(['POST'])
def reset_defaults(request: Request) -> Response:
    """
    POST /api/categories/reset-defaults/
    """
    categories = CategoryRegistry().reset_defaults()
    logger.info("Default categories reset (%d seeded)", len(categories))
    return Response({
        'success': True,
        'message': 'Default categories reset successfully',
        'categories': CategorySerializer(categories, many=True).data
    })


@extend_schema(
    summary="Bulk update category weights",
    description="""
    Set several weights at once. The provided weights must total at most
    100 and the resulting scope must stay within 100; otherwise nothing is
    changed. Unknown ids are reported in `not_found`.
    """,
    parameters=[OWNER_PARAMETER],
    request=BulkWeightsSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Categories']
)
@api_view(['POST'])
def bulk_update_weights(request: Request) -> Response:
    """
    POST /api/categories/bulk-update-weights/

    Request Body:
    {
        "weights": {"impact": 30, "urgency": 15}
    }
    """
    serializer = BulkWeightsSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Weights object is required')

    result = CategoryRegistry(_owner(request)).bulk_set_weights(
        serializer.validated_data['weights']
    )
    return Response({
        'success': True,
        'message': f"{len(result['categories'])} categories updated successfully",
        'categories': CategorySerializer(result['categories'], many=True).data,
        'not_found': result['not_found'],
        'total_weight': result['total_weight']
    })


# ============================================
# TASK ENDPOINTS
# ============================================

@extend_schema(
    summary="List or create tasks",
    description="""
    GET returns the owner's tasks, filtered and sorted (default: priority
    score descending, newest first) with pagination.

    POST creates a task; its priority score is computed on save.
    """,
    parameters=[OWNER_PARAMETER, TaskListQuerySerializer],
    request=TaskSerializer,
    responses={200: OpenApiTypes.OBJECT, 201: TaskDetailSerializer},
    tags=['Tasks']
)
@api_view(['GET', 'POST'])
def task_collection(request: Request) -> Response:
    """
    GET  /api/tasks/?status=&project=&type=&overdue=&completed=&page=&limit=&sort=
    POST /api/tasks/
    """
    owner = _owner(request)
    now = timezone.now()

    if request.method == 'POST':
        serializer = TaskDetailSerializer(
            data=request.data, context={'owner': owner, 'now': now}
        )
        if not serializer.is_valid():
            return _invalid_input(serializer, 'Invalid task data.')
        task = serializer.save()
        logger.info("Created task %s (owner=%s, score=%s)", task.pk, owner, task.priority_score)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    # A plain dict, so missing booleans fall back to their defaults
    query = TaskListQuerySerializer(data=request.query_params.dict())
    if not query.is_valid():
        return _invalid_input(query, 'Invalid query parameters.')
    options = query.validated_data

    tasks = Task.objects.for_owner(owner)
    if options.get('status'):
        tasks = tasks.filter(status=options['status'])
    if options.get('project'):
        tasks = tasks.filter(project__icontains=options['project'])
    if options.get('type'):
        tasks = tasks.filter(type=options['type'])
    if options['overdue']:
        tasks = tasks.overdue(now)
    if options['completed'] is True:
        tasks = tasks.filter(status=TaskStatus.COMPLETED)
    elif options['completed'] is False:
        tasks = tasks.open()

    tasks = tasks.order_by(*TASK_SORTS[options['sort']])

    total = tasks.count()
    page, limit = options['page'], options['limit']
    offset = (page - 1) * limit
    page_tasks = tasks[offset:offset + limit]

    return Response({
        'success': True,
        'tasks': TaskSerializer(page_tasks, many=True, context={'now': now}).data,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit
        }
    })


@extend_schema(
    summary="Task statistics",
    description="Counts by status, overdue count, average score and top projects.",
    parameters=[OWNER_PARAMETER],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET'])
def task_stats(request: Request) -> Response:
    """
    GET /api/tasks/stats/
    """
    stats = Task.objects.for_owner(_owner(request)).stats(timezone.now())
    return Response({'success': True, **stats})


@extend_schema(
    summary="Search tasks",
    description="Case-insensitive search over title, project, goal and update.",
    parameters=[
        OWNER_PARAMETER,
        OpenApiParameter('limit', OpenApiTypes.INT, description='Maximum results (default 20)'),
    ],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['GET'])
def task_search(request: Request, query: str) -> Response:
    """
    GET /api/tasks/search/<query>/
    """
    query = query.strip()
    if len(query) < 2:
        return Response(
            {
                'success': False,
                'error_code': ErrorCode.ERR_VALIDATION.value,
                'message': 'Search query must be at least 2 characters'
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        limit = max(1, int(request.query_params.get('limit', 20)))
    except ValueError:
        limit = 20

    results = Task.objects.for_owner(_owner(request)).search(query)[:limit]
    data = TaskSerializer(results, many=True, context={'now': timezone.now()}).data
    return Response({
        'success': True,
        'query': query,
        'results': data,
        'count': len(data)
    })


@extend_schema(
    summary="Get, update or delete a task",
    description="""
    GET includes the score breakdown. PUT/PATCH update the task; the score
    is recomputed and `completed_at` follows the status.
    """,
    parameters=[OWNER_PARAMETER],
    request=TaskSerializer,
    responses={200: TaskDetailSerializer},
    tags=['Tasks']
)
@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
def task_detail(request: Request, pk: int) -> Response:
    """
    GET    /api/tasks/<pk>/
    PUT    /api/tasks/<pk>/
    PATCH  /api/tasks/<pk>/
    DELETE /api/tasks/<pk>/
    """
    owner = _owner(request)
    task = _get_task(pk, owner)
    context = {'owner': owner, 'now': timezone.now()}

    if request.method == 'GET':
        return Response(TaskDetailSerializer(task, context=context).data)

    if request.method == 'DELETE':
        data = TaskSerializer(task, context=context).data
        task.delete()
        logger.info("Deleted task %s (owner=%s)", pk, owner)
        return Response({
            'success': True,
            'message': 'Task deleted successfully',
            'task': data
        })

    serializer = TaskDetailSerializer(
        task, data=request.data, partial=request.method == 'PATCH', context=context
    )
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Invalid task data.')
    serializer.save()
    return Response(serializer.data)


@extend_schema(
    summary="Update a task's status",
    parameters=[OWNER_PARAMETER],
    request=TaskStatusSerializer,
    responses={200: TaskDetailSerializer},
    tags=['Tasks']
)
@api_view(['PATCH'])
def task_status(request: Request, pk: int) -> Response:
    """
    PATCH /api/tasks/<pk>/status/
    """
    owner = _owner(request)
    task = _get_task(pk, owner)
    serializer = TaskStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Invalid status')

    now = timezone.now()
    task.apply_status(serializer.validated_data['status'], now)
    task.save()
    return Response(TaskDetailSerializer(task, context={'now': now}).data)


@extend_schema(
    summary="Update a task's priority ratings",
    description="Replace the task's ratings (each 0-5) and recompute its score.",
    parameters=[OWNER_PARAMETER],
    request=TaskPrioritySerializer,
    responses={200: TaskDetailSerializer},
    tags=['Tasks']
)
@api_view(['PATCH'])
def task_priority(request: Request, pk: int) -> Response:
    """
    PATCH /api/tasks/<pk>/priority/

    Request Body:
    {
        "priority_ratings": {"impact": 4, "urgency": 2}
    }
    """
    owner = _owner(request)
    task = _get_task(pk, owner)
    serializer = TaskPrioritySerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Priority ratings must be integers between 0 and 5')

    task.priority_ratings = serializer.validated_data['priority_ratings']
    task.save()
    return Response(TaskDetailSerializer(task, context={'now': timezone.now()}).data)


@extend_schema(
    summary="Bulk task operations",
    description="Delete, update status or update project for several tasks.",
    parameters=[OWNER_PARAMETER],
    request=TaskBulkSerializer,
    responses={200: OpenApiTypes.OBJECT},
    tags=['Tasks']
)
@api_view(['POST'])
def task_bulk(request: Request) -> Response:
    """
    POST /api/tasks/bulk/

    Request Body:
    {
        "operation": "delete" | "updateStatus" | "updateProject",
        "task_ids": [1, 2, 3],
        "data": {"status": "completed"} | {"project": "Home"}
    }
    """
    serializer = TaskBulkSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_input(serializer, 'Operation and task_ids are required')

    operation = serializer.validated_data['operation']
    data = serializer.validated_data['data']
    tasks = Task.objects.for_owner(_owner(request)).filter(
        pk__in=serializer.validated_data['task_ids']
    )

    if operation == 'delete':
        deleted_count = tasks.count()
        tasks.delete()
        logger.info("Bulk deleted %d task(s)", deleted_count)
        return Response({
            'success': True,
            'message': f"{deleted_count} tasks deleted successfully",
            'deleted_count': deleted_count
        })

    if operation == 'updateStatus':
        now = timezone.now()
        with transaction.atomic():
            modified = list(tasks)
            for task in modified:
                task.apply_status(data['status'], now)
                task.save()
        modified_count = len(modified)
    else:
        modified_count = tasks.update(project=data['project'].strip())

    return Response({
        'success': True,
        'message': f"{modified_count} tasks updated successfully",
        'modified_count': modified_count
    })


# ============================================
# DATA TRANSFER ENDPOINTS
# ============================================

@extend_schema(
    summary="Export data as JSON",
    description="Export the owner's tasks and categories as a versioned JSON document.",
    parameters=[OWNER_PARAMETER],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Data']
)
@api_view(['GET'])
@throttle_classes([DataTransferThrottle])
def export_json(request: Request) -> Response:
    """
    GET /api/data/export/
    """
    response = Response(transfer.export_data(_owner(request)))
    response['Content-Disposition'] = 'attachment; filename="priority_tasks_export.json"'
    return response


@extend_schema(
    summary="Export tasks as CSV",
    parameters=[OWNER_PARAMETER],
    responses={200: OpenApiTypes.STR},
    tags=['Data']
)
@api_view(['GET'])
@throttle_classes([DataTransferThrottle])
def export_csv(request: Request) -> HttpResponse:
    """
    GET /api/data/export/csv/
    """
    tasks = Task.objects.for_owner(_owner(request)).by_priority()
    response = HttpResponse(transfer.export_csv(tasks), content_type='text/csv')
    response['Content-Disposition'] = 'attachment; filename="tasks_export.csv"'
    return response


@extend_schema(
    summary="Import data",
    description="""
    Import tasks and categories from an export document's `data` section.
    Per-item failures are reported in `results` and do not abort the import.
    """,
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'data': {'type': 'object'},
                'options': {
                    'type': 'object',
                    'properties': {
                        'overwrite_existing': {'type': 'boolean'},
                        'import_tasks': {'type': 'boolean'},
                        'import_categories': {'type': 'boolean'},
                        'owner': {'type': 'string'},
                    }
                },
            },
            'required': ['data']
        }
    },
    responses={200: OpenApiTypes.OBJECT},
    tags=['Data']
)
@api_view(['POST'])
@throttle_classes([DataTransferThrottle])
def import_data(request: Request) -> Response:
    """
    POST /api/data/import/
    """
    body, options = _transfer_body(request)
    result = transfer.import_data(
        body.get('data'),
        owner=options.get('owner') or _owner(request),
        overwrite_existing=bool(options.get('overwrite_existing', False)),
        import_tasks=bool(options.get('import_tasks', True)),
        import_categories=bool(options.get('import_categories', True)),
    )
    return Response({'success': True, 'message': 'Import completed', **result})


@extend_schema(
    summary="Create a backup",
    parameters=[OWNER_PARAMETER],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Data']
)
@api_view(['GET'])
@throttle_classes([DataTransferThrottle])
def backup(request: Request) -> Response:
    """
    GET /api/data/backup/
    """
    now = timezone.now()
    response = Response(transfer.create_backup(_owner(request), now))
    response['Content-Disposition'] = (
        f'attachment; filename="priority_tasks_backup_{now.date().isoformat()}.json"'
    )
    return response


@extend_schema(
    summary="Restore from backup",
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'backup': {'type': 'object'},
                'options': {
                    'type': 'object',
                    'properties': {
                        'clear_existing': {'type': 'boolean'},
                        'owner': {'type': 'string'},
                    }
                },
            },
            'required': ['backup']
        }
    },
    responses={200: OpenApiTypes.OBJECT},
    tags=['Data']
)
@api_view(['POST'])
@throttle_classes([DataTransferThrottle])
def restore(request: Request) -> Response:
    """
    POST /api/data/restore/
    """
    body, options = _transfer_body(request)
    result = transfer.restore_backup(
        body.get('backup'),
        owner=options.get('owner') or _owner(request),
        clear_existing=bool(options.get('clear_existing', False)),
    )
    return Response({'success': True, 'message': 'Restore completed successfully', **result})


@extend_schema(
    summary="Migrate browser-local data",
    description="Import a snapshot of the legacy browser-local store.",
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'local_storage_data': {'type': 'object'},
                'owner': {'type': 'string'},
            },
            'required': ['local_storage_data']
        }
    },
    responses={200: OpenApiTypes.OBJECT},
    tags=['Data']
)
@api_view(['POST'])
@throttle_classes([DataTransferThrottle])
def migrate_local_storage(request: Request) -> Response:
    """
    POST /api/data/migrate-localstorage/
    """
    body, _ = _transfer_body(request)
    payload = body.get('local_storage_data', body.get('localStorageData'))
    result = transfer.migrate_local_storage(payload, owner=_owner(request))
    return Response({'success': True, 'message': 'localStorage migration completed', **result})


@extend_schema(
    summary="Validate data integrity",
    description="Read-only report of rating and category-weight problems.",
    parameters=[OWNER_PARAMETER],
    responses={200: OpenApiTypes.OBJECT},
    tags=['Data']
)
@api_view(['GET'])
def validate_data(request: Request) -> Response:
    """
    GET /api/data/validate/
    """
    return Response({'success': True, **transfer.validate_data(_owner(request))})


# ============================================
# INFO
# ============================================

@extend_schema(
    summary="API information",
    description="Get API information and available endpoints.",
    responses={200: OpenApiTypes.OBJECT},
    tags=['Info']
)
@api_view(['GET'])
def api_info(request: Request) -> Response:
    """
    Return API information and available endpoints.

    GET /api/
    """
    return Response({
        'name': 'Priority Task Manager API',
        'version': '1.0.0',
        'documentation': '/api/docs/',
        'scoring': {
            'formula': 'sum(rating * weight) + urgency bonus, rounded to 0.1',
            'rating_range': [0, 5],
            'max_total_weight': 100,
            'urgency_bonus': [
                {'days_until_due_at_most': days, 'bonus': bonus}
                for days, bonus in URGENCY_BONUS_TIERS
            ],
            'default_categories': [c['id'] for c in DEFAULT_CATEGORIES],
        },
        'endpoints': {
            'GET|POST /api/categories/': 'List or create categories',
            'GET /api/categories/validate-weight/': 'Check total category weight',
            'GET|PUT|DELETE /api/categories/<id>/': 'Category detail',
            'PATCH /api/categories/<id>/weight/': 'Update one weight',
            'POST /api/categories/reset-defaults/': 'Re-seed default categories',
            'POST /api/categories/bulk-update-weights/': 'Update several weights',
            'GET|POST /api/tasks/': 'List or create tasks',
            'GET /api/tasks/stats/': 'Task statistics',
            'GET /api/tasks/search/<query>/': 'Search tasks',
            'GET|PUT|PATCH|DELETE /api/tasks/<id>/': 'Task detail',
            'PATCH /api/tasks/<id>/status/': 'Update status',
            'PATCH /api/tasks/<id>/priority/': 'Update priority ratings',
            'POST /api/tasks/bulk/': 'Bulk task operations',
            'GET /api/data/export/': 'Export JSON',
            'GET /api/data/export/csv/': 'Export CSV',
            'POST /api/data/import/': 'Import data',
            'GET /api/data/backup/': 'Create backup',
            'POST /api/data/restore/': 'Restore backup',
            'POST /api/data/migrate-localstorage/': 'Migrate browser-local data',
            'GET /api/data/validate/': 'Validate data integrity',
            'GET /api/docs/': 'Interactive API documentation',
            'GET /api/schema/': 'OpenAPI schema',
        },
        'error_codes': {
            code.value: code.name for code in ErrorCode
        }
    })
