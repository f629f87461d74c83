"""
Serializers for the Category and Task models.

This module handles validation of incoming API payloads and the JSON shape
of categories and tasks in responses. Category writes are validated here for
types and ranges, then handed to the ``CategoryRegistry`` which enforces the
weight invariant. Task writes go through ``TaskSerializer`` which keeps the
cached priority score and ``completed_at`` consistent via the model.
"""

from django.utils import timezone
from rest_framework import serializers

from . import scoring
from .errors import ValidationError as PriorityValidationError
from .models import Category, Task, TaskStatus


# ==================== Categories ====================

class CategoryInputSerializer(serializers.Serializer):
    """Validates category create/update payloads."""

    id = serializers.RegexField(
        scoring.CATEGORY_ID_PATTERN.pattern,
        max_length=50,
        error_messages={
            'invalid': 'Category ID can only contain letters, numbers, hyphens, and underscores'
        }
    )
    display_name = serializers.CharField(max_length=100)
    secondary_name = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=''
    )
    weight = serializers.FloatField(min_value=0, max_value=100)
    color = serializers.RegexField(
        scoring.HEX_COLOR_PATTERN.pattern,
        error_messages={'invalid': 'Color must be a valid hex color (e.g., #FF0000)'}
    )
    is_default = serializers.BooleanField(required=False, default=False)

    def validate_display_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Display name cannot be empty")
        return value.strip()


class CategoryWeightSerializer(serializers.Serializer):
    weight = serializers.FloatField(min_value=0, max_value=100)


class BulkWeightsSerializer(serializers.Serializer):
    weights = serializers.DictField(
        child=serializers.FloatField(min_value=0, max_value=100),
        allow_empty=False
    )


class CategorySerializer(serializers.ModelSerializer):
    """Category output; the slug is exposed as ``id``."""

    id = serializers.CharField(source='slug')

    class Meta:
        model = Category
        fields = [
            'id', 'display_name', 'secondary_name', 'weight', 'color',
            'is_default', 'owner', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


# ==================== Tasks ====================

class PriorityRatingsField(serializers.DictField):
    """Category id -> integer rating in [0, 5]."""

    child = serializers.IntegerField(min_value=0, max_value=5)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        try:
            return scoring.validate_ratings(value)
        except PriorityValidationError as exc:
            raise serializers.ValidationError(exc.message)


class TaskSerializer(serializers.ModelSerializer):
    """
    Task input and output.

    ``priority_score`` and ``completed_at`` are derived and read-only;
    ``is_overdue``, ``days_until_due`` and ``score_breakdown`` are computed
    per request.
    """

    priority_ratings = PriorityRatingsField(required=False)
    is_overdue = serializers.SerializerMethodField()
    days_until_due = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'project', 'goal', 'update', 'type', 'status',
            'due_date', 'is_repeating', 'repeat_interval', 'link',
            'priority_ratings', 'priority_score', 'completed_at', 'owner',
            'is_overdue', 'days_until_due', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'priority_score', 'completed_at', 'owner',
            'created_at', 'updated_at'
        ]

    def get_is_overdue(self, obj) -> bool:
        return obj.is_overdue(self.context.get('now'))

    def get_days_until_due(self, obj):
        return obj.days_until_due(self.context.get('now'))

    def validate_title(self, value):
        """Ensure title is not empty or just whitespace."""
        if not value or not value.strip():
            raise serializers.ValidationError("Title cannot be empty")
        return value.strip()

    def validate(self, attrs):
        is_repeating = attrs.get(
            'is_repeating', self.instance.is_repeating if self.instance else False
        )
        if not is_repeating:
            attrs['repeat_interval'] = None
        return attrs

    def create(self, validated_data):
        status = validated_data.pop('status', TaskStatus.NOT_STARTED)
        task = Task(owner=self.context.get('owner'), **validated_data)
        task.apply_status(status, self.context.get('now') or timezone.now())
        task.save()
        return task

    def update(self, instance, validated_data):
        status = validated_data.pop('status', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if status is not None:
            instance.apply_status(status, self.context.get('now') or timezone.now())
        instance.save()
        return instance


class TaskDetailSerializer(TaskSerializer):
    score_breakdown = serializers.SerializerMethodField()

    class Meta(TaskSerializer.Meta):
        fields = TaskSerializer.Meta.fields + ['score_breakdown']

    def get_score_breakdown(self, obj) -> dict:
        return obj.score_breakdown(now=self.context.get('now')).to_dict()


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatus.choices)


class TaskPrioritySerializer(serializers.Serializer):
    priority_ratings = PriorityRatingsField()


class TaskBulkSerializer(serializers.Serializer):
    """
    Serializer for bulk task operations.
    """

    operation = serializers.ChoiceField(
        choices=[
            ('delete', 'Delete'),
            ('updateStatus', 'Update Status'),
            ('updateProject', 'Update Project'),
        ]
    )
    task_ids = serializers.ListField(
        child=serializers.IntegerField(),
        min_length=1,
        error_messages={'min_length': 'At least one task id is required'}
    )
    data = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        operation = attrs['operation']
        data = attrs.get('data') or {}
        if operation == 'updateStatus':
            status = data.get('status')
            if status not in TaskStatus.values:
                raise serializers.ValidationError(
                    {'data': 'A valid status is required for update operation'}
                )
        if operation == 'updateProject':
            project = data.get('project')
            if not isinstance(project, str) or not project.strip():
                raise serializers.ValidationError(
                    {'data': 'Project is required for update operation'}
                )
            if len(project.strip()) > 200:
                raise serializers.ValidationError(
                    {'data': 'Project name cannot exceed 200 characters'}
                )
        return attrs


class TaskListQuerySerializer(serializers.Serializer):
    """Query-string options for the task list."""

    status = serializers.ChoiceField(choices=TaskStatus.choices, required=False)
    project = serializers.CharField(required=False)
    type = serializers.CharField(required=False)
    overdue = serializers.BooleanField(required=False, default=False)
    completed = serializers.BooleanField(required=False, allow_null=True, default=None)
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=500, required=False, default=50)
    sort = serializers.ChoiceField(
        choices=['priority', 'date', 'due', 'title', 'status'],
        required=False,
        default='priority'
    )
