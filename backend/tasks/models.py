"""
Models for the Priority Task Manager.

This module defines the weighted ``Category`` and the ``Task`` models.
A task's ``priority_score`` is a cache of the scoring engine's result and is
recomputed on every save; it is never edited directly.
"""

import logging
from datetime import date
from urllib.parse import urlsplit

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import (
    MaxValueValidator,
    MinValueValidator,
    RegexValidator,
    URLValidator,
)
from django.db import models
from django.db.models import Avg, Count, Q
from django.utils import timezone

from . import scoring
from .errors import ValidationError


logger = logging.getLogger(__name__)

MIN_DUE_DATE = date(2020, 1, 1)


# ==================== Validators ====================

def validate_rating_map(value):
    try:
        scoring.validate_ratings(value)
    except ValidationError as exc:
        raise DjangoValidationError(exc.message)


def validate_min_due_date(value):
    if value is not None and value < MIN_DUE_DATE:
        raise DjangoValidationError('Due date must be on or after January 1, 2020')


def validate_link(value):
    """Accept URLs with or without a scheme, like ``example.com/page``."""
    if not value:
        return
    candidate = value if urlsplit(value).scheme else f'http://{value}'
    try:
        URLValidator(schemes=['http', 'https'])(candidate)
    except DjangoValidationError:
        raise DjangoValidationError('Please enter a valid URL')


# ==================== Categories ====================

class CategoryQuerySet(models.QuerySet):

    def defaults(self):
        return self.filter(is_default=True)

    def for_owner(self, owner=None):
        """Global defaults plus the categories owned by ``owner``."""
        if owner is None:
            return self.filter(Q(is_default=True) | Q(owner__isnull=True))
        return self.filter(Q(is_default=True) | Q(owner=owner))


class Category(models.Model):
    """
    A weighted priority dimension tasks are rated on.

    Attributes:
        slug: Short stable id, unique within an owner scope
        display_name: Primary label
        secondary_name: Optional alternate-language label
        weight: Percentage contribution to the score (0-100)
        color: Display color as #RGB or #RRGGBB
        is_default: Shared global category; cannot be deleted or un-defaulted
        owner: Owning user reference; null for global categories
    """

    slug = models.CharField(
        max_length=50,
        validators=[RegexValidator(scoring.CATEGORY_ID_PATTERN)],
        help_text="Category id (letters, numbers, hyphens and underscores)"
    )
    display_name = models.CharField(max_length=100)
    secondary_name = models.CharField(max_length=100, blank=True, default='')
    weight = models.FloatField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Weight from 0 to 100; a scope may not total more than 100"
    )
    color = models.CharField(
        max_length=7,
        validators=[RegexValidator(scoring.HEX_COLOR_PATTERN)],
        help_text="Hex color, e.g. #FF6B6B"
    )
    is_default = models.BooleanField(default=False)
    owner = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CategoryQuerySet.as_manager()

    class Meta:
        ordering = ['-is_default', 'slug']
        verbose_name_plural = 'categories'
        constraints = [
            models.UniqueConstraint(
                fields=['owner', 'slug'],
                name='unique_category_slug_per_owner'
            ),
            models.UniqueConstraint(
                fields=['slug'],
                condition=Q(owner__isnull=True),
                name='unique_global_category_slug'
            ),
        ]

    def __str__(self):
        return f"{self.display_name} ({self.weight:g}%)"


# ==================== Tasks ====================

class TaskType(models.TextChoices):
    TASK = 'task', 'Task'
    IDEA = 'idea', 'Idea'
    GOAL = 'goal', 'Goal'
    MEETING = 'meeting', 'Meeting'
    LEARNING = 'learning', 'Learning'


class TaskStatus(models.TextChoices):
    NOT_STARTED = 'not_started', 'Not Started'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    ON_HOLD = 'on_hold', 'On Hold'
    CANCELLED = 'cancelled', 'Cancelled'


class RepeatInterval(models.TextChoices):
    DAILY = 'daily', 'Daily'
    WEEKLY = 'weekly', 'Weekly'
    MONTHLY = 'monthly', 'Monthly'


class TaskQuerySet(models.QuerySet):

    def for_owner(self, owner=None):
        if owner is None:
            return self.filter(owner__isnull=True)
        return self.filter(owner=owner)

    def by_priority(self):
        return self.order_by('-priority_score', '-created_at')

    def open(self):
        return self.exclude(status=TaskStatus.COMPLETED)

    def overdue(self, now=None):
        now = now or timezone.now()
        return self.open().filter(due_date__lt=now.date()).order_by('due_date')

    def by_status(self, status):
        return self.filter(status=status).by_priority()

    def by_project(self, project):
        return self.filter(project__icontains=project).by_priority()

    def search(self, query):
        return self.filter(
            Q(title__icontains=query) |
            Q(project__icontains=query) |
            Q(goal__icontains=query) |
            Q(update__icontains=query)
        ).by_priority()

    def using_category(self, slug):
        """Tasks holding a rating keyed by ``slug``, including zero ratings."""
        return self.filter(priority_ratings__has_key=slug)

    def rescore(self, now=None):
        """
        Recompute and store the cached score of every task in the queryset.

        Categories are looked up once per owner scope.
        """
        now = now or timezone.now()
        scopes = {}
        changed = []
        for task in self:
            if task.owner not in scopes:
                scopes[task.owner] = list(Category.objects.for_owner(task.owner))
            old_score = task.priority_score
            task.refresh_priority_score(scopes[task.owner], now)
            if task.priority_score != old_score:
                changed.append(task)
        if changed:
            self.model.objects.bulk_update(changed, ['priority_score'])
            logger.debug("Re-scored %d task(s)", len(changed))
        return len(changed)

    def stats(self, now=None):
        now = now or timezone.now()
        overview = self.aggregate(
            total=Count('id'),
            completed=Count('id', filter=Q(status=TaskStatus.COMPLETED)),
            in_progress=Count('id', filter=Q(status=TaskStatus.IN_PROGRESS)),
            not_started=Count('id', filter=Q(status=TaskStatus.NOT_STARTED)),
            overdue=Count(
                'id',
                filter=Q(due_date__lt=now.date()) & ~Q(status=TaskStatus.COMPLETED)
            ),
            avg_priority_score=Avg('priority_score'),
        )
        overview['avg_priority_score'] = round(overview['avg_priority_score'] or 0, 1)

        projects = (
            self.exclude(project='')
            .values('project')
            .annotate(
                count=Count('id'),
                completed=Count('id', filter=Q(status=TaskStatus.COMPLETED))
            )
            .order_by('-count', 'project')[:10]
        )
        return {'overview': overview, 'projects': list(projects)}


class Task(models.Model):
    """
    A unit of work rated against the owner's priority categories.

    Attributes:
        title: The task's title (required)
        project, goal, update: Free-text organization and notes
        type, status: Closed enumerations
        due_date: Optional, on or after 2020-01-01
        is_repeating, repeat_interval: Repetition; the interval is only
            kept while the task repeats
        link: Optional URL, scheme optional
        priority_ratings: Category id -> integer rating in [0, 5]
        priority_score: Derived score, recomputed on save
        completed_at: Set when the status becomes completed, cleared otherwise
        owner: Owning user reference; null for the shared sandbox
    """

    title = models.CharField(max_length=500)
    project = models.CharField(max_length=200, blank=True, default='')
    goal = models.CharField(max_length=1000, blank=True, default='')
    update = models.CharField(max_length=2000, blank=True, default='')
    type = models.CharField(
        max_length=20, choices=TaskType.choices, default=TaskType.TASK
    )
    status = models.CharField(
        max_length=20, choices=TaskStatus.choices, default=TaskStatus.NOT_STARTED
    )
    due_date = models.DateField(
        null=True,
        blank=True,
        validators=[validate_min_due_date],
        help_text="Task due date (optional)"
    )
    is_repeating = models.BooleanField(default=False)
    repeat_interval = models.CharField(
        max_length=10, choices=RepeatInterval.choices, null=True, blank=True
    )
    link = models.CharField(
        max_length=2048, blank=True, default='', validators=[validate_link]
    )
    priority_ratings = models.JSONField(
        default=dict,
        blank=True,
        validators=[validate_rating_map],
        help_text="Category id -> rating (0-5)"
    )
    priority_score = models.FloatField(default=0, editable=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    owner = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TaskQuerySet.as_manager()

    class Meta:
        ordering = ['-priority_score', '-created_at']
        indexes = [
            models.Index(fields=['owner', 'status'], name='task_owner_status_idx'),
            models.Index(fields=['owner', 'due_date'], name='task_owner_due_idx'),
            models.Index(fields=['owner', 'project'], name='task_owner_project_idx'),
            models.Index(fields=['owner', '-priority_score'], name='task_owner_score_idx'),
        ]

    def __str__(self):
        return f"{self.title} (Score: {self.priority_score})"

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def scope_categories(self):
        return Category.objects.for_owner(self.owner)

    def is_overdue(self, now=None) -> bool:
        return scoring.is_overdue(self.due_date, self.is_completed, now or timezone.now())

    def days_until_due(self, now=None):
        return scoring.days_until_due(self.due_date, now or timezone.now())

    def score_breakdown(self, categories=None, now=None) -> scoring.ScoreBreakdown:
        if categories is None:
            categories = self.scope_categories()
        return scoring.explain_score(
            self.priority_ratings, categories, self.due_date, now or timezone.now()
        )

    def refresh_priority_score(self, categories=None, now=None) -> float:
        self.priority_score = self.score_breakdown(categories, now).score
        return self.priority_score

    def apply_status(self, status, now=None):
        """Set ``status`` and keep ``completed_at`` in step with it."""
        if status == TaskStatus.COMPLETED:
            if self.status != TaskStatus.COMPLETED or self.completed_at is None:
                self.completed_at = now or timezone.now()
        else:
            self.completed_at = None
        self.status = status

    def save(self, *args, **kwargs):
        self.priority_ratings = scoring.validate_ratings(self.priority_ratings)
        if not self.is_repeating:
            self.repeat_interval = None
        if self.status != TaskStatus.COMPLETED:
            self.completed_at = None
        elif self.completed_at is None:
            self.completed_at = timezone.now()
        self.refresh_priority_score()
        super().save(*args, **kwargs)
