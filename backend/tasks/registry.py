"""
Category Registry for the Priority Task Manager.

The registry is the only writer of ``Category`` rows. It owns the weight
invariant: for every owner scope (global defaults plus that owner's own
categories) the weights may total at most 100. Every write validates the
prospective totals first and is rejected, not clamped, when any scope would
go over.

Writes run inside ``transaction.atomic()`` with the scope rows locked via
``select_for_update()``, so read-validate-write is atomic per scope on
databases that support row locks. After any accepted change that can move a
score, the tasks of the affected scope are re-scored.
"""

from typing import Dict, Iterable, List, Mapping, Optional

from django.db import transaction
from django.db.models import Q

from . import scoring
from .errors import (
    CannotDeleteDefault,
    CannotModifyDefault,
    DuplicateId,
    InUse,
    NotFound,
    ValidationError,
    WeightExceeded,
)
from .models import Category, Task


EDITABLE_FIELDS = ('id', 'display_name', 'secondary_name', 'weight', 'color', 'is_default')


class CategoryRegistry:
    """
    Category operations bound to one owner scope.

    ``owner=None`` addresses the shared scope: the global defaults plus any
    custom categories created without an owner.
    """

    def __init__(self, owner: Optional[str] = None):
        self.owner = owner or None

    # ==================== Queries ====================

    @staticmethod
    def list_defaults() -> List[Category]:
        return list(Category.objects.defaults().order_by('slug'))

    def list_for_owner(self, owner: Optional[str] = None) -> List[Category]:
        owner = owner if owner is not None else self.owner
        return list(Category.objects.for_owner(owner).order_by('-is_default', 'slug'))

    def get(self, category_id: str) -> Category:
        category = Category.objects.for_owner(self.owner).filter(slug=category_id).first()
        if category is None:
            raise NotFound('Category', category_id)
        return category

    def validate_scope(self) -> scoring.WeightCheck:
        """Read-only weight health check for this scope."""
        return scoring.validate_total(self.list_for_owner())

    # ==================== Writes ====================

    def create(self, data: Mapping) -> Category:
        """
        Add a category to this scope.

        ``data`` uses the API field names: ``id``, ``display_name``,
        ``secondary_name``, ``weight``, ``color`` and ``is_default``.
        """
        category_id = data.get('id')
        display_name = data.get('display_name')
        secondary_name = data.get('secondary_name') or ''
        weight = data.get('weight', 0)
        color = data.get('color')
        is_default = bool(data.get('is_default', False))

        scoring.validate_category_fields(
            category_id, display_name, weight, color, secondary_name
        )
        if is_default and self.owner is not None:
            raise ValidationError(
                "Only global categories can be marked as default", field='is_default'
            )

        with transaction.atomic():
            if self._slug_taken(category_id, is_default):
                raise DuplicateId(category_id)
            self._check_cap(added_weight=weight, touches_defaults=is_default)

            category = Category.objects.create(
                slug=category_id,
                display_name=display_name.strip(),
                secondary_name=secondary_name.strip(),
                weight=weight,
                color=color,
                is_default=is_default,
                owner=None if is_default else self.owner,
            )
            self._rescore(category)
        return category

    def update(self, category_id: str, patch: Mapping) -> Category:
        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown category field(s): {', '.join(sorted(unknown))}"
            )

        with transaction.atomic():
            category = self._get_for_update(category_id)

            if 'is_default' in patch and bool(patch['is_default']) != category.is_default:
                if category.is_default:
                    raise CannotModifyDefault(category.slug)
                raise ValidationError(
                    "Default status cannot be granted to an existing category",
                    field='is_default'
                )
            if category.is_default and patch.get('id', category.slug) != category.slug:
                raise CannotModifyDefault(category.slug, attribute='id')

            new_slug = patch.get('id', category.slug)
            display_name = patch.get('display_name', category.display_name)
            secondary_name = patch.get('secondary_name', category.secondary_name) or ''
            weight = patch.get('weight', category.weight)
            color = patch.get('color', category.color)
            scoring.validate_category_fields(
                new_slug, display_name, weight, color, secondary_name
            )

            if new_slug != category.slug and self._slug_taken(
                new_slug, category.is_default, exclude_pk=category.pk
            ):
                raise DuplicateId(new_slug)

            weight_changed = weight != category.weight
            if weight_changed:
                self._check_cap(
                    new_weights={category.pk: weight},
                    touches_defaults=category.is_default
                )

            old_slug = category.slug
            category.slug = new_slug
            category.display_name = display_name.strip()
            category.secondary_name = secondary_name.strip()
            category.weight = weight
            category.color = color
            category.save()

            if new_slug != old_slug:
                self._rekey_ratings(category, old_slug, new_slug)
            if weight_changed or new_slug != old_slug:
                self._rescore(category)
        return category

    def set_weight(self, category_id: str, weight) -> Category:
        return self.update(category_id, {'weight': weight})

    def delete(self, category_id: str) -> Category:
        with transaction.atomic():
            category = self._get_for_update(category_id)
            if category.is_default:
                raise CannotDeleteDefault(category.slug)

            in_use = self._tasks_in_scope(category).using_category(category.slug).count()
            if in_use:
                raise InUse(category.slug, in_use)

            category.delete()
            self._rescore(category)
        return category

    def bulk_set_weights(self, weights: Mapping) -> Dict:
        """
        Set several weights at once, all or nothing.

        The provided weights must total at most 100 on their own, and the
        resulting scope totals must also stay within the cap. Ids that do
        not exist in this scope are skipped and reported.
        """
        if not isinstance(weights, Mapping) or not weights:
            raise ValidationError("Weights object is required", field='weights')
        for category_id, weight in weights.items():
            scoring.validate_weight(weight, field_name=f'weights.{category_id}')

        provided_total = scoring.sum_weights(weights.values())
        if provided_total > scoring.MAX_TOTAL_WEIGHT:
            raise WeightExceeded(
                current=self.validate_scope().total_weight,
                attempted=provided_total,
                would_be=provided_total
            )

        with transaction.atomic():
            scope = {
                c.slug: c for c in
                Category.objects.for_owner(self.owner)
                .filter(slug__in=list(weights))
                .select_for_update()
            }
            missing = [category_id for category_id in weights if category_id not in scope]
            updates = {scope[slug].pk: weight for slug, weight in weights.items() if slug in scope}

            self._check_cap(
                new_weights=updates,
                touches_defaults=any(c.is_default for c in scope.values())
            )

            updated = []
            for slug, category in scope.items():
                category.weight = weights[slug]
                updated.append(category)
            Category.objects.bulk_update(updated, ['weight'])

            if updated:
                self._rescore(*updated)

        return {
            'categories': sorted(updated, key=lambda c: c.slug),
            'not_found': missing,
            'total_weight': provided_total,
        }

    def initialize_defaults(self) -> List[Category]:
        """
        Seed the canonical default set unless any default already exists.

        Returns the created categories; an empty list means nothing was done.
        """
        with transaction.atomic():
            if Category.objects.defaults().select_for_update().exists():
                return []

            clashes = Category.objects.filter(
                slug__in=[c['id'] for c in scoring.DEFAULT_CATEGORIES]
            ).values_list('slug', flat=True)
            if clashes:
                raise DuplicateId(sorted(set(clashes))[0])

            self._check_cap(
                added_weight=sum(c['weight'] for c in scoring.DEFAULT_CATEGORIES),
                touches_defaults=True
            )
            created = Category.objects.bulk_create([
                Category(
                    slug=c['id'],
                    display_name=c['display_name'],
                    secondary_name=c['secondary_name'],
                    weight=c['weight'],
                    color=c['color'],
                    is_default=True,
                    owner=None,
                )
                for c in scoring.DEFAULT_CATEGORIES
            ])
        return created

    def reset_defaults(self) -> List[Category]:
        """Delete every default category, re-seed the canonical set, re-score."""
        with transaction.atomic():
            Category.objects.defaults().delete()
            self.initialize_defaults()
            Task.objects.all().rescore()
        return self.list_defaults()

    # ==================== Internals ====================

    def _get_for_update(self, category_id: str) -> Category:
        category = (
            Category.objects.for_owner(self.owner)
            .filter(slug=category_id)
            .select_for_update()
            .first()
        )
        if category is None:
            raise NotFound('Category', category_id)
        return category

    def _slug_taken(self, slug: str, is_default: bool, exclude_pk=None) -> bool:
        # A default is visible in every scope, so its slug must be unique everywhere.
        queryset = Category.objects.all() if is_default else Category.objects.for_owner(self.owner)
        if exclude_pk is not None:
            queryset = queryset.exclude(pk=exclude_pk)
        return queryset.filter(slug=slug).exists()

    def _affected_owners(self, touches_defaults: bool) -> Iterable[Optional[str]]:
        if not touches_defaults:
            return [self.owner]
        owners = set(
            Category.objects.filter(owner__isnull=False)
            .values_list('owner', flat=True)
            .distinct()
        )
        return [None, self.owner] + sorted(owners - {self.owner})

    def _check_cap(
        self,
        new_weights: Optional[Mapping] = None,
        added_weight: float = 0,
        touches_defaults: bool = False
    ) -> None:
        """
        Raise ``WeightExceeded`` if any affected scope would total over 100.

        ``new_weights`` maps category primary keys to their prospective
        weights; ``added_weight`` accounts for a category not yet stored.
        """
        new_weights = new_weights or {}
        seen = set()
        for owner in self._affected_owners(touches_defaults):
            if owner in seen:
                continue
            seen.add(owner)

            categories = list(Category.objects.for_owner(owner).select_for_update())
            current = scoring.validate_total(categories).total_weight
            prospective = scoring.sum_weights(
                [new_weights.get(c.pk, c.weight) for c in categories] + [added_weight]
            )
            if prospective > scoring.MAX_TOTAL_WEIGHT:
                raise WeightExceeded(
                    current=current,
                    attempted=scoring.sum_weights([prospective, -current]),
                    would_be=prospective
                )

    def _tasks_in_scope(self, category: Category):
        # Only custom categories get here; defaults are never renamed or deleted
        return Task.objects.for_owner(category.owner)

    def _rekey_ratings(self, category: Category, old_slug: str, new_slug: str) -> None:
        tasks = list(self._tasks_in_scope(category).using_category(old_slug))
        for task in tasks:
            ratings = dict(task.priority_ratings)
            ratings[new_slug] = ratings.pop(old_slug)
            task.priority_ratings = ratings
        Task.objects.bulk_update(tasks, ['priority_ratings'])

    def _rescore(self, *categories: Category) -> None:
        if any(c.is_default for c in categories):
            Task.objects.all().rescore()
        else:
            owners = {c.owner for c in categories}
            query = Q()
            for owner in owners:
                query |= Q(owner__isnull=True) if owner is None else Q(owner=owner)
            Task.objects.filter(query).rescore()
