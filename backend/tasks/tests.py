"""
Unit Tests for the Priority Task Manager.

This module covers the scoring engine, the category registry and its
weight invariant, the task model, the REST API and the import/export
layer.
"""

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework import status
from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO
import json

from . import transfer
from .errors import (
    CannotDeleteDefault,
    CannotModifyDefault,
    DuplicateId,
    InUse,
    InvalidImport,
    NotFound,
    ValidationError,
    WeightExceeded,
)
from .models import Category, Task, TaskStatus, TaskType
from .registry import CategoryRegistry
from .scoring import (
    CategoryWeight,
    DEFAULT_CATEGORIES,
    compute_score,
    days_until_due,
    explain_score,
    is_overdue,
    sum_weights,
    urgency_bonus,
    validate_ratings,
    validate_total,
)


NOW = datetime(2026, 1, 10, 12, 0, tzinfo=dt_timezone.utc)
MIDNIGHT = datetime(2026, 1, 10, 0, 0, tzinfo=dt_timezone.utc)

IMPACT = CategoryWeight('impact', 25)
DEFAULT_WEIGHTS = [CategoryWeight(c['id'], c['weight']) for c in DEFAULT_CATEGORIES]


def make_category(registry, category_id, weight, color='#123456'):
    return registry.create({
        'id': category_id,
        'display_name': category_id.title(),
        'weight': weight,
        'color': color,
    })


class ScoringEngineTests(TestCase):
    """Tests for the priority score computation."""

    def test_weighted_rating_without_due_date(self):
        """A single rating of 4 on a 25% category scores 100."""
        self.assertEqual(compute_score({'impact': 4}, [IMPACT], None, NOW), 100.0)

    def test_due_tomorrow_adds_top_bonus(self):
        self.assertEqual(
            compute_score({'impact': 4}, [IMPACT], date(2026, 1, 11), NOW), 120.0
        )
        self.assertEqual(
            compute_score({'impact': 4}, [IMPACT], NOW + timedelta(days=1), NOW), 120.0
        )

    def test_empty_ratings_score_zero(self):
        self.assertEqual(compute_score({}, DEFAULT_WEIGHTS, None, NOW), 0.0)

    def test_no_categories_scores_zero_even_when_due(self):
        """Without any weight there is no urgency bonus either."""
        self.assertEqual(compute_score({}, [], date(2026, 1, 10), NOW), 0.0)
        self.assertEqual(compute_score({'impact': 5}, [], date(2025, 1, 1), NOW), 0.0)

    def test_zero_weight_categories_score_zero(self):
        categories = [CategoryWeight('impact', 0), CategoryWeight('urgency', 0)]
        self.assertEqual(
            compute_score({'impact': 5}, categories, date(2026, 1, 11), NOW), 0.0
        )

    def test_ratings_outside_scope_are_ignored(self):
        score = compute_score({'impact': 4, 'unknown': 5}, [IMPACT], None, NOW)
        self.assertEqual(score, 100.0)

    def test_score_is_deterministic(self):
        ratings = {'impact': 3, 'urgency': 2, 'risk': 5}
        first = compute_score(ratings, DEFAULT_WEIGHTS, date(2026, 1, 14), NOW)
        for _ in range(5):
            self.assertEqual(
                compute_score(ratings, DEFAULT_WEIGHTS, date(2026, 1, 14), NOW), first
            )

    def test_score_rounded_to_one_decimal(self):
        categories = [CategoryWeight('a', 33.33)]
        self.assertEqual(compute_score({'a': 1}, categories, None, NOW), 33.3)
        self.assertEqual(compute_score({'a': 2}, categories, None, NOW), 66.7)

    def test_out_of_range_rating_rejected(self):
        with self.assertRaises(ValidationError):
            compute_score({'impact': 6}, [IMPACT], None, NOW)
        with self.assertRaises(ValidationError):
            compute_score({'impact': -1}, [IMPACT], None, NOW)

    def test_explain_score_breakdown(self):
        categories = [IMPACT, CategoryWeight('urgency', 20)]
        breakdown = explain_score(
            {'impact': 4, 'urgency': 1, 'other': 5}, categories, None, NOW
        )

        self.assertEqual(breakdown.total_weight, 45)
        self.assertEqual(breakdown.base_score, 120)
        self.assertEqual(breakdown.urgency_bonus, 0)
        self.assertIsNone(breakdown.days_until_due)
        self.assertEqual(breakdown.score, 120.0)

        data = breakdown.to_dict()
        self.assertEqual(data['categories']['impact']['contribution'], 100)
        self.assertEqual(data['categories']['urgency']['rating'], 1)
        self.assertNotIn('other', data['categories'])


class UrgencyTests(TestCase):
    """Tests for days-until-due and the urgency bonus tiers."""

    def test_bonus_tiers(self):
        cases = [
            (date(2026, 1, 11), 20),
            (date(2026, 1, 13), 15),
            (date(2026, 1, 17), 10),
            (date(2026, 1, 24), 5),
            (date(2026, 1, 25), 0),
        ]
        for due, bonus in cases:
            with self.subTest(due=due):
                self.assertEqual(urgency_bonus(days_until_due(due, MIDNIGHT)), bonus)

    def test_overdue_gets_top_bonus(self):
        days = days_until_due(date(2026, 1, 1), MIDNIGHT)
        self.assertEqual(days, -9)
        self.assertEqual(urgency_bonus(days), 20)
        self.assertEqual(compute_score({'impact': 1}, [IMPACT], date(2026, 1, 1), NOW), 45.0)

    def test_days_rounded_up(self):
        """Due at the next midnight from noon is half a day away, so 1 day."""
        self.assertEqual(days_until_due(date(2026, 1, 11), NOW), 1)
        self.assertEqual(days_until_due(date(2026, 1, 10), NOW), 0)

    def test_no_due_date(self):
        self.assertIsNone(days_until_due(None, NOW))
        self.assertEqual(urgency_bonus(None), 0)

    def test_is_overdue(self):
        self.assertTrue(is_overdue(date(2026, 1, 9), False, NOW))
        self.assertFalse(is_overdue(date(2026, 1, 10), False, NOW))
        self.assertFalse(is_overdue(date(2026, 1, 9), True, NOW))
        self.assertFalse(is_overdue(None, False, NOW))


class RatingValidationTests(TestCase):
    """Tests for rating and weight-total validation."""

    def test_none_is_empty(self):
        self.assertEqual(validate_ratings(None), {})

    def test_valid_ratings_pass_through(self):
        self.assertEqual(validate_ratings({'impact': 0, 'risk': 5}), {'impact': 0, 'risk': 5})

    def test_integral_float_accepted(self):
        self.assertEqual(validate_ratings({'impact': 3.0}), {'impact': 3})

    def test_invalid_values_rejected(self):
        for value in (6, -1, 2.5, True, '3', None):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    validate_ratings({'impact': value})

    def test_invalid_keys_rejected(self):
        with self.assertRaises(ValidationError):
            validate_ratings({'bad key': 1})

    def test_non_mapping_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_ratings([('impact', 1)])
        self.assertEqual(ctx.exception.field, 'priority_ratings')

    def test_validate_total(self):
        check = validate_total(DEFAULT_WEIGHTS)
        self.assertEqual(check.total_weight, 100)
        self.assertTrue(check.ok)

        check = validate_total(DEFAULT_WEIGHTS + [CategoryWeight('extra', 1)])
        self.assertFalse(check.ok)
        self.assertEqual(check.to_dict(), {'total_weight': 101, 'is_valid': False})

    def test_fractional_weights_total_exactly(self):
        """Decimal weights that add up to 100 are not pushed over by float error."""
        self.assertGreater(0.2 + 83.9 + 15.9, 100)
        self.assertEqual(sum_weights([0.2, 83.9, 15.9]), 100.0)

        check = validate_total([
            CategoryWeight('a', 0.2), CategoryWeight('b', 83.9), CategoryWeight('c', 15.9)
        ])
        self.assertEqual(check.total_weight, 100.0)
        self.assertTrue(check.ok)


class CategoryRegistryTests(TestCase):
    """Tests for category operations and the weight invariant."""

    def setUp(self):
        self.registry = CategoryRegistry()
        self.alice = CategoryRegistry('alice')

    def test_initialize_defaults_is_idempotent(self):
        created = self.registry.initialize_defaults()
        self.assertEqual(len(created), 7)

        self.assertEqual(self.registry.initialize_defaults(), [])
        defaults = self.registry.list_defaults()
        self.assertEqual(len(defaults), 7)
        self.assertEqual(
            [c.slug for c in defaults], sorted(c['id'] for c in DEFAULT_CATEGORIES)
        )
        self.assertEqual(self.registry.validate_scope().total_weight, 100)

    def test_reset_defaults_seeds_once(self):
        self.assertEqual(len(self.registry.reset_defaults()), 7)
        self.assertEqual(len(self.registry.reset_defaults()), 7)
        self.assertEqual(Category.objects.defaults().count(), 7)

    def test_reset_defaults_restores_weights_and_rescores(self):
        self.registry.initialize_defaults()
        self.registry.set_weight('impact', 10)
        task = Task.objects.create(title='Report', priority_ratings={'impact': 4})
        self.assertEqual(task.priority_score, 40.0)

        self.registry.reset_defaults()

        self.assertEqual(self.registry.get('impact').weight, 25)
        task.refresh_from_db()
        self.assertEqual(task.priority_score, 100.0)

    def test_create_rejected_when_total_exceeds_cap(self):
        make_category(self.alice, 'focus', 50)
        make_category(self.alice, 'health', 30)

        with self.assertRaises(WeightExceeded) as ctx:
            make_category(self.alice, 'travel', 30)

        error = ctx.exception
        self.assertEqual(error.current, 80)
        self.assertEqual(error.attempted, 30)
        self.assertEqual(error.would_be, 110)
        self.assertEqual(error.to_dict()['error_code'], 'ERR_WEIGHT_EXCEEDED')
        self.assertEqual(len(self.alice.list_for_owner()), 2)
        self.assertEqual(self.alice.validate_scope().total_weight, 80)

    def test_fractional_weights_can_fill_scope_exactly(self):
        make_category(self.alice, 'a', 0.2)
        make_category(self.alice, 'b', 83.9)

        make_category(self.alice, 'c', 15.9)

        self.assertEqual(len(self.alice.list_for_owner()), 3)
        self.assertEqual(self.alice.validate_scope().total_weight, 100.0)
        self.assertTrue(self.alice.validate_scope().ok)

    def test_weight_exceeded_reports_exact_totals(self):
        make_category(self.alice, 'a', 0.2)
        make_category(self.alice, 'b', 83.9)

        with self.assertRaises(WeightExceeded) as ctx:
            make_category(self.alice, 'c', 16)

        self.assertEqual(ctx.exception.current, 84.1)
        self.assertEqual(ctx.exception.attempted, 16.0)
        self.assertEqual(ctx.exception.would_be, 100.1)

    def test_bulk_fractional_weights_total_exactly(self):
        self.registry.initialize_defaults()

        result = self.registry.bulk_set_weights({'impact': 25.1, 'urgency': 19.9})

        self.assertEqual(result['total_weight'], 45.0)
        self.assertEqual(self.registry.validate_scope().total_weight, 100.0)

    def test_owner_scope_includes_defaults(self):
        self.registry.initialize_defaults()

        with self.assertRaises(WeightExceeded):
            make_category(self.alice, 'focus', 1)

        category = make_category(self.alice, 'focus', 0)
        self.assertEqual(category.owner, 'alice')
        self.assertEqual(len(self.alice.list_for_owner()), 8)
        self.assertEqual(len(self.registry.list_for_owner()), 7)

    def test_duplicate_id_rejected(self):
        make_category(self.alice, 'focus', 10)
        with self.assertRaises(DuplicateId):
            make_category(self.alice, 'focus', 10)

    def test_same_id_allowed_for_different_owners(self):
        make_category(self.alice, 'focus', 10)
        make_category(CategoryRegistry('bob'), 'focus', 10)
        self.assertEqual(Category.objects.filter(slug='focus').count(), 2)

    def test_default_id_is_taken_in_every_scope(self):
        self.registry.initialize_defaults()
        with self.assertRaises(DuplicateId):
            make_category(self.alice, 'impact', 0)

    def test_owner_cannot_create_default(self):
        with self.assertRaises(ValidationError):
            self.alice.create({
                'id': 'focus', 'display_name': 'Focus', 'weight': 0,
                'color': '#FFF', 'is_default': True,
            })

    def test_invalid_shape_rejected(self):
        bad_inputs = [
            {'id': 'bad id', 'display_name': 'X', 'weight': 1, 'color': '#FFF'},
            {'id': 'x', 'display_name': '  ', 'weight': 1, 'color': '#FFF'},
            {'id': 'x', 'display_name': 'X', 'weight': 101, 'color': '#FFF'},
            {'id': 'x', 'display_name': 'X', 'weight': -1, 'color': '#FFF'},
            {'id': 'x', 'display_name': 'X', 'weight': 1, 'color': 'red'},
        ]
        for data in bad_inputs:
            with self.subTest(data=data):
                with self.assertRaises(ValidationError):
                    self.alice.create(data)
        self.assertEqual(Category.objects.count(), 0)

    def test_get_missing_category(self):
        with self.assertRaises(NotFound):
            self.registry.get('missing')

    def test_cannot_revoke_default_status(self):
        self.registry.initialize_defaults()
        with self.assertRaises(CannotModifyDefault):
            self.registry.update('impact', {'is_default': False})
        self.assertTrue(self.registry.get('impact').is_default)

    def test_cannot_rename_default(self):
        self.registry.initialize_defaults()

        with self.assertRaises(CannotModifyDefault) as ctx:
            self.registry.update('impact', {'id': 'impact2'})

        self.assertEqual(ctx.exception.to_dict()['attribute'], 'id')
        self.assertEqual(self.registry.get('impact').slug, 'impact')
        self.assertFalse(Category.objects.filter(slug='impact2').exists())

    def test_default_ids_stay_reserved_for_reset(self):
        self.registry.initialize_defaults()
        with self.assertRaises(CannotModifyDefault):
            self.registry.update('impact', {'id': 'impact2'})
        with self.assertRaises(DuplicateId):
            make_category(self.registry, 'impact', 0)

        self.assertEqual(len(self.registry.reset_defaults()), 7)
        self.assertEqual(Category.objects.filter(slug='impact').count(), 1)

    def test_update_display_fields(self):
        self.registry.initialize_defaults()
        category = self.registry.update('impact', {
            'display_name': ' Big Impact ', 'color': '#000000'
        })
        self.assertEqual(category.display_name, 'Big Impact')
        self.assertEqual(category.color, '#000000')
        self.assertEqual(category.weight, 25)

    def test_update_weight_over_cap_rejected(self):
        self.registry.initialize_defaults()
        with self.assertRaises(WeightExceeded) as ctx:
            self.registry.set_weight('impact', 30)
        self.assertEqual(ctx.exception.would_be, 105)
        self.assertEqual(self.registry.get('impact').weight, 25)

    def test_default_weight_change_checked_in_owner_scopes(self):
        self.registry.initialize_defaults()
        self.registry.set_weight('risk', 0)
        make_category(self.alice, 'focus', 5)

        with self.assertRaises(WeightExceeded):
            self.registry.set_weight('risk', 5)
        self.assertEqual(self.registry.get('risk').weight, 0)

    def test_weight_change_rescores_tasks(self):
        self.registry.initialize_defaults()
        task = Task.objects.create(title='Report', priority_ratings={'impact': 4})
        self.assertEqual(task.priority_score, 100.0)

        self.registry.set_weight('impact', 20)

        task.refresh_from_db()
        self.assertEqual(task.priority_score, 80.0)

    def test_rename_rekeys_task_ratings(self):
        make_category(self.alice, 'focus', 50)
        task = Task.objects.create(title='Deep work', owner='alice', priority_ratings={'focus': 3})

        self.alice.update('focus', {'id': 'deep-focus'})

        task.refresh_from_db()
        self.assertEqual(task.priority_ratings, {'deep-focus': 3})
        self.assertEqual(task.priority_score, 150.0)

    def test_delete_default_rejected(self):
        self.registry.initialize_defaults()
        with self.assertRaises(CannotDeleteDefault):
            self.registry.delete('impact')
        self.assertEqual(Category.objects.defaults().count(), 7)

    def test_delete_in_use_rejected_with_count(self):
        make_category(self.alice, 'focus', 50)
        for rating in (2, 5, 0):
            Task.objects.create(title=f'Task {rating}', owner='alice', priority_ratings={'focus': rating})
        Task.objects.create(title='Unrated', owner='alice')
        Task.objects.create(title='Other owner', owner='bob', priority_ratings={'focus': 1})

        with self.assertRaises(InUse) as ctx:
            self.alice.delete('focus')

        self.assertEqual(ctx.exception.count, 3)
        self.assertEqual(ctx.exception.http_status, status.HTTP_409_CONFLICT)
        self.assertTrue(Category.objects.filter(slug='focus', owner='alice').exists())

    def test_delete_unused_category(self):
        make_category(self.alice, 'focus', 50)
        self.alice.delete('focus')
        self.assertEqual(len(self.alice.list_for_owner()), 0)

    def test_bulk_set_weights_rejects_provided_total(self):
        self.registry.initialize_defaults()
        with self.assertRaises(WeightExceeded) as ctx:
            self.registry.bulk_set_weights(
                {'impact': 30, 'urgency': 30, 'effort': 30, 'alignment': 20}
            )
        self.assertEqual(ctx.exception.would_be, 110)
        self.assertEqual(self.registry.get('impact').weight, 25)
        self.assertEqual(self.registry.validate_scope().total_weight, 100)

    def test_bulk_set_weights_rejects_resulting_scope_total(self):
        self.registry.initialize_defaults()
        with self.assertRaises(WeightExceeded):
            self.registry.bulk_set_weights({'impact': 50})
        self.assertEqual(self.registry.get('impact').weight, 25)

    def test_bulk_set_weights_reports_missing_ids(self):
        self.registry.initialize_defaults()
        result = self.registry.bulk_set_weights({'impact': 20, 'urgency': 25, 'ghost': 0})

        self.assertEqual(result['not_found'], ['ghost'])
        self.assertEqual(result['total_weight'], 45)
        self.assertEqual([c.slug for c in result['categories']], ['impact', 'urgency'])
        self.assertEqual(self.registry.get('impact').weight, 20)
        self.assertEqual(self.registry.get('urgency').weight, 25)
        self.assertEqual(self.registry.validate_scope().total_weight, 100)

    def test_initialize_defaults_rejected_when_owner_scope_overflows(self):
        make_category(self.alice, 'focus', 10)

        with self.assertRaises(WeightExceeded):
            self.registry.initialize_defaults()
        self.assertEqual(Category.objects.defaults().count(), 0)


class TaskModelTests(TestCase):
    """Tests for derived task fields."""

    def setUp(self):
        CategoryRegistry().initialize_defaults()

    def test_score_computed_on_save(self):
        task = Task.objects.create(title='Plan', priority_ratings={'impact': 4, 'urgency': 5})
        self.assertEqual(task.priority_score, 200.0)

        task.priority_ratings = {'impact': 1}
        task.save()
        task.refresh_from_db()
        self.assertEqual(task.priority_score, 25.0)

    def test_due_date_adds_bonus(self):
        tomorrow = timezone.now().date() + timedelta(days=1)
        task = Task.objects.create(title='Plan', priority_ratings={'impact': 4}, due_date=tomorrow)
        self.assertEqual(task.priority_score, 120.0)

    def test_invalid_rating_rejected_on_save(self):
        with self.assertRaises(ValidationError):
            Task.objects.create(title='Plan', priority_ratings={'impact': 9})
        self.assertEqual(Task.objects.count(), 0)

    def test_completed_at_follows_status(self):
        task = Task.objects.create(title='Plan')
        self.assertIsNone(task.completed_at)

        task.apply_status(TaskStatus.COMPLETED)
        task.save()
        self.assertIsNotNone(task.completed_at)
        completed_at = task.completed_at

        task.apply_status(TaskStatus.COMPLETED)
        task.save()
        self.assertEqual(task.completed_at, completed_at)

        task.apply_status(TaskStatus.IN_PROGRESS)
        task.save()
        self.assertIsNone(task.completed_at)

    def test_completed_status_on_create_sets_timestamp(self):
        task = Task.objects.create(title='Done', status=TaskStatus.COMPLETED)
        self.assertIsNotNone(task.completed_at)

    def test_repeat_interval_cleared_when_not_repeating(self):
        task = Task.objects.create(title='Standup', is_repeating=True, repeat_interval='daily')
        self.assertEqual(task.repeat_interval, 'daily')

        task.is_repeating = False
        task.save()
        task.refresh_from_db()
        self.assertIsNone(task.repeat_interval)

    def test_overdue_queryset(self):
        Task.objects.create(title='Late', due_date=date(2020, 6, 1))
        Task.objects.create(title='Late but done', due_date=date(2020, 6, 1), status=TaskStatus.COMPLETED)
        Task.objects.create(title='Future', due_date=timezone.now().date() + timedelta(days=30))

        self.assertEqual([t.title for t in Task.objects.overdue()], ['Late'])

    def test_stats(self):
        Task.objects.create(title='A', project='Home', status=TaskStatus.COMPLETED)
        Task.objects.create(title='B', project='Home', status=TaskStatus.IN_PROGRESS)
        Task.objects.create(title='C', project='Work', due_date=date(2020, 6, 1))
        Task.objects.create(title='D', owner='alice')

        stats = Task.objects.for_owner(None).stats()

        self.assertEqual(stats['overview']['total'], 3)
        self.assertEqual(stats['overview']['completed'], 1)
        self.assertEqual(stats['overview']['in_progress'], 1)
        self.assertEqual(stats['overview']['not_started'], 1)
        self.assertEqual(stats['overview']['overdue'], 1)
        self.assertEqual(stats['projects'][0], {'project': 'Home', 'count': 2, 'completed': 1})


class CategoryAPITests(APITestCase):
    """Tests for the category endpoints."""

    def setUp(self):
        cache.clear()
        CategoryRegistry().initialize_defaults()

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_list_defaults(self):
        response = self.client.get('/api/categories/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(len(response.data['categories']), 7)
        self.assertEqual(response.data['total_weight'], 100)
        self.assertTrue(response.data['is_valid_weight'])

    def test_create_over_cap_returns_structured_error(self):
        response = self.post_json('/api/categories/?owner=alice', {
            'id': 'focus', 'display_name': 'Focus', 'weight': 10, 'color': '#ABCDEF'
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error_code'], 'ERR_WEIGHT_EXCEEDED')
        self.assertEqual(response.data['current'], 100)
        self.assertEqual(response.data['attempted'], 10)
        self.assertEqual(response.data['would_be'], 110)

    def test_create_for_owner(self):
        response = self.post_json('/api/categories/?owner=alice', {
            'id': 'focus', 'display_name': 'Focus', 'weight': 0, 'color': '#ABCDEF'
        })

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['id'], 'focus')
        self.assertEqual(response.data['owner'], 'alice')

        response = self.client.get('/api/categories/?owner=alice')
        self.assertEqual(len(response.data['categories']), 8)

    def test_create_invalid_id(self):
        response = self.post_json('/api/categories/', {
            'id': 'bad id!', 'display_name': 'Bad', 'weight': 0, 'color': '#ABCDEF'
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_VALIDATION')
        self.assertIn('id', response.data['errors'])

    def test_get_missing_category(self):
        response = self.client.get('/api/categories/missing/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error_code'], 'ERR_NOT_FOUND')

    def test_update_category(self):
        response = self.client.put(
            '/api/categories/impact/',
            data=json.dumps({'display_name': 'Big Impact'}),
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['display_name'], 'Big Impact')
        self.assertEqual(response.data['weight'], 25)
        self.assertTrue(response.data['is_default'])

    def test_cannot_revoke_default(self):
        response = self.client.put(
            '/api/categories/impact/',
            data=json.dumps({'is_default': False}),
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_CANNOT_MODIFY_DEFAULT')

    def test_cannot_rename_default(self):
        response = self.client.put(
            '/api/categories/impact/',
            data=json.dumps({'id': 'impact2'}),
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_CANNOT_MODIFY_DEFAULT')
        self.assertEqual(response.data['attribute'], 'id')
        self.assertTrue(Category.objects.filter(slug='impact', is_default=True).exists())

    def test_create_fractional_weights_filling_scope(self):
        CategoryRegistry().bulk_set_weights({'impact': 9.9, 'urgency': 20})

        response = self.post_json('/api/categories/', {
            'id': 'side', 'display_name': 'Side', 'weight': 15.1, 'color': '#ABCDEF'
        })

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get('/api/categories/?defaults=false')
        self.assertEqual(response.data['total_weight'], 100.0)
        self.assertTrue(response.data['is_valid_weight'])

    def test_delete_default_rejected(self):
        response = self.client.delete('/api/categories/impact/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_CANNOT_DELETE_DEFAULT')

    def test_delete_in_use_returns_conflict(self):
        make_category(CategoryRegistry('alice'), 'focus', 0)
        for i in range(3):
            Task.objects.create(title=f'Task {i}', owner='alice', priority_ratings={'focus': 1})

        response = self.client.delete('/api/categories/focus/?owner=alice')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error_code'], 'ERR_IN_USE')
        self.assertEqual(response.data['count'], 3)

    def test_delete_custom_category(self):
        make_category(CategoryRegistry('alice'), 'focus', 0)

        response = self.client.delete('/api/categories/focus/?owner=alice')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['category']['id'], 'focus')

    def test_update_weight(self):
        response = self.client.patch(
            '/api/categories/impact/weight/',
            data=json.dumps({'weight': 20}),
            content_type='application/json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['weight'], 20)

        response = self.client.get('/api/categories/validate-weight/')
        self.assertEqual(response.data['total_weight'], 95)
        self.assertTrue(response.data['is_valid'])

    def test_bulk_update_weights(self):
        response = self.post_json('/api/categories/bulk-update-weights/', {
            'weights': {'impact': 20, 'urgency': 25, 'ghost': 5}
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['not_found'], ['ghost'])
        self.assertEqual(len(response.data['categories']), 2)

    def test_bulk_update_weights_over_cap(self):
        response = self.post_json('/api/categories/bulk-update-weights/', {
            'weights': {'impact': 60, 'urgency': 50}
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_WEIGHT_EXCEEDED')
        self.assertEqual(Category.objects.get(slug='impact').weight, 25)

    def test_reset_defaults(self):
        CategoryRegistry().set_weight('impact', 5)

        response = self.post_json('/api/categories/reset-defaults/', {})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['categories']), 7)
        self.assertEqual(Category.objects.get(slug='impact').weight, 25)


class TaskAPITests(APITestCase):
    """Tests for the task endpoints."""

    def setUp(self):
        cache.clear()
        CategoryRegistry().initialize_defaults()

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def patch_json(self, url, data):
        return self.client.patch(url, data=json.dumps(data), content_type='application/json')

    def test_create_task(self):
        response = self.post_json('/api/tasks/', {
            'title': '  Write report  ',
            'project': 'Work',
            'priority_ratings': {'impact': 4},
            'priority_score': 999,
        })

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['title'], 'Write report')
        self.assertEqual(response.data['priority_score'], 100.0)
        self.assertEqual(response.data['score_breakdown']['total_weight'], 100)
        self.assertFalse(response.data['is_overdue'])

    def test_create_task_invalid_rating(self):
        response = self.post_json('/api/tasks/', {
            'title': 'Report', 'priority_ratings': {'impact': 7}
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(Task.objects.count(), 0)

    def test_create_task_validation(self):
        bad_payloads = [
            {'title': '   '},
            {'title': 'Old', 'due_date': '2019-12-31'},
            {'title': 'Odd', 'type': 'chore'},
            {'title': 'Link', 'link': 'not a url'},
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                response = self.post_json('/api/tasks/', payload)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_sorted_by_priority(self):
        Task.objects.create(title='Low', priority_ratings={'impact': 1})
        Task.objects.create(title='High', priority_ratings={'impact': 5})
        Task.objects.create(title='None')

        response = self.client.get('/api/tasks/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['title'] for t in response.data['tasks']], ['High', 'Low', 'None'])
        self.assertEqual(response.data['pagination']['total'], 3)

    def test_list_pagination_and_filters(self):
        Task.objects.create(title='A', status=TaskStatus.COMPLETED)
        Task.objects.create(title='B', due_date=date(2020, 6, 1))
        Task.objects.create(title='C', project='Home')

        response = self.client.get('/api/tasks/?limit=2&page=2&sort=title')
        self.assertEqual([t['title'] for t in response.data['tasks']], ['C'])
        self.assertEqual(response.data['pagination']['pages'], 2)

        response = self.client.get('/api/tasks/?completed=true')
        self.assertEqual([t['title'] for t in response.data['tasks']], ['A'])

        response = self.client.get('/api/tasks/?overdue=true')
        self.assertEqual([t['title'] for t in response.data['tasks']], ['B'])
        self.assertTrue(response.data['tasks'][0]['is_overdue'])

        response = self.client.get('/api/tasks/?project=hom')
        self.assertEqual([t['title'] for t in response.data['tasks']], ['C'])

    def test_owner_isolation(self):
        response = self.post_json('/api/tasks/?owner=alice', {'title': 'Private'})
        pk = response.data['id']
        self.assertEqual(response.data['owner'], 'alice')

        response = self.client.get('/api/tasks/')
        self.assertEqual(response.data['tasks'], [])

        response = self.client.get(f'/api/tasks/{pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error_code'], 'ERR_NOT_FOUND')

        response = self.client.get(f'/api/tasks/{pk}/?owner=alice')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('score_breakdown', response.data)

    def test_patch_due_date_rescores(self):
        task = Task.objects.create(title='Report', priority_ratings={'impact': 4})
        tomorrow = timezone.now().date() + timedelta(days=1)

        response = self.patch_json(f'/api/tasks/{task.pk}/', {'due_date': tomorrow.isoformat()})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['priority_score'], 120.0)
        self.assertEqual(response.data['days_until_due'], 1)

    def test_status_transitions(self):
        task = Task.objects.create(title='Report')

        response = self.patch_json(f'/api/tasks/{task.pk}/status/', {'status': 'completed'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['completed_at'])

        response = self.patch_json(f'/api/tasks/{task.pk}/status/', {'status': 'in_progress'})
        self.assertIsNone(response.data['completed_at'])

        response = self.patch_json(f'/api/tasks/{task.pk}/status/', {'status': 'done'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_priority(self):
        task = Task.objects.create(title='Report')

        response = self.patch_json(
            f'/api/tasks/{task.pk}/priority/',
            {'priority_ratings': {'impact': 2, 'urgency': 5}}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['priority_score'], 150.0)

        response = self.patch_json(
            f'/api/tasks/{task.pk}/priority/', {'priority_ratings': {'impact': 6}}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        task.refresh_from_db()
        self.assertEqual(task.priority_ratings, {'impact': 2, 'urgency': 5})

    def test_delete_task(self):
        task = Task.objects.create(title='Report')

        response = self.client.delete(f'/api/tasks/{task.pk}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['task']['title'], 'Report')
        self.assertFalse(Task.objects.exists())

    def test_search(self):
        Task.objects.create(title='Write report', project='Work')
        Task.objects.create(title='Groceries', goal='Healthy food')

        response = self.client.get('/api/tasks/search/report/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/tasks/search/HEALTHY/')
        self.assertEqual(response.data['results'][0]['title'], 'Groceries')

        response = self.client.get('/api/tasks/search/a/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats(self):
        Task.objects.create(title='A', project='Home', status=TaskStatus.COMPLETED)
        Task.objects.create(title='B', project='Home')

        response = self.client.get('/api/tasks/stats/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overview']['total'], 2)
        self.assertEqual(response.data['overview']['completed'], 1)
        self.assertEqual(response.data['projects'][0]['project'], 'Home')

    def test_bulk_update_status_and_delete(self):
        first = Task.objects.create(title='A')
        second = Task.objects.create(title='B')
        other = Task.objects.create(title='C', owner='alice')

        response = self.post_json('/api/tasks/bulk/', {
            'operation': 'updateStatus',
            'task_ids': [first.pk, second.pk, other.pk],
            'data': {'status': 'completed'},
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['modified_count'], 2)
        self.assertEqual(Task.objects.filter(completed_at__isnull=False).count(), 2)

        response = self.post_json('/api/tasks/bulk/', {
            'operation': 'updateProject', 'task_ids': [first.pk], 'data': {'project': ' Home '}
        })
        self.assertEqual(response.data['modified_count'], 1)
        first.refresh_from_db()
        self.assertEqual(first.project, 'Home')

        response = self.post_json('/api/tasks/bulk/', {
            'operation': 'delete', 'task_ids': [first.pk, second.pk]
        })
        self.assertEqual(response.data['deleted_count'], 2)
        self.assertEqual(Task.objects.count(), 1)

    def test_bulk_requires_operation_data(self):
        response = self.post_json('/api/tasks/bulk/', {
            'operation': 'updateProject', 'task_ids': [1], 'data': {}
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.post_json('/api/tasks/bulk/', {'operation': 'delete', 'task_ids': []})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_api_info(self):
        response = self.client.get('/api/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('endpoints', response.data)
        self.assertEqual(response.data['scoring']['max_total_weight'], 100)

    def test_schema(self):
        response = self.client.get('/api/schema/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class DataTransferTests(APITestCase):
    """Tests for export, import, backup, restore and migration."""

    def setUp(self):
        cache.clear()
        CategoryRegistry().initialize_defaults()

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_export_json(self):
        Task.objects.create(title='Report', priority_ratings={'impact': 4})

        response = self.client.get('/api/data/export/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['version'], '1.0')
        self.assertEqual(response.data['meta']['task_count'], 1)
        self.assertEqual(response.data['meta']['category_count'], 7)
        self.assertTrue(response.data['meta']['default_categories_included'])
        self.assertIn('attachment', response['Content-Disposition'])

    def test_export_csv(self):
        Task.objects.create(title='Report, final', project='Work')

        response = self.client.get('/api/data/export/csv/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        lines = response.content.decode().splitlines()
        self.assertEqual(lines[0], ','.join(transfer.CSV_HEADERS))
        self.assertTrue(lines[1].startswith('"Report, final",Work'))

    def test_import_data(self):
        payload = {
            'data': {
                'categories': [
                    {'id': 'impact', 'english': 'Impact', 'weight': 25,
                     'color': '#FF6B6B', 'isDefault': True},
                    {'id': 'side', 'english': 'Side Projects', 'hebrew': 'צד',
                     'weight': 0, 'color': '#123456'},
                    {'id': 'heavy', 'english': 'Heavy', 'weight': 10, 'color': '#654321'},
                ],
                'tasks': [
                    {'title': 'Imported', 'priorityRatings': {'impact': 3},
                     'type': 'פגישה', 'status': 'בתהליך', 'priorityScore': 999},
                    {'title': 'Broken', 'priority_ratings': {'impact': 9}},
                ],
            }
        }

        response = self.post_json('/api/data/import/', payload)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        categories = response.data['results']['categories']
        self.assertEqual(categories['imported'], 1)
        self.assertEqual(categories['skipped'], 1)
        self.assertEqual(categories['errors'][0]['category'], 'heavy')
        tasks = response.data['results']['tasks']
        self.assertEqual(tasks['imported'], 1)
        self.assertEqual(tasks['errors'][0]['task'], 'Broken')
        self.assertEqual(response.data['summary']['total_errors'], 2)

        task = Task.objects.get(title='Imported')
        self.assertEqual(task.type, TaskType.MEETING)
        self.assertEqual(task.status, TaskStatus.IN_PROGRESS)
        self.assertEqual(task.priority_score, 75.0)
        self.assertEqual(Category.objects.get(slug='side').secondary_name, 'צד')

    def test_import_skips_existing_tasks_unless_overwriting(self):
        Task.objects.create(title='Report', project='Work')
        data = {'tasks': [{'title': 'Report', 'project': 'Work', 'priority_ratings': {'impact': 2}}]}

        result = transfer.import_data(data)
        self.assertEqual(result['results']['tasks']['skipped'], 1)

        result = transfer.import_data(data, overwrite_existing=True)
        self.assertEqual(result['results']['tasks']['imported'], 1)
        self.assertEqual(Task.objects.get(title='Report').priority_score, 50.0)

    def test_import_requires_data(self):
        response = self.post_json('/api/data/import/', {'data': 'nope'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_IMPORT')

    def test_transfer_endpoints_require_object_body(self):
        urls = ['/api/data/import/', '/api/data/restore/', '/api/data/migrate-localstorage/']
        for url in urls:
            with self.subTest(url=url):
                response = self.client.post(url, data='[1, 2]', content_type='application/json')
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.data['error_code'], 'ERR_INVALID_IMPORT')

        response = self.post_json('/api/data/import/', {'data': {}, 'options': ['overwrite']})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_IMPORT')

    def test_backup_and_restore(self):
        Task.objects.create(title='A', priority_ratings={'impact': 2}, status=TaskStatus.COMPLETED)
        Task.objects.create(title='B', due_date=date(2021, 3, 1))

        backup = self.client.get('/api/data/backup/').data
        self.assertEqual(backup['statistics']['total'], 2)
        self.assertEqual(backup['meta']['completion_rate'], 50.0)

        Task.objects.create(title='C')
        response = self.post_json('/api/data/restore/', {
            'backup': backup, 'options': {'clear_existing': True}
        })

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['restored']['tasks'], 2)
        self.assertEqual(response.data['original_backup']['task_count'], 2)
        self.assertEqual(sorted(Task.objects.values_list('title', flat=True)), ['A', 'B'])
        restored = Task.objects.get(title='A')
        self.assertEqual(restored.priority_score, 50.0)
        self.assertIsNotNone(restored.completed_at)
        self.assertEqual(Category.objects.defaults().count(), 7)

    def test_restore_requires_backup_data(self):
        with self.assertRaises(InvalidImport):
            transfer.restore_backup({'version': '1.0'})

    def test_migrate_local_storage(self):
        due = (timezone.now().date() + timedelta(days=60)).isoformat()
        payload = {
            'local_storage_data': {
                'priorityCategories': json.dumps([
                    {'id': 'impact', 'english': 'Impact', 'hebrew': 'השפעה',
                     'weight': 25, 'color': '#FF6B6B', 'isDefault': True},
                ]),
                'tasks': json.dumps([
                    {'title': 'Idea', 'type': 'רעיון', 'status': 'הושלם',
                     'dueDate': f'{due}T00:00:00.000Z', 'priorityRatings': {'impact': 5},
                     'isRepeating': False, 'repeatInterval': 'weekly'},
                ]),
                'userProgress': {'points': 40, 'level': 2},
            }
        }

        response = self.post_json('/api/data/migrate-localstorage/', payload)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results']['tasks']['imported'], 1)
        self.assertTrue(response.data['summary']['user_progress_migrated'])
        self.assertEqual(response.data['user_progress']['points'], 40)

        task = Task.objects.get(title='Idea')
        self.assertEqual(task.type, TaskType.IDEA)
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertIsNotNone(task.completed_at)
        self.assertIsNone(task.repeat_interval)
        self.assertEqual(task.priority_score, 125.0)

    def test_migrate_local_storage_rejects_bad_json(self):
        response = self.post_json('/api/data/migrate-localstorage/', {
            'local_storage_data': '{not json'
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error_code'], 'ERR_INVALID_IMPORT')

    def test_validate_data(self):
        Task.objects.create(title='Partial', priority_ratings={'impact': 3})

        response = self.client.get('/api/data/validate/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['overall']['is_valid'])
        self.assertEqual(response.data['tasks']['issues'][0]['issue'], 'Missing priority ratings')
        self.assertEqual(response.data['categories']['total_weight'], 100)

    def test_validate_data_reports_weight_overflow(self):
        Category.objects.create(slug='extra', display_name='Extra', weight=10, color='#000')
        Task.objects.create(title='Rated', priority_ratings={c.slug: 1 for c in Category.objects.all()})

        report = transfer.validate_data()

        self.assertEqual(report['tasks']['issues'], [])
        self.assertEqual(report['categories']['total_weight'], 110)
        self.assertEqual(report['categories']['issues'][0]['issue'], 'Total weight exceeds 100%')
        self.assertFalse(report['overall']['is_valid'])


class SeedCategoriesCommandTests(TestCase):

    def test_seed_is_idempotent(self):
        out = StringIO()
        call_command('seed_categories', stdout=out)
        self.assertIn('Created 7 default categories', out.getvalue())

        out = StringIO()
        call_command('seed_categories', stdout=out)
        self.assertIn('already exist', out.getvalue())
        self.assertEqual(Category.objects.defaults().count(), 7)

    def test_reset(self):
        CategoryRegistry().initialize_defaults()
        CategoryRegistry().set_weight('impact', 5)

        call_command('seed_categories', '--reset', stdout=StringIO())

        self.assertEqual(Category.objects.get(slug='impact').weight, 25)


class RescoreTasksCommandTests(TestCase):

    def setUp(self):
        CategoryRegistry().initialize_defaults()

    def test_rescore_refreshes_stale_urgency_bonus(self):
        tomorrow = timezone.now().date() + timedelta(days=1)
        task = Task.objects.create(title='Report', priority_ratings={'impact': 4}, due_date=tomorrow)
        self.assertEqual(task.priority_score, 120.0)

        # Moving the due date without save() leaves the stored score stale
        Task.objects.filter(pk=task.pk).update(due_date=tomorrow + timedelta(days=60))

        out = StringIO()
        call_command('rescore_tasks', stdout=out)

        task.refresh_from_db()
        self.assertEqual(task.priority_score, 100.0)
        self.assertIn('Re-scored 1 task(s)', out.getvalue())

    def test_rescore_single_owner(self):
        tomorrow = timezone.now().date() + timedelta(days=1)
        mine = Task.objects.create(title='Mine', owner='alice', priority_ratings={'impact': 4}, due_date=tomorrow)
        other = Task.objects.create(title='Other', owner='bob', priority_ratings={'impact': 4}, due_date=tomorrow)
        Task.objects.update(due_date=tomorrow + timedelta(days=60))

        call_command('rescore_tasks', '--owner', 'alice', stdout=StringIO())

        mine.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual(mine.priority_score, 100.0)
        self.assertEqual(other.priority_score, 120.0)
