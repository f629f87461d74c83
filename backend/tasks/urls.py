"""
URL configuration for the tasks app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.api_info, name='api-info'),
    # Categories
    path('categories/', views.category_collection, name='category-collection'),
    path('categories/validate-weight/', views.validate_weight, name='validate-weight'),
    path('categories/reset-defaults/', views.reset_defaults, name='reset-defaults'),
    path('categories/bulk-update-weights/', views.bulk_update_weights, name='bulk-update-weights'),
    path('categories/<str:category_id>/', views.category_detail, name='category-detail'),
    path('categories/<str:category_id>/weight/', views.category_weight, name='category-weight'),
    # Tasks
    path('tasks/', views.task_collection, name='task-collection'),
    path('tasks/stats/', views.task_stats, name='task-stats'),
    path('tasks/bulk/', views.task_bulk, name='task-bulk'),
    path('tasks/search/<str:query>/', views.task_search, name='task-search'),
    path('tasks/<int:pk>/', views.task_detail, name='task-detail'),
    path('tasks/<int:pk>/status/', views.task_status, name='task-status'),
    path('tasks/<int:pk>/priority/', views.task_priority, name='task-priority'),
    # Data transfer
    path('data/export/', views.export_json, name='export-json'),
    path('data/export/csv/', views.export_csv, name='export-csv'),
    path('data/import/', views.import_data, name='import-data'),
    path('data/backup/', views.backup, name='backup'),
    path('data/restore/', views.restore, name='restore'),
    path('data/migrate-localstorage/', views.migrate_local_storage, name='migrate-localstorage'),
    path('data/validate/', views.validate_data, name='validate-data'),
]
