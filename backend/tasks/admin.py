from django.contrib import admin
from .models import Category, Task


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['slug', 'display_name', 'weight', 'color', 'is_default', 'owner']
    list_filter = ['is_default']
    search_fields = ['slug', 'display_name', 'secondary_name']
    ordering = ['-is_default', 'slug']
    # Weight changes must go through the registry to keep scope totals valid
    readonly_fields = ['slug', 'weight', 'is_default', 'owner', 'created_at', 'updated_at']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'type', 'status', 'due_date', 'priority_score', 'created_at']
    list_filter = ['status', 'type', 'is_repeating', 'created_at']
    search_fields = ['title', 'project', 'goal', 'update']
    ordering = ['-priority_score', '-created_at']
    readonly_fields = ['priority_score', 'completed_at', 'created_at', 'updated_at']
