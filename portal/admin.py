"""
Django admin registrations for the portal models.

Superusers can inspect tenants, employees and their grants at ``/admin/``.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    AuditEvent,
    ChatMessage,
    ChatParticipant,
    ChatRoom,
    Department,
    Employee,
    EmployeeOrganizationAccess,
    File,
    Notification,
    Organization,
    Schedule,
    Task,
    User,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'email', 'first_name', 'is_staff', 'is_superuser')


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'representative', 'contact_email', 'created_at')
    list_filter = ('type',)
    search_fields = ('name', 'representative')


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('name', 'organization', 'parent')
    list_filter = ('organization',)
    search_fields = ('name',)


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'role', 'status', 'organization', 'department')
    list_filter = ('role', 'status', 'organization')
    search_fields = ('name', 'email', 'position')
    raw_id_fields = ('auth_user',)


@admin.register(EmployeeOrganizationAccess)
class EmployeeOrganizationAccessAdmin(admin.ModelAdmin):
    list_display = ('employee', 'organization', 'access_level', 'is_active', 'expires_at')
    list_filter = ('access_level', 'is_active')


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('title', 'organization', 'status', 'priority', 'assignee', 'due_date')
    list_filter = ('status', 'priority')
    search_fields = ('title',)


@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ('title', 'organization', 'start_time', 'end_time', 'is_all_day')
    search_fields = ('title', 'location')


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    list_display = ('original_filename', 'organization', 'owner', 'mime_type', 'file_size', 'uploaded_at')
    search_fields = ('original_filename',)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'user', 'type', 'is_read', 'created_at')
    list_filter = ('type', 'is_read')


@admin.register(ChatRoom)
class ChatRoomAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'organization', 'is_active', 'last_message_at')


admin.site.register(ChatParticipant)
admin.site.register(ChatMessage)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    readonly_fields = ('detail',)
