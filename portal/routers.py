"""
URL mappings for the intranet API.

Paths carry no trailing slash (``APPEND_SLASH`` is off). Every route is
named so tests and clients can ``reverse()`` them.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view, me_view, signup_view
from .views import (
    departments,
    employees,
    files,
    health,
    messenger,
    notifications,
    organizations,
    reports,
    schedules,
    settings,
    tasks,
)

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='auth-login'),
    path('api/auth/signup', signup_view, name='auth-signup'),
    path('api/auth/refresh', jwt_refresh_view, name='auth-refresh'),
    path('api/auth/logout', jwt_logout_view, name='auth-logout'),
    path('api/auth/me', me_view, name='auth-me'),
    # Organizations and access grants
    path('api/organizations', organizations.organizations_list, name='organizations'),
    path('api/organizations/accessible', organizations.accessible_organizations, name='organizations-accessible'),
    path('api/organizations/<uuid:pk>', organizations.organization_detail, name='organization-detail'),
    path('api/organization-access', organizations.access_grants, name='access-grants'),
    path('api/organization-access/<uuid:pk>', organizations.access_grant_revoke, name='access-grant-revoke'),
    # Departments
    path('api/departments', departments.departments_list, name='departments'),
    path('api/departments/tree', departments.department_tree, name='departments-tree'),
    path('api/departments/<uuid:pk>', departments.department_detail, name='department-detail'),
    # Employees
    path('api/employees', employees.employees_list, name='employees'),
    path('api/employees/export', employees.employees_export, name='employees-export'),
    path('api/employees/stats', employees.employees_stats, name='employees-stats'),
    path('api/employees/<uuid:pk>', employees.employee_detail, name='employee-detail'),
    path('api/invite-employee', employees.invite_employee, name='invite-employee'),
    path('api/link-auth-user', employees.link_auth_user, name='link-auth-user'),
    path('api/assign-default-organization', employees.assign_default_organization,
         name='assign-default-organization'),
    # Tasks
    path('api/tasks', tasks.tasks_list, name='tasks'),
    path('api/tasks/board', tasks.tasks_board, name='tasks-board'),
    path('api/tasks/stats', tasks.tasks_stats, name='tasks-stats'),
    path('api/tasks/<uuid:pk>', tasks.task_detail, name='task-detail'),
    # Schedules
    path('api/schedules', schedules.schedules_list, name='schedules'),
    path('api/schedules/calendar', schedules.schedules_calendar, name='schedules-calendar'),
    path('api/schedules/day', schedules.schedules_day, name='schedules-day'),
    path('api/schedules/stats', schedules.schedules_stats, name='schedules-stats'),
    path('api/schedules/<uuid:pk>', schedules.schedule_detail, name='schedule-detail'),
    # Files and documents
    path('api/files', files.files_list, name='files'),
    path('api/files/stats', files.files_stats, name='files-stats'),
    path('api/files/<uuid:pk>', files.file_detail, name='file-detail'),
    path('api/files/<uuid:pk>/download', files.file_download, name='file-download'),
    path('api/files/<uuid:pk>/share', files.file_share, name='file-share'),
    path('api/documents', files.documents_list, name='documents'),
    path('api/documents/stats', files.documents_stats, name='documents-stats'),
    # Notifications
    path('api/notifications', notifications.notifications_list, name='notifications'),
    path('api/notifications/unread-count', notifications.notifications_unread_count,
         name='notifications-unread-count'),
    path('api/notifications/read', notifications.notifications_mark_read, name='notifications-read'),
    path('api/notifications/unread', notifications.notifications_mark_unread, name='notifications-unread'),
    path('api/notifications/delete', notifications.notifications_delete, name='notifications-delete'),
    path('api/notifications/create', notifications.notifications_create, name='notifications-create'),
    path('api/notifications/announce', notifications.notifications_announce, name='notifications-announce'),
    path('api/notifications/stats', notifications.notifications_stats, name='notifications-stats'),
    path('api/notifications/<uuid:pk>/read', notifications.notification_read, name='notification-read'),
    # Reports and dashboard
    path('api/dashboard', reports.dashboard, name='dashboard'),
    path('api/reports/<str:kind>', reports.report_view, name='report'),
    # Settings
    path('api/settings/profile', settings.profile, name='settings-profile'),
    path('api/settings/password', settings.change_password, name='settings-password'),
    # Messenger
    path('api/messenger/rooms', messenger.rooms_list, name='chat-rooms'),
    path('api/messenger/rooms/<uuid:pk>', messenger.room_detail, name='chat-room'),
    path('api/messenger/rooms/<uuid:pk>/participants', messenger.room_participants, name='chat-participants'),
    path('api/messenger/rooms/<uuid:pk>/participants/<uuid:employee_id>', messenger.room_participant_remove,
         name='chat-participant-remove'),
    path('api/messenger/rooms/<uuid:pk>/messages', messenger.room_messages, name='chat-messages'),
    path('api/messenger/rooms/<uuid:pk>/read', messenger.room_mark_read, name='chat-read'),
    path('api/messenger/messages/<uuid:pk>', messenger.message_edit, name='chat-message-edit'),
    path('api/messenger/messages/<uuid:pk>/reactions', messenger.message_react, name='chat-message-react'),
]
