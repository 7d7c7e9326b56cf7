"""
File storage, visibility rules and the document view over files.

A file is visible to its owner, to everyone when ``permissions.public`` is
set, to members of a listed department, to listed employees and to
managers. Documents are files with a category, either stored explicitly
or derived from the file name and MIME type.
"""
from __future__ import annotations

import logging
import mimetypes
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum

from portal.access import UserPermissions, can_delete_file, ensure_organization_access, scope_queryset
from portal.exceptions import AccessDenied, InvalidInput, NotFound
from portal.models import Department, File, Task
from portal.services import notifications

logger = logging.getLogger(__name__)

CATEGORY_KEYWORDS = [
    ('policy', ('policy', '정책', '규정')),
    ('manual', ('manual', '매뉴얼', '가이드')),
    ('template', ('template', '템플릿', '양식')),
    ('announcement', ('announcement', '공지', '알림')),
]
FORM_MIME_MARKERS = ('pdf', 'word', 'text')
CATEGORIES = [c for c, _ in File.CATEGORY_CHOICES]

KIND_RULES = [
    ('image', ('image/',)),
    ('video', ('video/',)),
    ('audio', ('audio/',)),
    ('pdf', ('application/pdf',)),
    ('spreadsheet', ('spreadsheet', 'excel', 'text/csv')),
    ('document', ('word', 'text/', 'presentation', 'powerpoint', 'hwp')),
    ('archive', ('zip', 'compressed', 'x-tar', 'x-7z', 'x-rar')),
]
KINDS = [k for k, _ in KIND_RULES] + ['other']


def derive_category(filename: str, mime_type: str = '') -> str:
    """Document category from keywords in the name, then the MIME type."""
    name = (filename or '').lower()
    for category, words in CATEGORY_KEYWORDS:
        if any(w in name for w in words):
            return category
    mime = (mime_type or '').lower()
    if any(m in mime for m in FORM_MIME_MARKERS):
        return 'form'
    return 'other'


def category_of(f: File) -> str:
    return f.category or derive_category(f.original_filename, f.mime_type)


def file_kind(mime_type: str) -> str:
    mime = (mime_type or '').lower()
    for kind, markers in KIND_RULES:
        if any(m in mime for m in markers):
            return kind
    return 'other'


def normalize_permissions(raw: Optional[dict]) -> dict:
    raw = raw or {}
    return {
        'public': bool(raw.get('public', False)),
        'departments': notifications.unique_ids(raw.get('departments') or []),
        'employees': notifications.unique_ids(raw.get('employees') or []),
    }


def serialize_file(f: File) -> dict:
    perms = normalize_permissions(f.permissions)
    return {
        'id': str(f.id),
        'organizationId': str(f.organization_id),
        'ownerId': str(f.owner_id) if f.owner_id else None,
        'ownerName': f.owner.name if f.owner_id else None,
        'departmentId': str(f.department_id) if f.department_id else None,
        'departmentName': f.department.name if f.department_id else None,
        'taskId': str(f.task_id) if f.task_id else None,
        'filename': f.filename,
        'originalFilename': f.original_filename,
        'fileUrl': f.blob.url if f.blob else None,
        'fileSize': f.file_size,
        'mimeType': f.mime_type,
        'kind': file_kind(f.mime_type),
        'category': category_of(f),
        'description': f.description,
        'permissions': perms,
        'isPublic': perms['public'],
        'uploadedAt': f.uploaded_at.isoformat() if f.uploaded_at else None,
    }


def is_visible(f: File, perms: UserPermissions) -> bool:
    if perms.employee is None:
        return False
    if perms.is_manager:
        return True
    if f.owner_id and str(f.owner_id) == perms.employee_id:
        return True
    p = normalize_permissions(f.permissions)
    if p['public']:
        return True
    if perms.department_id and perms.department_id in p['departments']:
        return True
    return perms.employee_id in p['employees']


def _base_qs():
    return File.objects.select_related('owner', 'department')


def list_files(perms: UserPermissions, *, organization_id=None, search: str = '', department_id=None,
               task_id=None, kind: Optional[str] = None, owner_id=None) -> list[File]:
    qs = scope_queryset(_base_qs(), perms, organization_id)
    if search:
        qs = qs.filter(Q(original_filename__icontains=search) | Q(description__icontains=search))
    if department_id:
        qs = qs.filter(department_id=department_id)
    if task_id:
        qs = qs.filter(task_id=task_id)
    if owner_id:
        qs = qs.filter(owner_id=owner_id)
    files = [f for f in qs.order_by('-uploaded_at') if is_visible(f, perms)]
    if kind:
        files = [f for f in files if file_kind(f.mime_type) == kind]
    return files


def get_file(perms: UserPermissions, file_id) -> File:
    f = scope_queryset(_base_qs(), perms).filter(id=file_id).first()
    if f is None or not is_visible(f, perms):
        raise NotFound('file not found')
    return f


def validate_upload(upload) -> str:
    """Check size and type limits; returns the MIME type to store."""
    size_mb = (upload.size or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise InvalidInput(f'file exceeds the {settings.UPLOAD_MAX_MB} MB limit', code='file_too_large')
    ctype = getattr(upload, 'content_type', '') or mimetypes.guess_type(upload.name)[0] or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise InvalidInput('unsupported file type', code='unsupported_type')
    return ctype


def upload_file(perms: UserPermissions, upload, *, organization_id=None, department_id=None, task_id=None,
                permissions: Optional[dict] = None, category: str = '', description: str = '') -> File:
    organization_id = organization_id or perms.organization_id
    if not organization_id:
        raise InvalidInput('organization is required')
    ensure_organization_access(perms, organization_id)
    mime_type = validate_upload(upload)
    if category and category not in CATEGORIES:
        raise InvalidInput(f'unknown category {category!r}')
    if department_id and not Department.objects.filter(id=department_id, organization_id=organization_id).exists():
        raise InvalidInput('department belongs to another organization')
    if task_id and not Task.objects.filter(id=task_id, organization_id=organization_id).exists():
        raise InvalidInput('task belongs to another organization')
    file_perms = normalize_permissions(permissions)
    with transaction.atomic():
        f = File(
            organization_id=organization_id,
            owner=perms.employee,
            department_id=department_id,
            task_id=task_id,
            original_filename=upload.name,
            file_size=upload.size or 0,
            mime_type=mime_type,
            category=category or '',
            description=description or '',
            permissions=file_perms,
        )
        f.blob.save(upload.name, upload, save=False)
        f.filename = f.blob.name
        f.save()
    logger.info('file uploaded: %s (%s bytes) by %s', f.original_filename, f.file_size, perms.employee_id)
    notifications.notify_file(f, file_perms['employees'], 'uploaded')
    return f


def share_file(perms: UserPermissions, file_id, permissions: dict) -> File:
    f = get_file(perms, file_id)
    if not can_delete_file(perms.role, perms.employee_id, f):
        raise AccessDenied('only the owner or a manager can change sharing')
    before = set(normalize_permissions(f.permissions)['employees'])
    f.permissions = normalize_permissions(permissions)
    f.save(update_fields=['permissions', 'updated_at'])
    added = [e for e in f.permissions['employees'] if e not in before]
    notifications.notify_file(f, added, 'shared')
    return f


def delete_file(perms: UserPermissions, file_id) -> None:
    f = get_file(perms, file_id)
    if not can_delete_file(perms.role, perms.employee_id, f):
        raise AccessDenied('only the owner or a manager can delete this file')
    storage, name = f.blob.storage, f.blob.name
    f.delete()
    if name:
        transaction.on_commit(lambda: storage.delete(name))


def file_stats(files: Iterable[File]) -> dict:
    items = list(files)
    by_kind = {k: 0 for k in KINDS}
    public = 0
    for f in items:
        by_kind[file_kind(f.mime_type)] += 1
        if normalize_permissions(f.permissions)['public']:
            public += 1
    return {
        'total': len(items),
        'totalSize': sum(f.file_size or 0 for f in items),
        'public': public,
        'private': len(items) - public,
        'byKind': by_kind,
    }


def total_size(qs) -> int:
    return qs.aggregate(s=Sum('file_size'))['s'] or 0


# ---------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------
def list_documents(perms: UserPermissions, *, organization_id=None, search: str = '', department_id=None,
                   category: Optional[str] = None) -> list[File]:
    files = list_files(perms, organization_id=organization_id, search=search, department_id=department_id)
    if category and category != 'all':
        files = [f for f in files if category_of(f) == category]
    return files


def category_counts(files: Iterable[File]) -> dict:
    counts = {c: 0 for c in CATEGORIES}
    for f in files:
        counts[category_of(f)] += 1
    counts['all'] = sum(counts.values())
    return counts
