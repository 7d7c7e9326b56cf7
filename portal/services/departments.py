from __future__ import annotations

from typing import Optional

from django.db import transaction

from portal.access import UserPermissions, ensure_organization_access, scope_queryset
from portal.exceptions import InvalidInput, NotFound
from portal.models import Department, Employee


def serialize_department(d: Department, *, counts: Optional[dict] = None) -> dict:
    data = {
        'id': str(d.id),
        'organizationId': str(d.organization_id),
        'parentId': str(d.parent_id) if d.parent_id else None,
        'name': d.name,
        'description': d.description,
        'createdAt': d.created_at.isoformat() if d.created_at else None,
        'updatedAt': d.updated_at.isoformat() if d.updated_at else None,
    }
    if counts is not None:
        data['employeeCount'] = counts.get(d.id, 0)
    return data


def list_departments(perms: UserPermissions, organization_id=None):
    return scope_queryset(Department.objects.all(), perms, organization_id).order_by('name')


def get_department(perms: UserPermissions, department_id) -> Department:
    d = scope_queryset(Department.objects.all(), perms).filter(id=department_id).first()
    if d is None:
        raise NotFound('department not found')
    return d


def validate_parent(department: Optional[Department], parent: Optional[Department], organization_id) -> None:
    """A parent must live in the same organization and must not be a descendant."""
    if parent is None:
        return
    if str(parent.organization_id) != str(organization_id):
        raise InvalidInput('parent department belongs to another organization')
    if department is None:
        return
    node = parent
    seen = set()
    while node is not None:
        if node.id == department.id:
            raise InvalidInput('department cannot be its own ancestor')
        if node.id in seen:
            break
        seen.add(node.id)
        node = node.parent


def _parent(parent_id) -> Optional[Department]:
    if not parent_id:
        return None
    parent = Department.objects.filter(id=parent_id).first()
    if parent is None:
        raise NotFound('parent department not found')
    return parent


def create_department(perms: UserPermissions, *, organization_id, name: str, description: str = '',
                      parent_id=None) -> Department:
    ensure_organization_access(perms, organization_id)
    parent = _parent(parent_id)
    validate_parent(None, parent, organization_id)
    return Department.objects.create(
        organization_id=organization_id,
        name=name.strip(),
        description=description or '',
        parent=parent,
    )


def update_department(perms: UserPermissions, department_id, data: dict) -> Department:
    d = get_department(perms, department_id)
    ensure_organization_access(perms, d.organization_id)
    if 'parent_id' in data:
        parent = _parent(data['parent_id'])
        validate_parent(d, parent, d.organization_id)
        d.parent = parent
    if 'name' in data:
        d.name = data['name'].strip()
    if 'description' in data:
        d.description = data['description'] or ''
    d.save()
    return d


@transaction.atomic
def delete_department(perms: UserPermissions, department_id) -> None:
    """Children move up to the deleted department's parent; employees become unassigned."""
    d = get_department(perms, department_id)
    ensure_organization_access(perms, d.organization_id)
    Department.objects.filter(parent=d).update(parent=d.parent)
    d.delete()


def build_tree(departments) -> list[dict]:
    """Nest departments under their parents; orphans become roots."""
    departments = list(departments)
    counts: dict = {}
    for row in Employee.objects.filter(department__in=departments).values_list('department_id', flat=True):
        counts[row] = counts.get(row, 0) + 1
    nodes = {d.id: {**serialize_department(d, counts=counts), 'children': []} for d in departments}
    roots: list[dict] = []
    for d in departments:
        node = nodes[d.id]
        if d.parent_id and d.parent_id in nodes:
            nodes[d.parent_id]['children'].append(node)
        else:
            roots.append(node)
    return roots
