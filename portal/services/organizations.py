from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from portal.access import UserPermissions, ensure_organization_access, get_accessible_organizations, scope_queryset
from portal.exceptions import AccessDenied, Conflict, InvalidInput, NotFound
from portal.models import Department, Employee, EmployeeOrganizationAccess, Organization

logger = logging.getLogger(__name__)

ORG_FIELDS = ('name', 'type', 'address', 'contact_email', 'contact_phone', 'representative', 'logo_url')


def serialize_organization(org: Organization) -> dict:
    return {
        'id': str(org.id),
        'name': org.name,
        'type': org.type,
        'address': org.address,
        'contactEmail': org.contact_email,
        'contactPhone': org.contact_phone,
        'representative': org.representative,
        'logoUrl': org.logo_url,
        'createdAt': org.created_at.isoformat() if org.created_at else None,
        'updatedAt': org.updated_at.isoformat() if org.updated_at else None,
    }


def serialize_grant(grant: EmployeeOrganizationAccess) -> dict:
    return {
        'id': str(grant.id),
        'employeeId': str(grant.employee_id),
        'employeeName': grant.employee.name if grant.employee_id else None,
        'organizationId': str(grant.organization_id),
        'organizationName': grant.organization.name if grant.organization_id else None,
        'accessLevel': grant.access_level,
        'isActive': grant.is_active,
        'expiresAt': grant.expires_at.isoformat() if grant.expires_at else None,
        'createdAt': grant.created_at.isoformat() if grant.created_at else None,
    }


def list_organizations(perms: UserPermissions, *, search: str = '', type: Optional[str] = None):
    qs = Organization.objects.all()
    if not perms.is_admin:
        if perms.employee is None:
            return qs.none()
        qs = qs.filter(id__in=get_accessible_organizations(perms.employee).ids)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(representative__icontains=search) | Q(address__icontains=search))
    if type:
        qs = qs.filter(type=type)
    return qs.order_by('name')


def get_organization(perms: UserPermissions, organization_id) -> Organization:
    org = scope_queryset(Organization.objects.all(), perms, organization_id, field='id').first()
    if org is None:
        raise NotFound('organization not found')
    return org


def create_organization(data: dict) -> Organization:
    org = Organization(**{k: data[k] for k in ORG_FIELDS if k in data})
    org.save()
    logger.info('organization created: %s (%s)', org.name, org.id)
    return org


def update_organization(perms: UserPermissions, organization_id, data: dict) -> Organization:
    org = Organization.objects.filter(id=organization_id).first()
    if org is None:
        raise NotFound('organization not found')
    ensure_organization_access(perms, org.id, EmployeeOrganizationAccess.LEVEL_ADMIN)
    if not perms.is_admin and str(org.id) == perms.organization_id:
        raise AccessDenied('only administrators may edit their own organization')
    for k in ORG_FIELDS:
        if k in data:
            setattr(org, k, data[k])
    org.save()
    return org


def delete_organization(organization_id) -> None:
    org = Organization.objects.filter(id=organization_id).first()
    if org is None:
        raise NotFound('organization not found')
    if Employee.objects.filter(organization=org, status=Employee.STATUS_ACTIVE).exists():
        raise Conflict('organization still has active employees')
    org.delete()
    logger.info('organization deleted: %s', organization_id)


def organization_summary(org: Organization) -> dict:
    return {
        **serialize_organization(org),
        'employeeCount': Employee.objects.filter(organization=org).count(),
        'activeEmployeeCount': Employee.objects.filter(organization=org, status=Employee.STATUS_ACTIVE).count(),
        'departmentCount': Department.objects.filter(organization=org).count(),
    }


# ---------------------------------------------------------------------
# Access grants
# ---------------------------------------------------------------------
def list_grants(*, employee_id=None, organization_id=None, include_inactive: bool = False):
    qs = EmployeeOrganizationAccess.objects.select_related('employee', 'organization')
    if employee_id:
        qs = qs.filter(employee_id=employee_id)
    if organization_id:
        qs = qs.filter(organization_id=organization_id)
    if not include_inactive:
        qs = qs.filter(is_active=True).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=timezone.now()))
    return qs.order_by('-created_at')


@transaction.atomic
def grant_access(*, employee_id, organization_id, access_level: str, expires_at=None,
                 granted_by: Optional[Employee] = None) -> EmployeeOrganizationAccess:
    employee = Employee.objects.filter(id=employee_id).first()
    if employee is None:
        raise NotFound('employee not found')
    if not Organization.objects.filter(id=organization_id).exists():
        raise NotFound('organization not found')
    if employee.organization_id and str(employee.organization_id) == str(organization_id):
        raise InvalidInput('employee already belongs to this organization')
    if expires_at is not None and expires_at <= timezone.now():
        raise InvalidInput('expiry must be in the future')
    grant, _ = EmployeeOrganizationAccess.objects.update_or_create(
        employee=employee,
        organization_id=organization_id,
        defaults={
            'access_level': access_level,
            'expires_at': expires_at,
            'is_active': True,
            'granted_by': granted_by,
        },
    )
    return grant


def revoke_access(grant_id) -> EmployeeOrganizationAccess:
    grant = EmployeeOrganizationAccess.objects.filter(id=grant_id).first()
    if grant is None:
        raise NotFound('access grant not found')
    grant.is_active = False
    grant.save(update_fields=['is_active'])
    return grant
