from rest_framework import serializers

from portal.models import Employee

ROLES = [c for c, _ in Employee.ROLE_CHOICES]
STATUSES = [c for c, _ in Employee.STATUS_CHOICES]


class EmployeeSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    position = serializers.CharField(max_length=100, required=False, allow_blank=True)
    hireDate = serializers.DateField(source='hire_date', required=False, allow_null=True)
    role = serializers.ChoiceField(choices=ROLES, required=False)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    organizationId = serializers.UUIDField(source='organization_id', required=False, allow_null=True)
    departmentId = serializers.UUIDField(source='department_id', required=False, allow_null=True)


class EmployeeQuerySerializer(serializers.Serializer):
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=ROLES, required=False)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    organizationId = serializers.UUIDField(required=False)
    departmentId = serializers.UUIDField(required=False)
    # legacy alias used by the export screen
    hospital = serializers.UUIDField(required=False)


class InviteEmployeeSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    organizationId = serializers.UUIDField(required=False)
    hospital_id = serializers.UUIDField(required=False)
    role = serializers.ChoiceField(choices=ROLES)
    departmentId = serializers.UUIDField(required=False, allow_null=True)
    position = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def validate(self, attrs):
        org = attrs.get('organizationId') or attrs.get('hospital_id')
        if not org:
            raise serializers.ValidationError({'organizationId': 'organization is required'})
        attrs['organization_id'] = org
        return attrs


class LinkAuthUserSerializer(serializers.Serializer):
    employeeId = serializers.UUIDField(required=False)
    employee_id = serializers.UUIDField(required=False)

    def validate(self, attrs):
        eid = attrs.get('employeeId') or attrs.get('employee_id')
        if not eid:
            raise serializers.ValidationError({'employeeId': 'employee id is required'})
        return {'employee_id': eid}
