from rest_framework import serializers

from portal.models import EmployeeOrganizationAccess, Organization


class OrganizationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    type = serializers.ChoiceField(choices=[c for c, _ in Organization.TYPE_CHOICES], required=False)
    address = serializers.CharField(max_length=500, required=False, allow_blank=True)
    contactEmail = serializers.EmailField(source='contact_email', required=False, allow_blank=True)
    contactPhone = serializers.CharField(source='contact_phone', max_length=50, required=False, allow_blank=True)
    representative = serializers.CharField(max_length=100, required=False, allow_blank=True)
    logoUrl = serializers.URLField(source='logo_url', max_length=500, required=False, allow_blank=True)

    def validate_name(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('name is required')
        return v


class OrganizationQuerySerializer(serializers.Serializer):
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=[c for c, _ in Organization.TYPE_CHOICES], required=False)


class AccessGrantSerializer(serializers.Serializer):
    employeeId = serializers.UUIDField(source='employee_id')
    organizationId = serializers.UUIDField(source='organization_id')
    accessLevel = serializers.ChoiceField(
        source='access_level', choices=[c for c, _ in EmployeeOrganizationAccess.LEVEL_CHOICES]
    )
    expiresAt = serializers.DateTimeField(source='expires_at', required=False, allow_null=True)


class DepartmentSerializer(serializers.Serializer):
    organizationId = serializers.UUIDField(source='organization_id', required=False)
    parentId = serializers.UUIDField(source='parent_id', required=False, allow_null=True)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)

    def validate_name(self, v):
        v = v.strip()
        if not v:
            raise serializers.ValidationError('name is required')
        return v
