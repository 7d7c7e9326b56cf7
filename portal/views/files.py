"""
File and document views.

Uploads are multipart (``file`` plus optional metadata, ``permissions`` as a
JSON string). Downloads stream through Django so visibility rules apply.
"""
from __future__ import annotations

from django.http import FileResponse
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFound
from ..permissions import HasEmployee
from ..serializers.files import FileQuerySerializer, FileShareSerializer, FileUploadSerializer
from ..services import files as svc
from ..services.audit import audit
from .common import paginated, perms_for


def _query(request):
    q = FileQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return q.validated_data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def files_list(request):
    perms = perms_for(request)
    if request.method == 'GET':
        v = _query(request)
        items = svc.list_files(
            perms,
            organization_id=v.get('organizationId'),
            search=v.get('search', ''),
            department_id=v.get('departmentId'),
            task_id=v.get('taskId'),
            kind=v.get('kind'),
        )
        return paginated(request, items, svc.serialize_file)

    s = FileUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    f = svc.upload_file(
        perms,
        v['file'],
        organization_id=v.get('organization_id'),
        department_id=v.get('department_id'),
        task_id=v.get('task_id'),
        permissions=v.get('permissions'),
        category=v.get('category', ''),
        description=v.get('description', ''),
    )
    audit(request, 'file_upload', object_type='file', object_id=f.id,
          detail={'name': f.original_filename, 'size': f.file_size})
    return Response({'ok': True, 'data': svc.serialize_file(f)}, status=201)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated, HasEmployee])
def file_detail(request, pk):
    perms = perms_for(request)
    if request.method == 'GET':
        return Response({'ok': True, 'data': svc.serialize_file(svc.get_file(perms, pk))})

    svc.delete_file(perms, pk)
    audit(request, 'file_delete', object_type='file', object_id=pk)
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def file_download(request, pk):
    f = svc.get_file(perms_for(request), pk)
    if not f.blob or not f.blob.storage.exists(f.blob.name):
        raise NotFound('file content is missing')
    audit(request, 'file_download', object_type='file', object_id=f.id)
    return FileResponse(
        f.blob.open('rb'),
        as_attachment=True,
        filename=f.original_filename,
        content_type=f.mime_type or 'application/octet-stream',
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def file_share(request, pk):
    s = FileShareSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    f = svc.share_file(perms_for(request), pk, s.validated_data['permissions'])
    audit(request, 'file_share', object_type='file', object_id=f.id, detail=f.permissions)
    return Response({'ok': True, 'data': svc.serialize_file(f)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def files_stats(request):
    v = _query(request)
    items = svc.list_files(perms_for(request), organization_id=v.get('organizationId'))
    return Response({'ok': True, 'data': svc.file_stats(items)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def documents_list(request):
    """Files viewed as categorized documents."""
    v = _query(request)
    items = svc.list_documents(
        perms_for(request),
        organization_id=v.get('organizationId'),
        search=v.get('search', ''),
        department_id=v.get('departmentId'),
        category=v.get('category'),
    )
    return paginated(request, items, svc.serialize_file)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def documents_stats(request):
    v = _query(request)
    items = svc.list_documents(
        perms_for(request),
        organization_id=v.get('organizationId'),
        search=v.get('search', ''),
        department_id=v.get('departmentId'),
    )
    return Response({'ok': True, 'data': svc.category_counts(items)})
