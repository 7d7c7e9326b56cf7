from __future__ import annotations

from datetime import datetime, time, timedelta

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import HasEmployee
from ..serializers.schedules import (
    CalendarQuerySerializer,
    DayQuerySerializer,
    ScheduleQuerySerializer,
    ScheduleSerializer,
)
from ..services import calendar
from ..services import schedules as svc
from ..services.audit import audit
from .common import paginated, perms_for


def _filtered(request, perms):
    q = ScheduleQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    return svc.list_schedules(
        perms,
        organization_id=v.get('organizationId'),
        start=v.get('start'),
        end=v.get('end'),
        search=v.get('search', ''),
        mine=v.get('mine', False),
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasEmployee])
def schedules_list(request):
    perms = perms_for(request)
    if request.method == 'GET':
        return paginated(request, _filtered(request, perms), svc.serialize_schedule)

    s = ScheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    sched = svc.create_schedule(perms, dict(s.validated_data))
    audit(request, 'schedule_create', object_type='schedule', object_id=sched.id, detail={'title': sched.title})
    return Response({'ok': True, 'data': svc.serialize_schedule(sched)}, status=201)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasEmployee])
def schedule_detail(request, pk):
    perms = perms_for(request)
    if request.method == 'GET':
        return Response({'ok': True, 'data': svc.serialize_schedule(svc.get_schedule(perms, pk))})

    if request.method == 'PATCH':
        s = ScheduleSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        sched = svc.update_schedule(perms, pk, dict(s.validated_data))
        audit(request, 'schedule_update', object_type='schedule', object_id=sched.id)
        return Response({'ok': True, 'data': svc.serialize_schedule(sched)})

    svc.delete_schedule(perms, pk)
    audit(request, 'schedule_delete', object_type='schedule', object_id=pk)
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def schedules_calendar(request):
    """42-cell month grid with the schedules of each day."""
    q = CalendarQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    cells = svc.month_view(
        perms_for(request), v['year'], v['month'],
        organization_id=v.get('organizationId'),
        selected=v.get('selected'),
    )
    prev_year, prev_month = calendar.shift_month(v['year'], v['month'], -1)
    next_year, next_month = calendar.shift_month(v['year'], v['month'], 1)
    return Response({
        'ok': True,
        'data': {
            'year': v['year'],
            'month': v['month'],
            'days': cells,
            'previous': {'year': prev_year, 'month': prev_month},
            'next': {'year': next_year, 'month': next_month},
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def schedules_day(request):
    q = DayQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    day = q.validated_data['date']
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    items = svc.list_schedules(
        perms_for(request),
        organization_id=q.validated_data.get('organizationId'),
        start=start,
        end=start + timedelta(days=1),
    )
    return Response({
        'ok': True,
        'data': [svc.serialize_schedule(s) for s in calendar.schedules_for_date(items, day)],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasEmployee])
def schedules_stats(request):
    perms = perms_for(request)
    return Response({'ok': True, 'data': calendar.schedule_stats(_filtered(request, perms))})
