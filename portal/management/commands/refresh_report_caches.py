from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache
from django.core.management.base import BaseCommand
from django.utils import timezone

from portal.models import Organization
from portal.services import reports


class Command(BaseCommand):
    help = "Warm report caches per organization; broadcast WebSocket refresh event."

    def add_arguments(self, parser):
        parser.add_argument('--range', dest='date_range', default='month', choices=sorted(reports.RANGES))

    def handle(self, *args, **options):
        now = timezone.now()
        date_range = options['date_range']
        keys_refreshed = []

        scopes = [None] + list(Organization.objects.values_list('id', flat=True))
        for org_id in scopes:
            for kind in reports.BUILDERS:
                key = reports.cache_key(kind, org_id, date_range)
                cache.delete(key)
                reports.build(kind, str(org_id) if org_id else None, date_range)
                keys_refreshed.append(key)

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            event = {"type": "broadcast.refresh", "version": int(now.timestamp()), "ts": now.isoformat(), "keys": keys_refreshed[:50]}
            async_to_sync(channel_layer.group_send)("updates", event)

        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(keys_refreshed)} keys at {now}"))
