from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from portal.models import Notification

from .notifications import EVENT_DELETE, EVENT_INSERT, EVENT_UPDATE, publish


@receiver(post_save, sender=Notification)
def notification_saved(sender, instance, created, **kwargs):
    publish(EVENT_INSERT if created else EVENT_UPDATE, instance)


@receiver(post_delete, sender=Notification)
def notification_deleted(sender, instance, **kwargs):
    publish(EVENT_DELETE, instance)
