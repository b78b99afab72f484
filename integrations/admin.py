from django.contrib import admin
from .models import InboundChangeNotification

@admin.register(InboundChangeNotification)
class InboundChangeNotificationAdmin(admin.ModelAdmin):
    list_display = ("message_id", "record_type", "record_id", "applied", "received_at", "processed_at")
    list_filter = ("record_type", "applied")
    search_fields = ("message_id",)
