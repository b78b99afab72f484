from django.db import models

class InboundChangeNotification(models.Model):
    """
    Change notifications already applied, keyed by message id,
    so the same notification is never applied twice.
    """
    RECORD_RENTAL = "rental"
    RECORD_VEHICLE = "vehicle"
    RECORD_CHOICES = [
        (RECORD_RENTAL, "Rental"),
        (RECORD_VEHICLE, "Vehicle"),
    ]

    message_id = models.CharField(max_length=255, unique=True)
    record_type = models.CharField(max_length=10, choices=RECORD_CHOICES)
    record_id = models.BigIntegerField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(auto_now_add=True)
    applied = models.BooleanField(default=False)
    payload = models.JSONField(default=dict, blank=True)

    def __str__(self):
        return self.message_id
