"""Domain models for the notification dispatch pipeline."""

from .models import DeliveryState, Notification, PendingDelivery, Recipient, Urgency

__all__ = ["DeliveryState", "Notification", "PendingDelivery", "Recipient", "Urgency"]
