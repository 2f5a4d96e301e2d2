import uuid

from django.db import models
from django.utils import timezone


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    READY_FOR_PICKUP = "ready_for_pickup", "Ready for pickup"
    DISPATCHED = "dispatched", "Dispatched"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


# estados en los que la orden tiene repartidor asignado
ASSIGNED_STATUSES = (
    OrderStatus.DISPATCHED,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)
CLAIMABLE_STATUSES = (OrderStatus.READY_FOR_PICKUP, OrderStatus.CONFIRMED)
IN_TRANSIT_STATUSES = (OrderStatus.DISPATCHED, OrderStatus.OUT_FOR_DELIVERY)
TERMINAL_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class Order(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=64, unique=True)
    customer_id = models.CharField(max_length=64)
    delivery_partner = models.ForeignKey(
        "partners.PartnerProfile",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=32, choices=OrderStatus.choices, default=OrderStatus.PENDING
    )
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    delivery_address = models.TextField()
    resolved_lat = models.FloatField(null=True, blank=True)
    resolved_lng = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    accepted_at = models.DateTimeField(null=True, blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    delivery_duration_minutes = models.FloatField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)
    version = models.IntegerField(default=0)  # control optimista

    class Meta:
        db_table = "orders"
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["created_at"], name="orders_created_at_idx"),
        ]

    def __str__(self):
        return f"{self.order_number}:{self.status}:{self.version}"

    @property
    def destination(self):
        if self.resolved_lat is None or self.resolved_lng is None:
            return None
        return (self.resolved_lat, self.resolved_lng)


class OrderStatusEvent(models.Model):
    """Registro de solo inserción: una fila por transición aplicada."""

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="events")
    status = models.CharField(max_length=32, choices=OrderStatus.choices)
    timestamp = models.DateTimeField(default=timezone.now)
    note = models.TextField(null=True, blank=True)

    class Meta:
        db_table = "order_status_events"
        ordering = ["timestamp", "id"]

    def __str__(self):
        return f"{self.order_id}:{self.status}@{self.timestamp.isoformat()}"
