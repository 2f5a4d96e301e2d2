from django.db import models
from django.utils import timezone


class KYCStatus(models.TextChoices):
    NOT_SUBMITTED = "not_submitted", "Not submitted"
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class PartnerProfile(models.Model):
    name = models.CharField(max_length=120, blank=True, default="")
    kyc_status = models.CharField(
        max_length=16, choices=KYCStatus.choices, default=KYCStatus.NOT_SUBMITTED
    )
    is_online = models.BooleanField(default=False)
    # última muestra de ubicación; solo se conserva la más reciente
    last_lat = models.FloatField(null=True, blank=True)
    last_lng = models.FloatField(null=True, blank=True)
    last_location_at = models.DateTimeField(null=True, blank=True)
    delivery_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "partner_profiles"

    def __str__(self):
        return f"{self.pk}:{self.name or '-'}:{self.kyc_status}"

    @property
    def last_location(self):
        if self.last_lat is None or self.last_lng is None:
            return None
        return (self.last_lat, self.last_lng)


class DeliveryEarning(models.Model):
    # order es UNIQUE: clave de idempotencia del ledger
    order = models.OneToOneField(
        "orders.Order", on_delete=models.PROTECT, related_name="earning"
    )
    partner = models.ForeignKey(
        PartnerProfile, on_delete=models.PROTECT, related_name="earnings"
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    delivery_duration_minutes = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "delivery_earnings"

    def __str__(self):
        return f"{self.order_id}:{self.partner_id}:{self.amount}"


class WithdrawalStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    REJECTED = "rejected", "Rejected"


class Withdrawal(models.Model):
    partner = models.ForeignKey(
        PartnerProfile, on_delete=models.PROTECT, related_name="withdrawals"
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    method = models.CharField(max_length=32)
    account_details = models.CharField(max_length=255)
    status = models.CharField(
        max_length=16, choices=WithdrawalStatus.choices, default=WithdrawalStatus.PENDING
    )
    admin_notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "withdrawals"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.partner_id}:{self.amount}:{self.status}"
