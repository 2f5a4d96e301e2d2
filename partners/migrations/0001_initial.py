from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PartnerProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(blank=True, default="", max_length=120)),
                ("kyc_status", models.CharField(choices=[("not_submitted", "Not submitted"), ("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")], default="not_submitted", max_length=16)),
                ("is_online", models.BooleanField(default=False)),
                ("last_lat", models.FloatField(blank=True, null=True)),
                ("last_lng", models.FloatField(blank=True, null=True)),
                ("last_location_at", models.DateTimeField(blank=True, null=True)),
                ("delivery_count", models.PositiveIntegerField(default=0)),
            ],
            options={"db_table": "partner_profiles"},
        ),
        migrations.CreateModel(
            name="Withdrawal",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("method", models.CharField(max_length=32)),
                ("account_details", models.CharField(max_length=255)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("rejected", "Rejected")], default="pending", max_length=16)),
                ("admin_notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("partner", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="withdrawals", to="partners.partnerprofile")),
            ],
            options={"db_table": "withdrawals", "ordering": ["-created_at"]},
        ),
    ]
