from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    dependencies = [
        ("orders", "0001_initial"),
        ("partners", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DeliveryEarning",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("delivery_duration_minutes", models.FloatField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("order", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="earning", to="orders.order")),
                ("partner", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="earnings", to="partners.partnerprofile")),
            ],
            options={"db_table": "delivery_earnings"},
        ),
    ]
