import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("payment_received", "Payment received"),
                            ("flat_under_review", "Flat under review"),
                            ("booking_cancelled", "Booking cancelled"),
                            ("payout_due", "Payout due"),
                            ("payment_anomaly", "Payment needs refund"),
                        ],
                        max_length=30,
                    ),
                ),
                ("message", models.TextField()),
                (
                    "related_listing_kind",
                    models.CharField(blank=True, choices=[("flat", "Flat"), ("pg", "PG")], max_length=10),
                ),
                ("related_listing_id", models.PositiveBigIntegerField(blank=True, null=True)),
                ("is_read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "related_booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notifications",
                        to="bookings.booking",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["user", "is_read"], name="notificatio_user_id_2e4a1c_idx"),
                ],
            },
        ),
    ]
