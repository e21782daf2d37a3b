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
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.PositiveIntegerField(help_text="Minor currency units")),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "provider",
                    models.CharField(choices=[("razorpay", "Razorpay"), ("cashfree", "Cashfree")], max_length=20),
                ),
                ("order_ref", models.CharField(max_length=64, unique=True)),
                ("provider_order_id", models.CharField(max_length=100, unique=True)),
                ("provider_payment_id", models.CharField(blank=True, max_length=100)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "anomaly",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("", "None"),
                            ("cancelled_booking", "Captured after booking was cancelled"),
                            ("duplicate_capture", "Booking already paid by another payment"),
                        ],
                        default="",
                        max_length=30,
                    ),
                ),
                ("failure_reason", models.CharField(blank=True, max_length=255)),
                ("raw", models.JSONField(blank=True, default=dict, help_text="Last provider payload")),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.booking",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payments_pa_status_1c7e52_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "completed")),
                        fields=("booking",),
                        name="one_completed_payment_per_booking",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_positive_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "trigger",
                    models.CharField(
                        choices=[
                            ("verify", "Client verify"),
                            ("webhook", "Webhook"),
                            ("poll", "Status poll"),
                            ("sweep", "Periodic sweep"),
                        ],
                        max_length=20,
                    ),
                ),
                ("event", models.CharField(max_length=50)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "payment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment event",
                "verbose_name_plural": "Payment events",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
