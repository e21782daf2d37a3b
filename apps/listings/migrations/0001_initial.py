import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="FlatListing",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("city", models.CharField(max_length=100)),
                ("colony", models.CharField(blank=True, max_length=100)),
                ("house_number", models.CharField(blank=True, max_length=50)),
                (
                    "rent_amount",
                    models.PositiveIntegerField(
                        help_text="Charge to secure a booking, in minor currency units.",
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "booked",
                    models.BooleanField(
                        default=False,
                        help_text="Hard availability gate; set once a handover is confirmed.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "bhk",
                    models.CharField(
                        choices=[("1BHK", "1 BHK"), ("2BHK", "2 BHK"), ("3BHK", "3 BHK")],
                        default="1BHK",
                        max_length=10,
                    ),
                ),
                (
                    "review_status",
                    models.CharField(
                        choices=[
                            ("none", "Not under review"),
                            ("under_review", "Under review"),
                            ("confirmed", "Handover confirmed"),
                        ],
                        default="none",
                        max_length=20,
                    ),
                ),
                (
                    "assigned_broker",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_flats",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="%(class)s_set",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Flat listing",
                "verbose_name_plural": "Flat listings",
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["owner"], name="listings_fl_owner_i_5c1e2a_idx"),
                    models.Index(fields=["review_status"], name="listings_fl_review__8d3f41_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PGListing",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("city", models.CharField(max_length=100)),
                ("colony", models.CharField(blank=True, max_length=100)),
                ("house_number", models.CharField(blank=True, max_length=50)),
                (
                    "rent_amount",
                    models.PositiveIntegerField(
                        help_text="Charge to secure a booking, in minor currency units.",
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("currency", models.CharField(default="INR", max_length=3)),
                (
                    "booked",
                    models.BooleanField(
                        default=False,
                        help_text="Hard availability gate; set once a handover is confirmed.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "number_of_rooms",
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="%(class)s_set",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "PG listing",
                "verbose_name_plural": "PG listings",
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["owner"], name="listings_pg_owner_i_7a90b3_idx"),
                ],
            },
        ),
    ]
