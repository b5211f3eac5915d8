import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Finance",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("finance_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_id", models.CharField(db_index=True, max_length=64)),
                ("brand", models.CharField(blank=True, max_length=128)),
                ("model_name", models.CharField(blank=True, max_length=128)),
                ("type", models.CharField(blank=True, max_length=64)),
                ("value", models.DecimalField(decimal_places=2, max_digits=18)),
                ("down_payment", models.DecimalField(decimal_places=2, default=0, max_digits=18)),
                ("count_of_months", models.PositiveIntegerField()),
                ("interest_rate", models.DecimalField(decimal_places=6, default=0, max_digits=9)),
                ("installment_value", models.DecimalField(decimal_places=2, max_digits=18)),
                ("finance_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("vehicle_specs", models.JSONField(blank=True, null=True)),
                ("status", models.CharField(
                    choices=[
                        ("pending", "Pending"),
                        ("approved", "Approved"),
                        ("in_progress", "In progress"),
                        ("rejected", "Rejected"),
                        ("completed", "Completed"),
                        ("cancelled", "Cancelled"),
                    ],
                    db_index=True, default="pending", max_length=32)),
                ("contract_status", models.CharField(
                    choices=[("unsigned", "Unsigned"), ("signed", "Signed")],
                    default="unsigned", max_length=16)),
                ("contract_signed_at", models.DateTimeField(blank=True, null=True)),
                ("deleted", models.BooleanField(db_index=True, default=False)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
