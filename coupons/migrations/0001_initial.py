from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("code", models.CharField(help_text="Stored uppercase", max_length=40, unique=True)),
                ("description", models.CharField(blank=True, max_length=255)),
                (
                    "discount_type",
                    models.CharField(
                        choices=[("percentage", "Percentage"), ("fixed", "Fixed amount")],
                        max_length=16,
                    ),
                ),
                (
                    "discount_value",
                    models.DecimalField(
                        decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)]
                    ),
                ),
                ("min_order_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("max_discount_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                (
                    "usage_limit",
                    models.PositiveIntegerField(blank=True, help_text="Empty for unlimited", null=True),
                ),
                ("used_count", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("valid_from", models.DateTimeField()),
                ("valid_until", models.DateTimeField()),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("valid_until__gt", models.F("valid_from"))),
                        name="coupon_validity_window",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("discount_value__gte", 0)),
                        name="coupon_discount_non_negative",
                    ),
                ],
            },
        ),
    ]
