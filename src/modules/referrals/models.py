from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from modules.core.models import BaseModel


class CommissionType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed"


class ReferralCodeStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class CommissionStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class ReferralCode(BaseModel):
    code = models.CharField(max_length=50, unique=True, db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="referral_codes",
    )
    status = models.CharField(
        max_length=20,
        choices=ReferralCodeStatus.choices,
        default=ReferralCodeStatus.ACTIVE,
    )
    commission_type = models.CharField(
        max_length=20,
        choices=CommissionType.choices,
        default=CommissionType.PERCENTAGE,
    )
    commission_value = models.DecimalField(max_digits=12, decimal_places=2)
    conversions_count = models.PositiveIntegerField(default=0)
    total_commission = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        db_table = "referral_codes"
        constraints = [
            models.CheckConstraint(
                condition=Q(commission_value__gte=0),
                name="referral_commission_value_non_negative",
            ),
        ]

    def __str__(self):
        return self.code

    def calculate_commission(self, grand_total: Decimal) -> Decimal:
        if self.commission_type == CommissionType.PERCENTAGE:
            amount = grand_total * self.commission_value / Decimal("100")
            return amount.quantize(Decimal("0.01"))
        return self.commission_value


class Commission(BaseModel):
    referral_code = models.ForeignKey(
        ReferralCode, on_delete=models.PROTECT, related_name="commissions"
    )
    order = models.OneToOneField(
        "orders.Order", on_delete=models.PROTECT, related_name="commission"
    )
    referee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(
        max_length=20,
        choices=CommissionStatus.choices,
        default=CommissionStatus.PENDING,
    )

    class Meta:
        db_table = "referral_commissions"

    def __str__(self):
        return f"{self.referral_code_id} -> {self.order_id}: {self.amount}"
