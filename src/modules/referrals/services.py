"""Referral commissions for completed orders."""

from __future__ import annotations

from typing import Optional

import structlog
from django.db import IntegrityError, transaction
from django.db.models import F

from modules.referrals.exceptions import ReferralCodeInactive, ReferralCodeNotFound
from modules.referrals.models import Commission, ReferralCode, ReferralCodeStatus

logger = structlog.get_logger(__name__)


class ReferralService:
    def create_commission(self, order) -> Optional[Commission]:
        """Create the commission owed for *order*, at most once per order.

        Returns ``None`` when the order carries no referral reference and the
        existing commission when one was already recorded.

        Raises:
            ReferralCodeNotFound: the referenced code does not exist.
            ReferralCodeInactive: the code was deactivated.
        """
        if not order.referral_code_id:
            return None

        existing = Commission.objects.filter(order_id=order.id).first()
        if existing is not None:
            return existing

        log = logger.bind(order_id=str(order.id), referral_code_id=str(order.referral_code_id))
        try:
            with transaction.atomic():
                referral_code = (
                    ReferralCode.objects.select_for_update()
                    .filter(id=order.referral_code_id)
                    .first()
                )
                if referral_code is None:
                    raise ReferralCodeNotFound(order.referral_code_id)
                if referral_code.status != ReferralCodeStatus.ACTIVE:
                    raise ReferralCodeInactive(referral_code.code)

                amount = referral_code.calculate_commission(order.grand_total)
                commission = Commission.objects.create(
                    referral_code=referral_code,
                    order_id=order.id,
                    referee_id=order.user_id,
                    amount=amount,
                )
                ReferralCode.objects.filter(id=referral_code.id).update(
                    conversions_count=F("conversions_count") + 1,
                    total_commission=F("total_commission") + amount,
                )
        except IntegrityError:
            # Lost a race against another worker for the same order.
            return Commission.objects.get(order_id=order.id)

        log.info("referral.commission_created", amount=str(amount))
        return commission
