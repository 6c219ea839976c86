import structlog
from celery import shared_task

from modules.core.exceptions import DomainError
from modules.referrals.services import ReferralService

logger = structlog.get_logger(__name__)


@shared_task(name="referrals.create_commission")
def create_commission(order_id: str):
    """Create the referral commission for a completed order.

    Failures are logged and never propagate: the order transition that
    enqueued this task has already committed.
    """
    from modules.orders.models import Order

    log = logger.bind(order_id=order_id)
    order = Order.objects.filter(id=order_id).first()
    if order is None:
        log.warning("referral.commission_skipped", reason="order_not_found")
        return None

    try:
        commission = ReferralService().create_commission(order)
    except DomainError as exc:
        log.warning("referral.commission_failed", error=exc.code, detail=str(exc))
        return None

    return str(commission.id) if commission else None
