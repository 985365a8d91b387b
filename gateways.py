"""
Mock mobile-money and SMS gateways.

Both stand in for the EcoCash/OneMoney and bulk-SMS providers; swap the bodies
for real API calls when credentials are available.
"""
import time
import random
import logging
from typing import Any, Dict, NamedTuple, Optional

from config import PAYMENT_PROCESSING_DELAY

logger = logging.getLogger(__name__)


class PaymentResult(NamedTuple):
    success: bool
    transaction_id: Optional[str] = None


def process_payment(payment: Dict[str, Any]) -> PaymentResult:
    time.sleep(PAYMENT_PROCESSING_DELAY)
    result = PaymentResult(
        success=random.random() > 0.1,
        transaction_id=f"TXN{int(time.time() * 1000)}",
    )
    logger.info("Payment gateway result for %s: %s", payment.get("id"), "success" if result.success else "declined")
    return result


def send_sms(sms: Dict[str, Any]) -> None:
    logger.info("Sending SMS to %s (%s): %s", sms.get("recipient"), sms.get("type"), sms.get("message"))
