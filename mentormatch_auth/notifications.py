"""
OTP delivery.

Issuing a code and sending it are separate steps. Flows return an
OTPNotification and the router hands it to ``deliver_otp`` as a FastAPI
background task, so a slow or failing mail provider never delays the
response or rolls back the stored code.
"""

from typing import Protocol

from pydantic import BaseModel, Field

from mentormatch_auth.logging import get_logger
from mentormatch_auth.types import OTPPurpose

log = get_logger(__name__)


class DeliveryResult(BaseModel):
    success: bool
    error: str | None = None


class OTPNotification(BaseModel):
    """Everything the email sender needs to deliver one code."""

    email: str
    code: str = Field(..., repr=False)
    purpose: OTPPurpose
    display_name: str | None = None


class EmailSender(Protocol):
    """Anything that can deliver an OTP email. OTPAuthConfig subclasses satisfy this."""

    async def send_otp(
        self,
        email: str,
        code: str,
        purpose: OTPPurpose,
        display_name: str | None,
    ) -> DeliveryResult | None: ...


async def deliver_otp(sender: EmailSender, notification: OTPNotification) -> DeliveryResult:
    """
    Send a code and report the outcome without raising.

    A sender returning None is treated as success. Failures are logged
    without the code; the OTP record is left untouched so the user can
    still verify it or request a resend.

    Args:
        sender: Email sender
        notification: Code and recipient

    Returns:
        DeliveryResult
    """
    try:
        result = await sender.send_otp(
            notification.email,
            notification.code,
            notification.purpose,
            notification.display_name,
        )
    except Exception as e:
        log.exception(
            "otp_delivery_failed",
            email=notification.email,
            purpose=notification.purpose.value,
            error_type=type(e).__name__,
        )
        return DeliveryResult(success=False, error=type(e).__name__)

    if result is None:
        result = DeliveryResult(success=True)

    if result.success:
        log.info(
            "otp_delivered", email=notification.email, purpose=notification.purpose.value
        )
    else:
        log.warning(
            "otp_delivery_failed",
            email=notification.email,
            purpose=notification.purpose.value,
            error=result.error,
        )
    return result
