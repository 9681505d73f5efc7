"""Stripe payment intents, refunds and webhook verification."""

import json
import logging
from dataclasses import dataclass

import stripe
from stripe import SignatureVerificationError

from apex_parking.core.config import get_settings
from apex_parking.core.domain_exceptions import DomainException
from apex_parking.core.error_codes import ErrorCode

logger = logging.getLogger(__name__)

# Stripe webhook payloads are a few KB; anything this large is not from Stripe.
MAX_WEBHOOK_PAYLOAD_BYTES = 100 * 1024


@dataclass(frozen=True)
class PaymentIntentResult:
    id: str
    client_secret: str


def _configure() -> None:
    api_key = get_settings().stripe_secret_key
    if not api_key:
        raise DomainException(
            code=ErrorCode.PAYMENT_ERROR,
            message="Payment processing is not configured.",
            status_code=503,
        )
    stripe.api_key = api_key


def create_payment_intent(
    amount: int,
    metadata: dict[str, str],
    receipt_email: str | None = None,
) -> PaymentIntentResult:
    """Authorize `amount` minor units in the configured currency."""
    _configure()
    params = {
        "amount": amount,
        "currency": get_settings().currency,
        "metadata": metadata,
    }
    if receipt_email:
        params["receipt_email"] = receipt_email

    try:
        intent = stripe.PaymentIntent.create(**params)
    except stripe.StripeError as exc:
        logger.error("Stripe payment intent creation failed: %s", exc)
        raise DomainException(
            code=ErrorCode.PAYMENT_ERROR,
            message="Payment could not be started. Please try again.",
            status_code=502,
        ) from exc

    logger.info("Created payment intent %s for %d", intent.id, amount)
    return PaymentIntentResult(id=intent.id, client_secret=intent.client_secret)


class RefundError(Exception):
    """Stripe did not accept or could not report a refund."""


def refund_payment(payment_intent_id: str) -> str:
    """Refund a captured payment in full and return the refund id."""
    _configure()
    try:
        refund = stripe.Refund.create(payment_intent=payment_intent_id)
    except stripe.StripeError as exc:
        logger.error("Refund failed for payment intent %s: %s", payment_intent_id, exc)
        raise RefundError(f"Refund failed for {payment_intent_id}") from exc
    logger.info("Refunded payment intent %s (refund %s)", payment_intent_id, refund.id)
    return refund.id


def has_refund(payment_intent_id: str) -> bool:
    """True when Stripe holds a refund for the intent that has not failed or been canceled."""
    _configure()
    try:
        refunds = stripe.Refund.list(payment_intent=payment_intent_id, limit=10)
    except stripe.StripeError as exc:
        logger.error("Could not list refunds for payment intent %s: %s", payment_intent_id, exc)
        raise RefundError(f"Refund lookup failed for {payment_intent_id}") from exc
    return any(refund.status not in ("failed", "canceled") for refund in refunds.data)


def construct_event(payload: bytes | str, sig_header: str | None) -> dict:
    """Verify a webhook signature and return the event as plain JSON data.

    Raises ValueError for malformed payloads and SignatureVerificationError
    for a missing or wrong signature.
    """
    secret = get_settings().stripe_webhook_secret
    if not secret:
        raise SignatureVerificationError("Webhook secret is not configured.", sig_header)
    if not sig_header:
        raise SignatureVerificationError("Missing Stripe-Signature header.", sig_header)
    stripe.Webhook.construct_event(payload, sig_header, secret)
    return json.loads(payload)
