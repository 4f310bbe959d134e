"""
Payment gateway adapter for authorization holds.

Holds are Stripe PaymentIntents created with ``capture_method="manual"``:
funds are authorized on the traveler's card and only move when the hold is
captured. The adapter maps SDK objects and errors onto the service's own
models and error taxonomy, and treats repeated calls against a hold that is
already in the requested terminal state as no-ops.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Protocol

import stripe

from ..exceptions import SignatureInvalidError, UpstreamPaymentError
from ..models.enums import HoldStatus
from ..models.payment import GatewayResultModel, HoldModel, PaymentEventModel
from .config import StripeConfig

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class PaymentGateway(Protocol):
    """Capability surface the booking lifecycle needs from a payment processor."""

    def create_hold(self, amount: Decimal, metadata: Dict[str, str],
                    idempotency_key: Optional[str] = None) -> HoldModel: ...

    def retrieve_hold(self, hold_id: str) -> HoldModel: ...

    def capture_hold(self, hold_id: str) -> GatewayResultModel: ...

    def cancel_hold(self, hold_id: str) -> GatewayResultModel: ...

    def refund(self, hold_id: str, amount: Optional[Decimal] = None) -> GatewayResultModel: ...

    def verify_and_parse_event(self, raw_body: bytes, signature_header: Optional[str],
                               secret: Optional[str] = None) -> PaymentEventModel: ...


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(_CENT)


def map_intent_status(intent: Any) -> HoldStatus:
    """Reduce a PaymentIntent status to the hold states the lifecycle cares about."""
    status = intent.status
    if status == "requires_capture":
        return HoldStatus.REQUIRES_CAPTURE
    if status == "succeeded":
        return HoldStatus.SUCCEEDED
    if status == "canceled":
        return HoldStatus.CANCELED
    if status == "requires_payment_method" and getattr(intent, "last_payment_error", None):
        return HoldStatus.FAILED
    return HoldStatus.REQUIRES_PAYMENT


class StripeGateway:
    """
    Stripe implementation of :class:`PaymentGateway`.

    Features:
    - Manual-capture PaymentIntents as escrow holds
    - Idempotent capture/cancel/refund against already-settled holds
    - Webhook signature verification before any event content is trusted
    - Bounded network calls surfaced as UpstreamPaymentError
    """

    def __init__(self, config: Optional[StripeConfig] = None):
        self.config = config or StripeConfig.from_env()
        if not self.config.secret_key:
            logger.warning("STRIPE_SECRET_KEY is not set; gateway calls will fail")

        stripe.max_network_retries = self.config.max_network_retries
        stripe.default_http_client = stripe.RequestsClient(timeout=self.config.timeout_seconds)

        logger.info(f"StripeGateway initialized: {self.config}")

    def _hold_from_intent(self, intent: Any) -> HoldModel:
        return HoldModel(
            hold_id=intent.id,
            status=map_intent_status(intent),
            amount=from_minor_units(intent.amount),
            client_secret=getattr(intent, "client_secret", None),
        )

    def _upstream_error(self, operation: str, hold_id: Optional[str], error: Exception) -> UpstreamPaymentError:
        logger.error(f"Stripe {operation} failed for {hold_id or 'new hold'}: {error}")
        return UpstreamPaymentError(
            f"Payment gateway {operation} failed: {getattr(error, 'user_message', None) or error}",
            detail={"operation": operation, "hold_id": hold_id},
        )

    def create_hold(self, amount: Decimal, metadata: Dict[str, str],
                    idempotency_key: Optional[str] = None) -> HoldModel:
        """
        Authorize ``amount`` on the traveler's card without capturing it.

        Args:
            amount: Amount in major units
            metadata: Correlation data stored on the PaymentIntent
            idempotency_key: Optional key making retries of this call safe

        Returns:
            HoldModel with the client secret for client-side confirmation
        """
        options: Dict[str, Any] = {"api_key": self.config.secret_key}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=self.config.currency,
                capture_method="manual",
                metadata={k: str(v) for k, v in metadata.items()},
                **options,
            )
        except stripe.StripeError as e:
            raise self._upstream_error("create_hold", None, e) from e

        logger.info(f"Created payment hold {intent.id} for {amount} {self.config.currency}")
        return self._hold_from_intent(intent)

    def retrieve_hold(self, hold_id: str) -> HoldModel:
        try:
            intent = stripe.PaymentIntent.retrieve(hold_id, api_key=self.config.secret_key)
        except stripe.StripeError as e:
            raise self._upstream_error("retrieve_hold", hold_id, e) from e
        return self._hold_from_intent(intent)

    def _settled(self, operation: str, hold_id: str, error: stripe.StripeError,
                 target: HoldStatus) -> GatewayResultModel:
        """
        Resolve an InvalidRequestError against a hold that may already be settled.

        Returns a no-op result when the hold is already in ``target``;
        otherwise the original error is surfaced.
        """
        current = self.retrieve_hold(hold_id)
        if current.status == target:
            logger.info(f"Stripe {operation} on {hold_id} is a no-op (already {target.value})")
            return GatewayResultModel(hold_id=hold_id, status=target, noop=True)
        raise self._upstream_error(operation, hold_id, error) from error

    def capture_hold(self, hold_id: str) -> GatewayResultModel:
        """Capture an authorized hold, moving the funds."""
        try:
            intent = stripe.PaymentIntent.capture(hold_id, api_key=self.config.secret_key)
        except stripe.InvalidRequestError as e:
            return self._settled("capture", hold_id, e, HoldStatus.SUCCEEDED)
        except stripe.StripeError as e:
            raise self._upstream_error("capture", hold_id, e) from e

        logger.info(f"Captured payment hold {hold_id}")
        return GatewayResultModel(hold_id=hold_id, status=map_intent_status(intent))

    def cancel_hold(self, hold_id: str) -> GatewayResultModel:
        """Release an authorized hold that was never captured."""
        try:
            intent = stripe.PaymentIntent.cancel(hold_id, api_key=self.config.secret_key)
        except stripe.InvalidRequestError as e:
            return self._settled("cancel", hold_id, e, HoldStatus.CANCELED)
        except stripe.StripeError as e:
            raise self._upstream_error("cancel", hold_id, e) from e

        logger.info(f"Canceled payment hold {hold_id}")
        return GatewayResultModel(hold_id=hold_id, status=map_intent_status(intent))

    def refund(self, hold_id: str, amount: Optional[Decimal] = None) -> GatewayResultModel:
        """
        Return funds for a hold, in full unless ``amount`` is given.

        A hold that was authorized but never captured has moved no money, so
        it is released instead of refunded.
        """
        hold = self.retrieve_hold(hold_id)
        if hold.status in (HoldStatus.REQUIRES_CAPTURE, HoldStatus.REQUIRES_PAYMENT):
            return self.cancel_hold(hold_id)
        if hold.status == HoldStatus.CANCELED:
            return GatewayResultModel(hold_id=hold_id, status=HoldStatus.CANCELED, noop=True)

        params: Dict[str, Any] = {"payment_intent": hold_id}
        if amount is not None:
            params["amount"] = to_minor_units(amount)

        try:
            refund = stripe.Refund.create(api_key=self.config.secret_key, **params)
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "charge_already_refunded":
                logger.info(f"Stripe refund on {hold_id} is a no-op (already refunded)")
                return GatewayResultModel(hold_id=hold_id, status=hold.status, noop=True)
            raise self._upstream_error("refund", hold_id, e) from e
        except stripe.StripeError as e:
            raise self._upstream_error("refund", hold_id, e) from e

        logger.info(f"Refunded payment hold {hold_id} (refund {refund.id})")
        return GatewayResultModel(hold_id=hold_id, status=hold.status, refund_id=refund.id)

    def verify_and_parse_event(self, raw_body: bytes, signature_header: Optional[str],
                               secret: Optional[str] = None) -> PaymentEventModel:
        """
        Verify a webhook delivery and reduce it to a PaymentEventModel.

        Raises:
            SignatureInvalidError: Missing/mismatched signature or malformed body
        """
        secret = secret or self.config.webhook_secret
        if not secret:
            raise SignatureInvalidError("Webhook secret is not configured")
        if not signature_header:
            raise SignatureInvalidError("Missing webhook signature header")

        payload = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
        try:
            event = stripe.Webhook.construct_event(
                payload, signature_header, secret,
                tolerance=self.config.webhook_tolerance_seconds,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise SignatureInvalidError("Webhook signature verification failed") from e
        except ValueError as e:
            logger.warning(f"Webhook payload could not be parsed: {e}")
            raise SignatureInvalidError("Webhook payload is malformed") from e

        obj = event.data.object
        if getattr(obj, "object", None) == "payment_intent":
            hold_id = obj.id
        else:
            hold_id = getattr(obj, "payment_intent", None)

        return PaymentEventModel(
            event_id=event.id,
            event_type=event.type,
            hold_id=hold_id,
            data={"status": getattr(obj, "status", None)},
        )
