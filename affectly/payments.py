"""Premium upgrade workflow.

    NONE -> INITIATED -> VERIFYING -> VERIFIED
                                   -> FAILED   (may be verified again)

``initiate`` only talks to the gateway. ``verify`` is keyed by the
gateway reference and serialized per reference, so a re-delivered callback
or a double click returns the first result instead of granting twice.
"""
import calendar
import enum
import logging
import threading
from collections import namedtuple
from contextlib import contextmanager

from affectly.errors import (
    GatewayError, PaymentInitError, PaymentVerificationError, StoreError, UserNotFoundError,
)
from affectly.models import PREMIUM, PENDING, VERIFIED, FAILED, utcnow

logger = logging.getLogger(__name__)

SUBSCRIPTION_TYPE = "premium_monthly"


class PaymentState(enum.Enum):
    NONE = "none"
    INITIATED = "initiated"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


PaymentInitiation = namedtuple(
    "PaymentInitiation", ["reference", "authorization_url", "access_code", "state"]
)
VerificationResult = namedtuple(
    "VerificationResult", ["reference", "user_id", "subscription_end", "state", "already_verified"]
)


def add_months(moment, months=1):
    """Same day ``months`` later, clamped to the last day of a short month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class ReferenceLocks:
    """One lock per payment reference, dropped once nobody holds or awaits it."""

    def __init__(self):
        self._guard = threading.Lock()
        # reference -> [lock, holders and waiters]
        self._locks = {}

    @contextmanager
    def __call__(self, reference):
        with self._guard:
            slot = self._locks.setdefault(reference, [threading.Lock(), 0])
            slot[1] += 1
        try:
            with slot[0]:
                yield
        finally:
            with self._guard:
                slot[1] -= 1
                if not slot[1]:
                    del self._locks[reference]

    def held(self, reference):
        with self._guard:
            return reference in self._locks

    def __len__(self):
        with self._guard:
            return len(self._locks)


class PaymentWorkflow:
    def __init__(self, store, gateway, currency="KES", clock=utcnow, locks=None):
        self.store = store
        self.gateway = gateway
        self.currency = currency
        self.clock = clock
        self.locks = locks if locks is not None else ReferenceLocks()

    def initiate(self, email, amount, callback_url):
        """Start a checkout for ``amount`` major currency units."""
        if not email:
            raise PaymentInitError("An email address is required to pay")
        try:
            txn = self.gateway.initialize_transaction(
                email=email,
                amount_minor_units=int(amount) * 100,
                currency=self.currency,
                callback_url=callback_url,
                metadata={
                    "subscription_type": SUBSCRIPTION_TYPE,
                    "amount_kes": amount,
                },
            )
        except GatewayError as e:
            logger.error(f"Payment initialization error: {e}")
            raise PaymentInitError() from e

        logger.info(f"Payment initialized successfully: {txn['reference']}")
        return PaymentInitiation(
            reference=txn["reference"],
            authorization_url=txn["authorization_url"],
            access_code=txn.get("access_code"),
            state=PaymentState.INITIATED,
        )

    def status(self, reference):
        """Where ``reference`` stands right now, without calling the gateway."""
        if self.locks.held(reference):
            return PaymentState.VERIFYING
        txn = self.store.get_transaction(reference)
        if txn is None:
            return PaymentState.NONE
        return {
            PENDING: PaymentState.INITIATED,
            VERIFIED: PaymentState.VERIFIED,
            FAILED: PaymentState.FAILED,
        }.get(txn.status, PaymentState.NONE)

    def verify(self, reference):
        if not reference:
            raise PaymentVerificationError("Missing payment reference")

        with self.locks(reference):
            existing = self.store.get_transaction(reference)
            if existing is not None and existing.status == VERIFIED:
                logger.info(f"Reference {reference} already verified; skipping")
                return VerificationResult(
                    reference=reference,
                    user_id=existing.user_id,
                    subscription_end=existing.subscription_end,
                    state=PaymentState.VERIFIED,
                    already_verified=True,
                )
            return self._verify_locked(reference)

    def _verify_locked(self, reference):
        try:
            txn = self.gateway.verify_transaction(reference)
        except GatewayError as e:
            # Unknown or unreachable; nothing is stored for it
            logger.error(f"Payment verification error for {reference}: {e}")
            raise PaymentVerificationError() from e

        email = txn.get("customer_email")
        if txn.get("status") != "success":
            logger.warning(f"Payment {reference} not successful: status={txn.get('status')}")
            self._record_failure(reference, email, txn.get("amount"))
            raise PaymentVerificationError()

        profile = self.store.get_profile_by_email(email)
        if profile is None:
            logger.warning(f"Paid reference {reference} has no matching account for {email}")
            self._record_failure(reference, email, txn.get("amount"))
            raise UserNotFoundError()

        now = self.clock()
        subscription_end = add_months(now, 1)

        # Authoritative: tier flip and processed-reference marker commit together
        self.store.grant_premium(
            user_id=profile.user_id,
            reference=reference,
            email=email,
            amount_minor_units=txn.get("amount"),
            now=now,
            subscription_end=subscription_end,
        )

        try:
            self.store.upsert_subscriber({
                "user_id": profile.user_id,
                "email": email,
                "subscribed": True,
                "subscription_tier": PREMIUM,
                "subscription_end": subscription_end,
                "updated_at": now,
            })
        except Exception as e:
            # Advisory record only; the tier grant stands
            logger.error(f"Subscriber update error for {profile.user_id}: {e}")

        logger.info(f"Payment verified and subscription updated for user: {profile.user_id}")
        return VerificationResult(
            reference=reference,
            user_id=profile.user_id,
            subscription_end=subscription_end,
            state=PaymentState.VERIFIED,
            already_verified=False,
        )

    def _record_failure(self, reference, email, amount):
        try:
            self.store.record_transaction_status(reference, FAILED, email=email, amount_minor_units=amount)
        except StoreError as e:
            logger.error(f"Could not record failed payment {reference}: {e}")

