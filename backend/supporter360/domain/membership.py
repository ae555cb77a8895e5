"""Membership status state machine.

Pure functions only: given the stored status and an incoming billing
signal, decide the next status. Persistence lives in
``services.membership_updater``.
"""

from enum import Enum

from supporter360.domain.types import Cadence, MembershipStatus


class MembershipSignal(str, Enum):
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    ACTIVATED = "activated"
    CANCELLED = "cancelled"
    PAUSED = "paused"


# Signals that may move a membership onto a different billing method.
# Everything else only applies when it comes from the billing method of record.
ESTABLISHING_SIGNALS = frozenset({MembershipSignal.PAYMENT_SUCCEEDED, MembershipSignal.ACTIVATED})

# current status -> signal -> next status (missing entry = no change)
TRANSITIONS: dict[MembershipStatus, dict[MembershipSignal, MembershipStatus]] = {
    MembershipStatus.UNKNOWN: {
        MembershipSignal.PAYMENT_SUCCEEDED: MembershipStatus.ACTIVE,
        MembershipSignal.ACTIVATED: MembershipStatus.ACTIVE,
        MembershipSignal.PAYMENT_FAILED: MembershipStatus.PAST_DUE,
        MembershipSignal.CANCELLED: MembershipStatus.CANCELLED,
        MembershipSignal.PAUSED: MembershipStatus.PAST_DUE,
    },
    MembershipStatus.ACTIVE: {
        MembershipSignal.PAYMENT_SUCCEEDED: MembershipStatus.ACTIVE,
        MembershipSignal.ACTIVATED: MembershipStatus.ACTIVE,
        MembershipSignal.PAYMENT_FAILED: MembershipStatus.PAST_DUE,
        MembershipSignal.CANCELLED: MembershipStatus.CANCELLED,
        MembershipSignal.PAUSED: MembershipStatus.PAST_DUE,
    },
    MembershipStatus.PAST_DUE: {
        MembershipSignal.PAYMENT_SUCCEEDED: MembershipStatus.ACTIVE,
        MembershipSignal.ACTIVATED: MembershipStatus.ACTIVE,
        MembershipSignal.PAYMENT_FAILED: MembershipStatus.PAST_DUE,
        MembershipSignal.CANCELLED: MembershipStatus.CANCELLED,
        MembershipSignal.PAUSED: MembershipStatus.PAST_DUE,
    },
    MembershipStatus.CANCELLED: {
        # A late failure on a cancelled membership does not resurrect it
        MembershipSignal.PAYMENT_SUCCEEDED: MembershipStatus.ACTIVE,
        MembershipSignal.ACTIVATED: MembershipStatus.ACTIVE,
        MembershipSignal.CANCELLED: MembershipStatus.CANCELLED,
    },
}

# Signals that need an existing membership row to act on
REQUIRES_EXISTING = frozenset({
    MembershipSignal.PAYMENT_FAILED,
    MembershipSignal.PAUSED,
})


def next_status(current: MembershipStatus | None, signal: MembershipSignal) -> MembershipStatus | None:
    """Return the status after ``signal``, or None when nothing should be written.

    ``current`` is None when the supporter has no membership yet.
    """
    if current is None:
        if signal in REQUIRES_EXISTING:
            return None
        return TRANSITIONS[MembershipStatus.UNKNOWN][signal]
    return TRANSITIONS[current].get(signal, current)


def accepts_signal(billing_method_of_record: str | None, signal_billing_method: str, signal: MembershipSignal) -> bool:
    """Whether a signal from ``signal_billing_method`` may change the membership."""
    if signal in ESTABLISHING_SIGNALS or billing_method_of_record is None:
        return True
    return billing_method_of_record == signal_billing_method


def cadence_from_interval(interval: str | None) -> Cadence | None:
    """Map a provider billing interval onto a cadence.

    GoCardless reports ``monthly``/``yearly``; Stripe reports ``month``/``year``.
    """
    if not interval:
        return None
    if interval.lower() in ("monthly", "month"):
        return Cadence.MONTHLY
    return Cadence.ANNUAL
