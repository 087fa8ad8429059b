"""Trip context store: shared trip record and its staleness rule."""

from tripmate.context.store import (
    CRITICAL_SLOTS,
    Day,
    SignatureChange,
    TripContext,
    compute_critical_signature,
    dates_out_of_order,
)

__all__ = [
    "CRITICAL_SLOTS",
    "Day",
    "SignatureChange",
    "TripContext",
    "compute_critical_signature",
    "dates_out_of_order",
]
