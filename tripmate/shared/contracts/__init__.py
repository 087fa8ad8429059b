"""Wire contracts shared by the classifier, the capture tools and the API."""

from tripmate.shared.contracts.classifier_output import ClassifierDecision
from tripmate.shared.contracts.capture import (
    CaptureTripParams,
    ConfirmBookingArgs,
    DelegateArgs,
    ItineraryCapture,
)
from tripmate.shared.contracts.turn_output import TurnResult

__all__ = [
    "ClassifierDecision",
    "CaptureTripParams",
    "ConfirmBookingArgs",
    "DelegateArgs",
    "ItineraryCapture",
    "TurnResult",
]
