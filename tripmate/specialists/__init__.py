"""Specialist agents: registry, prompts and the tool loop."""

from tripmate.specialists.registry import (
    SPECIALIST_NAMES,
    SPECIALISTS,
    SpecialistSpec,
    get_specialist,
)
from tripmate.specialists.runner import SpecialistOutcome, SpecialistRunner

__all__ = [
    "SPECIALIST_NAMES",
    "SPECIALISTS",
    "SpecialistSpec",
    "get_specialist",
    "SpecialistOutcome",
    "SpecialistRunner",
]
