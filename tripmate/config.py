"""
Engine configuration.

Centralizes the knobs for the turn graph, the safety gate and the
specialist tool loop so behavior can be tuned without touching the
graph wiring.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class EngineConfig:
    """
    Configuration for the trip engine.

    Attributes:
        recursion_limit: Maximum number of graph steps per turn
        classifier_backend: "llm" or "rules" for the safety gate
        intent_backend: "llm" or "keywords" for specialist selection
        classifier_timeout: Seconds before the safety classifier fails open
        max_tool_rounds: Model calls allowed per specialist invocation
        max_delegation_depth: How deep specialist-as-tool calls may nest
        max_delegations_per_turn: Delegations allowed in one user turn
        history_window: Prior messages replayed to a specialist
    """

    # Graph execution limits
    recursion_limit: int = 25

    # Backends
    classifier_backend: str = "llm"
    intent_backend: str = "llm"

    # LLM configuration
    classifier_model: str = "gpt-4o-mini"
    router_model: str = "gpt-4.1-mini"
    specialist_model: str = "gpt-4.1-mini"

    # Safety gate
    classifier_timeout: float = 8.0  # seconds

    # Specialist tool loop
    max_tool_rounds: int = 4
    max_delegation_depth: int = 1
    max_delegations_per_turn: int = 1
    history_window: int = 12

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build a configuration from TRIPMATE_* environment variables.

        Unset variables fall back to the dataclass defaults.
        """
        load_dotenv()
        defaults = cls()
        return cls(
            recursion_limit=int(os.environ.get("TRIPMATE_RECURSION_LIMIT", defaults.recursion_limit)),
            classifier_backend=os.environ.get("TRIPMATE_CLASSIFIER_BACKEND", defaults.classifier_backend),
            intent_backend=os.environ.get("TRIPMATE_INTENT_BACKEND", defaults.intent_backend),
            classifier_model=os.environ.get("TRIPMATE_CLASSIFIER_MODEL", defaults.classifier_model),
            router_model=os.environ.get("TRIPMATE_ROUTER_MODEL", defaults.router_model),
            specialist_model=os.environ.get("TRIPMATE_SPECIALIST_MODEL", defaults.specialist_model),
            classifier_timeout=float(
                os.environ.get("TRIPMATE_CLASSIFIER_TIMEOUT", defaults.classifier_timeout)
            ),
            max_tool_rounds=int(os.environ.get("TRIPMATE_MAX_TOOL_ROUNDS", defaults.max_tool_rounds)),
            history_window=int(os.environ.get("TRIPMATE_HISTORY_WINDOW", defaults.history_window)),
        )


# Default configuration instance
DEFAULT_CONFIG = EngineConfig()

