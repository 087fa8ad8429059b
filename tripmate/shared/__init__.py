"""
Shared infrastructure for the trip engine.

Modules:
- llm: OpenAI client with retry logic and the tool-calling chat model
- logging: Structured JSON logging
- contracts: Wire contracts for classifier output, capture tools and turns
- errors: Error taxonomy
- parsing: JSON extraction from model output
"""

from tripmate.shared.llm.client import get_cached_client, call_llm
from tripmate.shared.logging.config import setup_logging, log_state_transition

__all__ = [
    "get_cached_client",
    "call_llm",
    "setup_logging",
    "log_state_transition",
]
