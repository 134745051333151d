"""Traffic-aware content personalization with an optional LLM decision layer."""

from .bootstrap import create_decision_policy
from .context import VisitContext, build_context
from .decision import Decision, DecisionPolicy, DecisionRequest, DecisionSource, Rule, Template
from .exceptions import (
    ConfigError,
    ModelGatewayError,
    PersonalizeError,
    ProtocolError,
    StorageError,
    TransportError,
    ValidationError,
)

__all__ = [
    "ConfigError",
    "Decision",
    "DecisionPolicy",
    "DecisionRequest",
    "DecisionSource",
    "ModelGatewayError",
    "PersonalizeError",
    "ProtocolError",
    "Rule",
    "StorageError",
    "Template",
    "TransportError",
    "ValidationError",
    "VisitContext",
    "build_context",
    "create_decision_policy",
]
