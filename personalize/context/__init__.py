"""Visit context: traffic metadata and intent inference."""

from .models import DeviceInfo, ReferrerInfo, VisitContext, now_ms
from .provider import ContextProvider, RequestContextProvider, default_context
from .utm import build_context, infer_intent

__all__ = [
    "ContextProvider",
    "DeviceInfo",
    "ReferrerInfo",
    "RequestContextProvider",
    "VisitContext",
    "build_context",
    "default_context",
    "infer_intent",
    "now_ms",
]
