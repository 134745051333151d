"""Remote model access: configuration, prompts and the HTTP gateway."""

from .config import ModelConfig, Readiness, is_ready
from .factory import create_model_gateway
from .gateway import HttpModelGateway, extract_payload, parse_content
from .interface import ModelGateway, ModelReply
from .prompts import PromptParams, build_messages

__all__ = [
    "HttpModelGateway",
    "ModelConfig",
    "ModelGateway",
    "ModelReply",
    "PromptParams",
    "Readiness",
    "build_messages",
    "create_model_gateway",
    "extract_payload",
    "is_ready",
    "parse_content",
]
