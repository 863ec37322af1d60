from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class EnhancementRequest:
    """
    One piece of text to enhance.

    Attributes:
        original_text (str): Text selected by the user
        template (str): Name of the enhancement template
        context (str | None): Short description of where the text came from
    """

    original_text: str
    template: str = "general"
    context: str | None = None


@dataclass
class EnhancementResult:
    """
    Text returned by the provider plus bookkeeping.

    Attributes:
        enhanced_text (str): The improved prompt
        tokens_used (int): Total tokens reported by the provider
        model (str): Model that produced the text
        processing_time_ms (int): Wall time of the request
        usage (Usage | None): Input/output breakdown when available
    """

    enhanced_text: str
    tokens_used: int
    model: str
    processing_time_ms: int
    usage: Usage | None = None


@dataclass
class ModelInfo:
    id: str
    name: str
    description: str
    owned_by: str | None = None
