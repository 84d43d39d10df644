"""Summarization agents for Token Reducer."""

from .generation_gateway import GenerationGateway, strip_reasoning
from .summarizer_agent import SummarizerAgent
from .event_router import EventRouter, RouterState
from .session import ChatSession

__all__ = [
    "GenerationGateway",
    "strip_reasoning",
    "SummarizerAgent",
    "EventRouter",
    "RouterState",
    "ChatSession",
]
