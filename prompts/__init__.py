"""
Prompts module - All LLM prompts organized by feature.

Import prompts directly:
    from prompts import MESSAGE_SUMMARY_PROMPT, SCENE_SUMMARY_PROMPT

Or import from specific modules:
    from prompts.summary import as_system_prompt
"""

from prompts.summary import (
    MESSAGE_SUMMARY_PROMPT,
    SCENE_SUMMARY_PROMPT,
    KEYWORDS_PROMPT,
    RETRIEVAL_QUERY_PROMPT,
    as_system_prompt,
    fill_prompt,
)
from prompts.timeline import TIMELINE_INJECTION_TEMPLATE
from prompts.arcs import ARC_ANALYZER_PROMPT, TIMELINE_PLACEHOLDER

__all__ = [
    "MESSAGE_SUMMARY_PROMPT",
    "SCENE_SUMMARY_PROMPT",
    "KEYWORDS_PROMPT",
    "RETRIEVAL_QUERY_PROMPT",
    "TIMELINE_INJECTION_TEMPLATE",
    "ARC_ANALYZER_PROMPT",
    "TIMELINE_PLACEHOLDER",
    "as_system_prompt",
    "fill_prompt",
]
