"""
Story arc analysis prompt.

{{timeline}} is replaced by the existing chapters and {{content}} by the
unchaptered messages, each tagged with its message ID. The whole filled
template is sent as one user message.
"""

TIMELINE_PLACEHOLDER = "{{timeline}}"

ARC_ANALYZER_PROMPT = """You are reading a roleplay chat to find natural chapter breaks.

Chapters written so far:
{{timeline}}

Messages not yet in any chapter, each tagged with its ID:
{{content}}

Identify the story arcs in these messages. An arc is a stretch of conversation with its own goal, location or conflict that reaches a natural resting point. For each arc give the ID of the message where it ends.

Return only a JSON array, one object per arc, in story order:
[{"title": "short title", "summary": "two or three sentences", "chapterEnd": <message ID>, "justification": "why the arc ends there"}]"""
