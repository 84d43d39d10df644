"""
Summarization prompts.

Each template carries a {{content}} placeholder. For message and scene
summaries the placeholder is stripped and the remaining text is sent as the
system instruction, with the content itself sent as the user message.
"""

MESSAGE_SUMMARY_PROMPT = """Summarize the following message briefly in plain text. No markdown, no asterisks, no alternatives. Just a simple one-sentence summary:

{{content}}

Summary:"""

SCENE_SUMMARY_PROMPT = """Summarize the following scene/chapter in a concise paragraph. Include key events, character developments, and important details:

{{content}}

Scene Summary:"""

KEYWORDS_PROMPT = """Extract 3-5 important keywords from this text that could trigger this memory later. Return only comma-separated keywords:

{{content}}

Keywords:"""

RETRIEVAL_QUERY_PROMPT = """Read the recent conversation below and write a short search query (a few words) describing what past events or facts would help continue it. Return only the query:

{{content}}

Query:"""

CONTENT_PLACEHOLDER = "{{content}}"


def as_system_prompt(template: str) -> str:
    """Strip the content placeholder so the template can act as a system instruction."""
    return template.replace(CONTENT_PLACEHOLDER, "").strip()


def fill_prompt(template: str, content: str) -> str:
    """Substitute content into a template."""
    return template.replace(CONTENT_PLACEHOLDER, content)
