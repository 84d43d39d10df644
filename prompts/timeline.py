"""
Timeline injection template.

{{timeline}} is replaced by the rendered chapter list. {{timelineResponses}}
is reserved and currently rendered empty.
"""

TIMELINE_INJECTION_TEMPLATE = """[Timeline Summary - Previous Events]
{{timeline}}

[Recent Context Retrieved]
{{timelineResponses}}"""
