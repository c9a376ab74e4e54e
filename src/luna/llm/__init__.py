"""
LLM module - response generation from context snapshots.

Responders:
- claude: Anthropic Claude API

The memory engine never calls a responder; the chat handler builds a snapshot
and passes it here.
"""
