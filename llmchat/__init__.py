"""
llmchat - a bring-your-own-key terminal chat client

Talks to an OpenAI-compatible chat completions API with the user's own key,
keeps conversations in a local SQLite store and renders them with Textual.
"""

__version__ = "0.1.0"
