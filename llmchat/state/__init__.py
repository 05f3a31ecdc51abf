"""
State containers for llmchat.
Framework-independent observable state consumed by the presentation layer.
"""

from .observable import Observable, observable
from .session_state import ChatSessionState

__all__ = [
    'Observable',
    'observable',
    'ChatSessionState',
]
