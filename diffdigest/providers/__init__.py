"""Diff Digest provider layer.

Providers turn a change into a streamed notes object. LiteLLMNotesProvider
calls a model directly; HttpNotesProvider relays through a Diff Digest
server.
"""

from diffdigest.providers.base import NotesProvider
from diffdigest.providers.http_provider import HttpNotesProvider
from diffdigest.providers.litellm_provider import LiteLLMNotesProvider

__all__ = [
    "HttpNotesProvider",
    "LiteLLMNotesProvider",
    "NotesProvider",
]
