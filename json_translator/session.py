"""Conversation state shared by every batch of one file translation."""
from dataclasses import dataclass, field
from typing import Dict, List

ChatMessage = Dict[str, str]


@dataclass
class TranslationSession:
    """
    Three independent chat histories that live for exactly one file translation.

    Batches run strictly one after another, so the histories are appended in
    batch order. A new session is created for every target language.
    """
    generate_translation_chat: List[ChatMessage] = field(default_factory=list)
    verify_translation_chat: List[ChatMessage] = field(default_factory=list)
    verify_styling_chat: List[ChatMessage] = field(default_factory=list)

    def record_exchange(self, channel: List[ChatMessage], prompt: str, reply: str) -> None:
        channel.append({"role": "user", "content": prompt})
        channel.append({"role": "assistant", "content": reply})
