"""Conversation summarization processor.

Registered on a ``ConversationStore``, it watches ``add_message`` events and,
every *threshold* messages, condenses the recent transcript into a
``[SUMMARY]`` system message on the same thread.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import anthropic

from src.config import settings

if TYPE_CHECKING:
    from src.memory.models import MemoryEvent, Message
    from src.memory.store import ConversationStore, MemoryProcessor

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "[SUMMARY]"
_FALLBACK_CHARS = 1000

_client: anthropic.AsyncAnthropic | None = None


def _get_client() -> anthropic.AsyncAnthropic:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _client


def build_transcript(history: list[Message]) -> str:
    """Render messages as ``ROLE: content`` lines."""
    return "\n".join(f"{m.role.upper()}: {m.content}" for m in history)


def build_summary_prompt(transcript: str) -> str:
    return (
        "Summarize the following conversation in 5-8 sentences, focusing on "
        "key topics, decisions, and unresolved questions.\n\n"
        f"{transcript}"
    )


def truncate_transcript(transcript: str) -> str:
    """Fallback summary used when the model call fails."""
    if len(transcript) <= _FALLBACK_CHARS:
        return transcript
    return transcript[:_FALLBACK_CHARS] + "... [truncated]"


async def summarize(transcript: str, model: str) -> str:
    """Ask Claude for a summary; fall back to truncation on any failure."""
    try:
        response = await _get_client().messages.create(
            model=model,
            max_tokens=512,
            messages=[{"role": "user", "content": build_summary_prompt(transcript)}],
        )
        text = response.content[0].text.strip()
        if text:
            return text
    except Exception:
        logger.exception("Summary generation failed, falling back to truncation")
    return truncate_transcript(transcript)


def create_summarization_processor(
    store: ConversationStore,
    threshold: int | None = None,
    model: str | None = None,
) -> MemoryProcessor:
    """Build a memory processor that summarizes every *threshold* messages."""
    every = threshold or settings.summarization_threshold
    summary_model = model or settings.summary_model

    async def summarization_processor(event: MemoryEvent) -> None:
        if event.type != "add_message":
            return
        conversation_id = event.data.get("conversation_id")
        if not conversation_id or not isinstance(conversation_id, str):
            return
        content = event.data.get("content", "")
        if event.data.get("role") == "system" and str(content).startswith(SUMMARY_PREFIX):
            return

        stats = await store.get_conversation_stats(conversation_id)
        if stats.message_count < every or stats.message_count % every != 0:
            return

        history = await store.get_history(conversation_id, every)
        summary = await summarize(build_transcript(history), summary_model)
        await store.add_message(conversation_id, "system", f"{SUMMARY_PREFIX}\n{summary}")
        logger.info("Summarized conversation %s at %d messages", conversation_id, stats.message_count)

    return summarization_processor


async def get_latest_summary(store: ConversationStore, conversation_id: str) -> str | None:
    """Return the newest ``[SUMMARY]`` message of a thread, or None."""
    messages = await store.get_messages(
        conversation_id=conversation_id,
        role="system",
        limit=settings.message_query_limit,
    )
    for message in messages:
        if message.content.startswith(SUMMARY_PREFIX):
            return message.content
    return None
