"""
Role Correlator

Builds the conversation sent to a model for one test case by matching the
active user prompt with system/assistant fragments of the same prompt family.

Matching rules:
- legacy prompt: a single user message (prompt text + document text)
- user prompt: system/assistant fragments sharing the same base name fill
  their role slot; the first fragment encountered in corpus order wins
- no system fragment with the same base name: the first system fragment of
  the whole corpus is borrowed; only an empty corpus of system fragments
  falls back to the generic system message
"""

import logging

from llm_doc_bench.domain.constants import DEFAULT_SYSTEM_MESSAGE, DEFAULT_USER_MESSAGE
from llm_doc_bench.domain.entities import PromptRole, PromptUnit
from llm_doc_bench.domain.value_objects import ChatMessage, ConversationPlan

logger = logging.getLogger(__name__)

_MESSAGE_ORDER = (PromptRole.SYSTEM, PromptRole.USER, PromptRole.ASSISTANT)


def _with_document(prompt: PromptUnit, document_text: str) -> str:
    return f"{prompt.content}{document_text}"


def build_legacy_conversation(prompt: PromptUnit, document_text: str) -> ConversationPlan:
    """Single synthetic user message for a legacy prompt"""
    return ConversationPlan(
        messages=(ChatMessage(role="user", content=_with_document(prompt, document_text)),),
        source_prompts={"user": prompt.id},
    )


def build_conversation(
    prompt: PromptUnit,
    document_text: str,
    prompts: dict[str, PromptUnit],
) -> ConversationPlan:
    """
    Resolve the full message set for one prompt/document combination

    Args:
        prompt: Active prompt (user or legacy role)
        document_text: Document text appended to every correlated fragment
        prompts: The whole prompt corpus, in corpus iteration order

    Returns:
        ConversationPlan ordered system, user, assistant

    Raises:
        ValueError: If the active prompt is a system or assistant fragment
    """
    if prompt.role == PromptRole.LEGACY:
        return build_legacy_conversation(prompt, document_text)
    if prompt.role != PromptRole.USER:
        raise ValueError(f"Cannot build a conversation from a {prompt.role.value} prompt: {prompt.id}")

    contents: dict[PromptRole, str] = {PromptRole.USER: _with_document(prompt, document_text)}
    sources: dict[str, str | None] = {"user": prompt.id}
    fallback_system: PromptUnit | None = None

    for other in prompts.values():
        if other.role == PromptRole.SYSTEM and fallback_system is None:
            fallback_system = other
        if other.id == prompt.id or other.base_name != prompt.base_name:
            continue
        if other.role not in (PromptRole.SYSTEM, PromptRole.ASSISTANT):
            continue
        if other.role in contents:
            continue
        contents[other.role] = _with_document(other, document_text)
        sources[other.role.value] = other.id
        logger.debug("Found matching %s prompt: %s", other.role.value, other.id)

    if PromptRole.SYSTEM not in contents:
        if fallback_system is not None:
            # Borrowed from an unrelated prompt family; kept as documented behaviour
            contents[PromptRole.SYSTEM] = _with_document(fallback_system, document_text)
            sources["system"] = fallback_system.id
            logger.info(
                "No matching system prompt found for %s, using fallback: %s",
                prompt.id, fallback_system.id,
            )
        else:
            contents[PromptRole.SYSTEM] = DEFAULT_SYSTEM_MESSAGE
            sources["system"] = None
            logger.info("Using default system content for %s", prompt.id)

    if PromptRole.USER not in contents:
        contents[PromptRole.USER] = DEFAULT_USER_MESSAGE
        sources["user"] = None
        logger.info("Using default user content for %s", prompt.id)

    messages = tuple(
        ChatMessage(role=role.value, content=contents[role])
        for role in _MESSAGE_ORDER
        if role in contents
    )
    return ConversationPlan(messages=messages, source_prompts=sources)
