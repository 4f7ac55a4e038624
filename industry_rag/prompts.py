"""Prompt assembly for the classifier and the answer generator.

Prompts are composed from small blocks so each routing state only carries the
rules it needs. Wording is intentionally short; quality tuning happens here.
"""
from typing import List

from industry_rag.domain import QueryClassification, RetrievalResult

CLASSIFIER_SYSTEM = (
    "You classify the intent of a user's message to a {industry} assistant. "
    "Supported industries: {industries}. Reply with exactly one label and nothing else:\n"
    "social - greetings, thanks, small talk\n"
    "topics_inquiry - asks what topics or questions the assistant can help with\n"
    "follow_up - continues or refers back to the previous turns of the conversation{follow_up_note}\n"
    "on_topic - a new question about {industry} services\n"
    "off_topic - anything outside the supported industries"
)

SCOPE_BLOCK = (
    "You are a friendly assistant for {industries} questions, currently helping with {industry}. "
    "Never answer questions outside these industries."
)

GROUNDING_BLOCK = (
    "Answer ONLY from the provided context. If the context does not contain the answer, "
    "say you don't have that information. Do not invent details."
)

HISTORY_BLOCK = (
    "No new documentation matched this follow-up. Answer from what was already said in the "
    "conversation; if it does not cover the question, say you don't have that information."
)

SOCIAL_BLOCK = "Reply briefly and warmly, then offer to help with {industry} questions."

FORMAT_BLOCK = "Keep answers short: 2-5 plain sentences, no markdown symbols."


def classifier_system_prompt(industry: str, industries: List[str], has_history: bool) -> str:
    note = "" if has_history else " (not possible: this is the first message)"
    return CLASSIFIER_SYSTEM.format(
        industry=industry, industries=", ".join(industries), follow_up_note=note
    )


def build_context(results: List[RetrievalResult]) -> str:
    """Create an enumerated context block from retrieved chunks."""
    lines: List[str] = []
    for i, r in enumerate(results, start=1):
        lines.append(
            f"[Context {i}] (Similarity: {r.similarity * 100:.1f}%, "
            f"Document: {r.document_name}, Chunk: {r.chunk.index})\n{r.chunk.content}"
        )
    return "\n\n---\n\n".join(lines)


def system_prompt(state: QueryClassification, industry: str, industries: List[str]) -> str:
    """System prompt for the generator in the given routing state."""
    blocks = [SCOPE_BLOCK.format(industries=", ".join(industries), industry=industry)]
    if state is QueryClassification.SOCIAL:
        blocks.append(SOCIAL_BLOCK.format(industry=industry))
    elif state is QueryClassification.FOLLOW_UP:
        blocks.append(GROUNDING_BLOCK)
        blocks.append("For follow-ups, build on the earlier turns of the conversation.")
    else:
        blocks.append(GROUNDING_BLOCK)
    blocks.append(FORMAT_BLOCK)
    return "\n\n".join(blocks)


def history_only_system_prompt(industry: str, industries: List[str]) -> str:
    return "\n\n".join([
        SCOPE_BLOCK.format(industries=", ".join(industries), industry=industry),
        HISTORY_BLOCK,
        FORMAT_BLOCK,
    ])


def grounded_user_turn(query: str, results: List[RetrievalResult]) -> str:
    return f"Context from documentation:\n\n{build_context(results)}\n\n---\n\nUser Question: {query}"


def off_topic_message(industries: List[str]) -> str:
    if len(industries) > 2:
        names = ", ".join(industries[:-1]) + f", and {industries[-1]}"
    else:
        names = " and ".join(industries)
    return f"I'm here to help with {names} questions. What would you like to know about these topics?"


def topics_message(industry: str, topics: List[str]) -> str:
    if not topics:
        return f"I can help with questions about {industry} services. What would you like to know?"
    lines = "\n".join(f"→ {t}" for t in topics)
    return f"Here are a few {industry} topics I can help with:\n\n{lines}\n\nWhat would you like to know?"


DONT_KNOW_MESSAGE = (
    "I don't have information about that in the current documentation. "
    "Please ask a question related to the {industry} services I cover."
)

APOLOGY_MESSAGE = "I'm sorry, I encountered an error processing your question. Please try again."
