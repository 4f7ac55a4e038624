"""Chat-completion backed collaborators: answer generator and classifiers.

Provides:
- Generator / Classifier: protocols consumed by the RetrievalRouter.
- OpenAIGenerator: completes (system prompt, history, user turn) into answer text.
- OpenAIQueryClassifier: labels a live query's intent; returns the raw label,
  parsing into QueryClassification happens in the router.
- OpenAIDocumentClassifier: assigns an ingested document to one of the
  supported industries, falling back to the default industry.

All adapters take an injected OpenAI client and wrap OpenAIError in ProviderError.
"""
import logging
from typing import Dict, List, Protocol

from openai import OpenAI, OpenAIError

from industry_rag.errors import ProviderError
from industry_rag.prompts import classifier_system_prompt

logger = logging.getLogger(__name__)


class Generator(Protocol):
    def complete(self, system_prompt: str, history: List[Dict[str, str]], user_turn: str) -> str:
        ...


class Classifier(Protocol):
    def classify(self, query: str, has_history: bool, industry: str) -> str:
        ...


def _chat(client: OpenAI, **kwargs) -> str:
    try:
        resp = client.chat.completions.create(**kwargs)
    except OpenAIError as exc:
        raise ProviderError(f"Chat completion failed: {exc}") from exc
    if not resp.choices:
        raise ProviderError("Chat completion returned no choices")
    return (resp.choices[0].message.content or "").strip()


class OpenAIGenerator:
    """Answer generation with OpenAI chat completions."""

    def __init__(self, client: OpenAI, model: str, max_tokens: int = 500, temperature: float = 0.2):
        self._client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def complete(self, system_prompt: str, history: List[Dict[str, str]], user_turn: str) -> str:
        """Generate an answer.

        Args:
            system_prompt: Rules for this routing state.
            history: Prior turns as {"role", "content"} dicts, oldest first.
            user_turn: Content of the final user message (query plus any context).

        Returns:
            str: The generated answer text.

        Raises:
            ProviderError: On request failure or an empty completion.
        """
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": t["role"], "content": t["content"]} for t in history)
        messages.append({"role": "user", "content": user_turn})
        answer = _chat(
            self._client,
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not answer:
            raise ProviderError("Chat completion returned an empty answer")
        return answer


class OpenAIQueryClassifier:
    def __init__(self, client: OpenAI, model: str, industries: List[str]):
        self._client = client
        self.model = model
        self.industries = industries

    def classify(self, query: str, has_history: bool, industry: str) -> str:
        return _chat(
            self._client,
            model=self.model,
            messages=[
                {"role": "system", "content": classifier_system_prompt(industry, self.industries, has_history)},
                {"role": "user", "content": query},
            ],
            temperature=0,
            max_tokens=10,
        )


class OpenAIDocumentClassifier:
    """Classify a document excerpt into one of the supported industries.

    Invalid labels and provider failures fall back to default_industry; a
    misfiled document is recoverable by re-ingesting with overwrite.
    """

    SAMPLE_CHARS = 3000

    def __init__(self, client: OpenAI, model: str, industries: List[str], default_industry: str):
        self._client = client
        self.model = model
        self.industries = industries
        self.default_industry = default_industry

    def classify(self, text: str) -> str:
        sample = text[: self.SAMPLE_CHARS]
        names = ", ".join(self.industries)
        try:
            label = _chat(
                self._client,
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": f"You are a document classifier. Respond with only one word: {names}.",
                    },
                    {
                        "role": "user",
                        "content": f"Classify this document excerpt into ONE of: {names}.\n\n{sample}",
                    },
                ],
                temperature=0,
                max_tokens=10,
            )
        except ProviderError as exc:
            logger.warning("Document classification failed (%s); defaulting to %s", exc, self.default_industry)
            return self.default_industry

        label = label.strip().strip(".\"'").strip()
        for industry in self.industries:
            if label.lower() == industry.lower():
                logger.info("Classified document as %s", industry)
                return industry
        logger.warning("Invalid industry classification %r; defaulting to %s", label, self.default_industry)
        return self.default_industry
