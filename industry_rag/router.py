"""Query intent routing and conditional retrieval for the answering path.

Defines:
- parse_classification: strict mapping of a classifier label to QueryClassification.
- confidence_for: confidence band from the average similarity of retrieved chunks.
- RouteDecision: chosen classification plus a short rationale.
- RetrievalRouter: classifies a query, retrieves only when the intent needs
  documentation, and assembles the AnswerResult handed back to callers.

Routing:
- SOCIAL: no retrieval, generator without document context.
- TOPICS_INQUIRY: no retrieval, random sample from the industry's topic catalog.
- OFF_TOPIC: no retrieval, scope redirection naming the supported industries.
- ON_TOPIC: retrieval; no qualifying chunk means a fixed "don't know" answer.
- FOLLOW_UP: retrieval; no qualifying chunk means answering from history alone.

Classifier failures and unrecognized labels resolve to OFF_TOPIC.
"""
import logging
import random
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from industry_rag.catalog import TopicCatalog
from industry_rag.domain import AnswerResult, Confidence, QueryClassification, RetrievalResult
from industry_rag.embedding import EmbeddingService
from industry_rag.errors import ProviderError, StoreError, ValidationError
from industry_rag.generation import Classifier, Generator
from industry_rag.obs import span
from industry_rag import prompts
from industry_rag.store import VectorStore

logger = logging.getLogger(__name__)

HISTORY_ROLES = {"user", "assistant"}


def parse_classification(label: Optional[str]) -> Optional[QueryClassification]:
    """Map a raw classifier label onto the closed set of intents.

    Normalizes case, surrounding quotes/punctuation and '-'/space separators,
    then requires an exact match. Returns None for anything else.
    """
    if not label:
        return None
    normalized = re.sub(r"[\s\-]+", "_", label.strip().strip("\"'`.,:;!").strip().lower())
    try:
        return QueryClassification(normalized)
    except ValueError:
        return None


def confidence_for(results: Sequence[RetrievalResult]) -> Confidence:
    """Confidence band from average similarity: > 0.8 high, > 0.6 medium, else low."""
    if not results:
        return Confidence.LOW
    avg = sum(r.similarity for r in results) / len(results)
    if avg > 0.8:
        return Confidence.HIGH
    if avg > 0.6:
        return Confidence.MEDIUM
    return Confidence.LOW


def format_source(result: RetrievalResult) -> str:
    return f"{result.document_name} (Chunk {result.chunk.index}, Similarity: {result.similarity * 100:.1f}%)"


@dataclass
class RouteDecision:
    """Routing decision for one query.

    Attributes:
        classification: The resolved intent.
        reason: Short rationale (raw label, fallback cause) for logs and traces.
    """
    classification: QueryClassification
    reason: str


class RetrievalRouter:
    """Decide whether and what to retrieve for a query, then assemble the answer.

    Args:
        classifier: Intent classifier returning raw labels.
        embedder: Embedding service shared with ingestion.
        store: Vector store to search.
        generator: Answer generator.
        catalog: Topic catalog for TOPICS_INQUIRY.
        industries: Supported industries; queries for others are rejected.
        threshold: Minimum similarity for a chunk to count as relevant.
        top_k: Maximum chunks retrieved per query.
        topic_sample_size: Topics returned for TOPICS_INQUIRY.
        history_max_turns: Most recent turns forwarded to the generator.
        rng: Source of randomness for topic sampling.
    """

    def __init__(
        self,
        classifier: Classifier,
        embedder: EmbeddingService,
        store: VectorStore,
        generator: Generator,
        catalog: TopicCatalog,
        industries: List[str],
        threshold: float = 0.5,
        top_k: int = 5,
        topic_sample_size: int = 3,
        history_max_turns: int = 10,
        rng: Optional[random.Random] = None,
    ):
        if not 0.0 <= threshold <= 1.0:
            raise ValidationError(f"threshold must be within [0, 1], got {threshold}")
        if top_k <= 0:
            raise ValidationError(f"top_k must be positive, got {top_k}")
        self.classifier = classifier
        self.embedder = embedder
        self.store = store
        self.generator = generator
        self.catalog = catalog
        self.industries = list(industries)
        self.threshold = threshold
        self.top_k = top_k
        self.topic_sample_size = topic_sample_size
        self.history_max_turns = history_max_turns
        self.rng = rng or random.Random()

    # -- input handling -------------------------------------------------------

    def _validate(self, query: str, industry: str, history) -> List[Dict[str, str]]:
        if not query or not query.strip():
            raise ValidationError("query must not be empty")
        if not industry:
            raise ValidationError("industry is required")
        if industry not in self.industries:
            raise ValidationError(
                f"unsupported industry {industry!r}; expected one of {', '.join(self.industries)}"
            )
        turns: List[Dict[str, str]] = []
        for turn in history or []:
            role = turn.get("role") if isinstance(turn, dict) else None
            content = turn.get("content") if isinstance(turn, dict) else None
            if role not in HISTORY_ROLES or not isinstance(content, str):
                raise ValidationError(f"malformed history turn: {turn!r}")
            turns.append({"role": role, "content": content})
        if self.history_max_turns > 0:
            turns = turns[-self.history_max_turns:]
        return turns

    # -- classification -------------------------------------------------------

    def classify(self, query: str, has_history: bool, industry: str) -> RouteDecision:
        """Classify a query, resolving every failure mode to OFF_TOPIC."""
        with span("rag.classify", {"industry": industry, "has_history": has_history}) as s:
            try:
                label = self.classifier.classify(query, has_history, industry)
            except ProviderError as exc:
                logger.warning("Classifier failed, treating query as off-topic: %s", exc)
                decision = RouteDecision(QueryClassification.OFF_TOPIC, f"classifier error: {exc}")
            else:
                parsed = parse_classification(label)
                if parsed is None:
                    logger.warning("Unrecognized classifier label %r, treating query as off-topic", label)
                    decision = RouteDecision(QueryClassification.OFF_TOPIC, f"unrecognized label {label!r}")
                elif parsed is QueryClassification.FOLLOW_UP and not has_history:
                    decision = RouteDecision(QueryClassification.ON_TOPIC, "follow_up without history")
                else:
                    decision = RouteDecision(parsed, f"label {label!r}")
            s.set_attribute("classification", decision.classification.value)
        return decision

    # -- answering ------------------------------------------------------------

    def answer(self, query: str, industry: str, history=None) -> AnswerResult:
        """Answer a user query.

        Args:
            query: The user's question.
            industry: One of the supported industries; scopes retrieval.
            history: Prior turns as {"role": "user"|"assistant", "content": str}.

        Returns:
            AnswerResult: answer, sources, confidence, chunks_found, classification.
                Provider/store failures after classification are reported in
                `error` with an apology answer instead of being raised.

        Raises:
            ValidationError: On an empty query, unsupported industry, or
                malformed history.
        """
        turns = self._validate(query, industry, history)
        decision = self.classify(query, bool(turns), industry)
        state = decision.classification
        logger.info("Query routed to %s (%s) for %s", state.value, decision.reason, industry)

        try:
            if state is QueryClassification.SOCIAL:
                return self._answer_social(query, industry, turns)
            if state is QueryClassification.TOPICS_INQUIRY:
                return self._answer_topics(industry)
            if state is QueryClassification.OFF_TOPIC:
                return self._answer_off_topic()
            if state is QueryClassification.ON_TOPIC or state is QueryClassification.FOLLOW_UP:
                return self._answer_with_retrieval(state, query, industry, turns)
        except (ProviderError, StoreError) as exc:
            logger.error("Answering failed in state %s: %s", state.value, exc)
            return AnswerResult(
                answer=prompts.APOLOGY_MESSAGE,
                classification=state,
                confidence=Confidence.LOW,
                error=str(exc),
            )
        raise AssertionError(f"unhandled classification: {state}")

    def _answer_social(self, query: str, industry: str, turns: List[Dict[str, str]]) -> AnswerResult:
        system = prompts.system_prompt(QueryClassification.SOCIAL, industry, self.industries)
        with span("rag.generate", {"state": "social"}):
            text = self.generator.complete(system, turns, query)
        return AnswerResult(answer=text, classification=QueryClassification.SOCIAL, confidence=Confidence.HIGH)

    def _answer_topics(self, industry: str) -> AnswerResult:
        topics = self.catalog.sample(industry, self.topic_sample_size, self.rng)
        return AnswerResult(
            answer=prompts.topics_message(industry, topics),
            classification=QueryClassification.TOPICS_INQUIRY,
            confidence=Confidence.HIGH,
            topics=topics,
        )

    def _answer_off_topic(self) -> AnswerResult:
        return AnswerResult(
            answer=prompts.off_topic_message(self.industries),
            classification=QueryClassification.OFF_TOPIC,
            confidence=Confidence.LOW,
        )

    def retrieve(self, query: str, industry: str) -> List[RetrievalResult]:
        with span("rag.retrieve", {"industry": industry, "top_k": self.top_k, "threshold": self.threshold}) as s:
            qvec = self.embedder.embed_one(query)
            results = self.store.similarity_search(qvec, self.top_k, self.threshold, industry)
            s.set_attribute("chunks_found", len(results))
        if results:
            logger.debug(
                "Top chunk: similarity=%.3f document=%s chunk=%d",
                results[0].similarity, results[0].document_name, results[0].chunk.index,
            )
        return results

    def _answer_with_retrieval(
        self,
        state: QueryClassification,
        query: str,
        industry: str,
        turns: List[Dict[str, str]],
    ) -> AnswerResult:
        results = self.retrieve(query, industry)
        logger.info("Found %d chunks above %.2f for %s", len(results), self.threshold, industry)

        if not results:
            if state is QueryClassification.FOLLOW_UP:
                system = prompts.history_only_system_prompt(industry, self.industries)
                with span("rag.generate", {"state": "follow_up_history"}):
                    text = self.generator.complete(system, turns, query)
                return AnswerResult(answer=text, classification=state, confidence=Confidence.LOW)
            return AnswerResult(
                answer=prompts.DONT_KNOW_MESSAGE.format(industry=industry),
                classification=state,
                confidence=Confidence.LOW,
            )

        system = prompts.system_prompt(state, industry, self.industries)
        with span("rag.generate", {"state": state.value, "chunks": len(results)}):
            text = self.generator.complete(system, turns, prompts.grounded_user_turn(query, results))
        return AnswerResult(
            answer=text,
            classification=state,
            confidence=confidence_for(results),
            sources=[format_source(r) for r in results],
            chunks_found=len(results),
        )
