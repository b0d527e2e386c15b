"""Compute OpenAI embeddings for cleaned posts."""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

import numpy as np
import openai
from openai import OpenAI

from clean_posts.models import ProcessedItem
from common.outcome import Outcome
from common.retry import RetryPolicy
from common.utils import chunked
from compute_embeddings.models import EmbeddedItem, EmbeddingStats

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-ada-002"
MAX_CHARS = 6000
BATCH_SIZE = 100
BATCH_DELAY_SECONDS = 1.0
COST_PER_1K_TOKENS = 0.0001
REQUEST_TIMEOUT = 30

# Bad credentials will not fix themselves between attempts.
FATAL_ERRORS = (openai.AuthenticationError, openai.PermissionDeniedError)
# Items that could not reach the API, with no success yet, before the stage gives up.
UNREACHABLE_AFTER = 3


class EmbeddingServiceUnavailable(RuntimeError):
    """Raised when the embeddings API cannot be reached for any item."""


def build_client(api_key: str | None = None, timeout: float = REQUEST_TIMEOUT) -> OpenAI:
    """Create an OpenAI client from the argument or OPENAI_API_KEY."""
    api_key = api_key or os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set")
    return OpenAI(api_key=api_key, timeout=timeout)


def prepare_text(text: str | None, max_chars: int = MAX_CHARS) -> tuple[str, bool]:
    """Trim text to the model budget.

    Cuts at the last space before ``max_chars`` so no word is split; text
    with no space at all is hard-cut.

    Returns:
        Tuple of (text to embed, whether it was truncated).
    """
    if not text:
        return "", False

    if len(text) <= max_chars:
        return text.strip(), False

    cut = text[:max_chars]
    if not text[max_chars].isspace():
        last_space = cut.rfind(" ")
        if last_space > 0:
            cut = cut[:last_space]
    return cut.strip(), True


def calculate_cost(tokens: int, cost_per_1k: float = COST_PER_1K_TOKENS) -> float:
    return tokens / 1000 * cost_per_1k


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Raises:
        ValueError: If the vectors differ in dimension.
    """
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    if vec_a.shape != vec_b.shape:
        raise ValueError(
            f"Embeddings must have the same dimensions ({vec_a.shape[0]} != {vec_b.shape[0]})"
        )

    norm = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / norm)


def embedding_stats(items: list[EmbeddedItem]) -> EmbeddingStats:
    """Summarize token usage and cost over successfully embedded items."""
    successful = [item for item in items if item.has_embedding]
    total_tokens = sum(item.total_tokens for item in successful)
    total_cost = sum(item.cost for item in successful)
    count = len(successful)
    return EmbeddingStats(
        total_items=len(items),
        successful=count,
        failed=len(items) - count,
        total_tokens=total_tokens,
        total_cost=total_cost,
        average_tokens=total_tokens / count if count else 0.0,
        average_cost=total_cost / count if count else 0.0,
    )


class EmbeddingGenerator:
    """Embeds processed posts one request per item, in paced batches."""

    def __init__(
        self,
        client: Any = None,
        model: str = DEFAULT_MODEL,
        max_chars: int = MAX_CHARS,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        cost_per_1k: float = COST_PER_1K_TOKENS,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        unreachable_after: int = UNREACHABLE_AFTER,
    ):
        self._client = client
        self.model = model
        self.max_chars = max_chars
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.cost_per_1k = cost_per_1k
        self.retry = retry or RetryPolicy(max_attempts=3, base_delay=2.0, fatal=FATAL_ERRORS, sleep=sleep)
        self.sleep = sleep
        self.unreachable_after = unreachable_after
        self.connection_failures = 0

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = build_client()
        return self._client

    def _request(self, text: str) -> Any:
        return self.client.embeddings.create(model=self.model, input=text)

    def embed_item(self, item: ProcessedItem) -> Outcome[EmbeddedItem]:
        """Embed one item, retrying transient failures.

        Authentication and permission errors propagate.
        """
        text, truncated = prepare_text(item.cleaned_text, self.max_chars)
        if truncated:
            logger.debug("Truncated post %s to %d chars", item.id, len(text))

        if not text:
            logger.warning("No text to embed for post %s", item.id)
            return Outcome.fallback(self._fallback(item, "No text to embed", 0), "No text to embed")

        try:
            response, attempts = self.retry.call(
                lambda: self._request(text), description=f"Embedding post {item.id}"
            )
        except self.retry.fatal:
            raise
        except Exception as e:
            if isinstance(e, openai.APIConnectionError):
                self.connection_failures += 1
            logger.error(
                "Failed to embed post %s after %d attempts: %s", item.id, self.retry.max_attempts, e
            )
            error = f"Embedding failed: {e}"
            return Outcome.fallback(self._fallback(item, error, self.retry.max_attempts, len(text)), error)

        usage = response.usage
        total_tokens = getattr(usage, "total_tokens", 0) or 0
        return Outcome.success(
            EmbeddedItem(
                item=item,
                embedding=list(response.data[0].embedding),
                embedding_model=self.model,
                total_tokens=total_tokens,
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                cost=calculate_cost(total_tokens, self.cost_per_1k),
                embedded_at=datetime.now(timezone.utc),
                text_length=len(text),
                truncated=truncated,
                attempts=attempts,
            )
        )

    def _fallback(self, item: ProcessedItem, error: str, attempts: int, text_length: int = 0) -> EmbeddedItem:
        return EmbeddedItem(
            item=item,
            embedding=None,
            embedding_model=self.model,
            total_tokens=0,
            prompt_tokens=0,
            cost=0.0,
            embedded_at=datetime.now(timezone.utc),
            text_length=text_length,
            truncated=False,
            attempts=attempts,
            error=error,
        )

    def embed(self, items: list[ProcessedItem]) -> list[EmbeddedItem]:
        """Embed items; output has exactly one entry per input.

        Raises:
            EmbeddingServiceUnavailable: If the API could not be reached for
                any item, checked after ``unreachable_after``
                connection failures or at the end of the run.
        """
        if not items:
            logger.warning("No items to embed")
            return []

        total_batches = (len(items) + self.batch_size - 1) // self.batch_size
        logger.info("Embedding %d items in %d batches (model=%s)", len(items), total_batches, self.model)

        self.connection_failures = 0
        successful = 0
        requested = 0
        results: list[EmbeddedItem] = []
        for number, batch in enumerate(chunked(items, self.batch_size), start=1):
            if number > 1:
                self.sleep(self.batch_delay)
            logger.debug("Embedding batch %d/%d", number, total_batches)
            for item in batch:
                outcome = self.embed_item(item)
                results.append(outcome.value)
                if outcome.ok:
                    successful += 1
                if outcome.value.attempts:
                    requested += 1
                if not successful and self.connection_failures >= self.unreachable_after:
                    self._unreachable()

        if requested and not successful and self.connection_failures == requested:
            self._unreachable()

        stats = embedding_stats(results)
        logger.info(
            "Embedded %d/%d items (%d tokens, $%.6f)",
            stats.successful, stats.total_items, stats.total_tokens, stats.total_cost,
        )
        return results

    def _unreachable(self) -> None:
        raise EmbeddingServiceUnavailable(
            f"Embeddings API unreachable: {self.connection_failures} posts failed to connect"
        )

    def embed_query(self, text: str) -> list[float]:
        """Embed a search query. Errors propagate to the caller."""
        prepared, _ = prepare_text(text, self.max_chars)
        if not prepared:
            raise ValueError("Query text must not be empty")
        response, _ = self.retry.call(lambda: self._request(prepared), description="Embedding query")
        return list(response.data[0].embedding)
