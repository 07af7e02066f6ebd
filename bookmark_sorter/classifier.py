"""Bookmark classifier using OpenAI structured outputs."""

from __future__ import annotations

import json
import logging
import os
import random
import time
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Callable, Literal

from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError, create_model

from .config import DEFAULT_MODEL, MAX_RETRIES, RETRY_BASE_DELAY, RETRY_MAX_JITTER
from .models import ClassificationResult

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Sequence

    from .models import BookmarkRecord

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = " ".join(
    [
        "You are a bookmark classifier.",
        "Pick the single best category from the allowed list.",
        "Be flexible: if multiple categories could fit, choose the closest match.",
        'If unsure, pick the most semantically similar category, not "Other" unless it exists.',
        "Report your confidence as a number between 0 and 1.",
    ],
)

ServerErrorReporter = Callable[[int, dict[str, Any], object], None]


class MissingCredentialError(RuntimeError):
    """Raised when no OpenAI API key is available."""


class AttemptOutcome(Enum):
    """Result tag of a single classifier call."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(slots=True)
class AttemptResult:
    """Outcome of one attempt; ``response`` on success, ``error`` otherwise."""

    outcome: AttemptOutcome
    response: Any = None
    error: Exception | None = None
    status: int | None = None


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff with jitter for transient classifier failures."""

    base_delay: float = RETRY_BASE_DELAY
    max_jitter: float = RETRY_MAX_JITTER
    max_retries: int = MAX_RETRIES

    def delay_for(self, retry_index: int) -> float:
        """Seconds to wait before retry number ``retry_index`` (0-based)."""
        jitter = random.uniform(0.0, self.max_jitter)  # noqa: S311
        return self.base_delay * 2**retry_index + jitter


def status_code_of(exc: BaseException) -> int | None:
    """Return the HTTP status carried by an SDK error, if any."""
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable(status: int | None) -> bool:
    """429, any 5xx and connection failures (no status) are worth retrying."""
    return status is None or status == 429 or 500 <= status < 600  # noqa: PLR2004


@lru_cache(maxsize=32)
def category_schema(categories: tuple[str, ...]) -> type[BaseModel]:
    """Build the structured-output model restricted to ``categories``."""
    return create_model(
        "BookmarkCategory",
        chosen_category=(Literal[categories], ...),  # type: ignore[valid-type]
        confidence=(float, Field(ge=0.0, le=1.0)),
    )


def _log_server_error(status: int, request: dict[str, Any], body: object) -> None:
    LOGGER.error(
        "OpenAI %d error; request=%s response=%s",
        status,
        json.dumps(request, ensure_ascii=False, default=str),
        body,
    )


def _error_body(exc: BaseException) -> object:
    body = getattr(exc, "body", None)
    if body is not None:
        return body
    text = getattr(getattr(exc, "response", None), "text", None)
    if text is not None:
        return text
    return str(exc)


class BookmarkClassifier:
    """Assign one category of a closed set to a bookmark.

    Each call goes through ``client.responses.parse`` with a schema that only
    admits the supplied categories. Transient failures (429, 5xx, connection
    errors) are retried according to ``retry_policy``; every 5xx is passed to
    ``report_server_error`` before the retry decision is acted upon.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        *,
        client: object | None = None,
        api_key: str | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        report_server_error: ServerErrorReporter = _log_server_error,
    ) -> None:
        """Initialise the classifier.

        Args:
            model: OpenAI model identifier.
            client: OpenAI-like client; created from ``api_key`` when omitted.
            api_key: Explicit key, else ``OPENAI_API_KEY`` from the environment.
            retry_policy: Backoff settings, defaults to :class:`RetryPolicy`.
            sleep: Function used to wait between attempts.
            report_server_error: Receives ``(status, request, body)`` for every 5xx.

        Raises:
            MissingCredentialError: No client given and no API key available.

        """
        if client is None:
            key = api_key or os.getenv("OPENAI_API_KEY")
            if not key:
                msg = "Missing OPENAI_API_KEY"
                raise MissingCredentialError(msg)
            # Retries are handled by RetryPolicy, not by the SDK.
            client = OpenAI(api_key=key, max_retries=0)
        self._client: Any = client
        self._model = model
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._report_server_error = report_server_error

    @property
    def model(self) -> str:
        return self._model

    def classify(
        self, record: BookmarkRecord, categories: Sequence[str],
    ) -> ClassificationResult:
        """Classify one bookmark into one of ``categories``.

        Malformed model output falls back to the first category with zero
        confidence. Errors that survive the retry policy are re-raised.
        """
        allowed = tuple(categories)
        if not allowed:
            msg = "At least one category is required for classification"
            raise ValueError(msg)
        schema = category_schema(allowed)
        request = self.build_request(record, allowed)
        response = self._invoke_with_retry(request, schema)
        LOGGER.debug(
            "OpenAI success for %s; request=%s parsed=%r text=%r",
            record.url,
            json.dumps(request, ensure_ascii=False),
            getattr(response, "output_parsed", None),
            getattr(response, "output_text", None),
        )
        return self._interpret(response, schema, allowed)

    def build_request(
        self, record: BookmarkRecord, categories: Sequence[str],
    ) -> dict[str, Any]:
        """Build the Responses API payload (without the output schema)."""
        user_text = "\n".join(
            [
                f"Title: {record.title}",
                f"URL: {record.url}",
                f"Folder path (context): {record.folder_path or '(none)'}",
                "",
                f"Allowed categories: {', '.join(categories)}",
            ],
        )
        return {
            "model": self._model,
            "input": [
                {"role": "developer", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_text},
            ],
        }

    # --- retry loop ---------------------------------------------------------------------------

    def _invoke_with_retry(self, request: dict[str, Any], schema: type[BaseModel]) -> Any:
        max_retries = max(0, self._retry_policy.max_retries)
        result = self._attempt(request, schema)
        for retry_index in range(max_retries):
            if result.outcome is not AttemptOutcome.RETRYABLE:
                break
            delay = self._retry_policy.delay_for(retry_index)
            LOGGER.debug(
                "Retryable error (status=%s); backing off %.3fs before attempt %d/%d",
                result.status,
                delay,
                retry_index + 2,
                max_retries + 1,
            )
            self._sleep(delay)
            result = self._attempt(request, schema)

        if result.outcome is AttemptOutcome.SUCCESS:
            return result.response
        if result.error is None:  # pragma: no cover - failed attempts always carry an error
            msg = "Classifier attempt failed without an error"
            raise RuntimeError(msg)
        raise result.error

    def _attempt(self, request: dict[str, Any], schema: type[BaseModel]) -> AttemptResult:
        try:
            response = self._client.responses.parse(**request, text_format=schema)
        except (ValidationError, json.JSONDecodeError) as exc:
            # The SDK validates the output itself; a bad payload is not a transport failure.
            LOGGER.debug("Structured output rejected by schema; will fall back: %s", exc)
            return AttemptResult(outcome=AttemptOutcome.SUCCESS, response=None)
        except Exception as exc:  # noqa: BLE001
            status = status_code_of(exc)
            if status is not None and 500 <= status < 600:  # noqa: PLR2004
                self._notify_server_error(status, request, exc)
            outcome = AttemptOutcome.RETRYABLE if is_retryable(status) else AttemptOutcome.FATAL
            return AttemptResult(outcome=outcome, error=exc, status=status)
        return AttemptResult(outcome=AttemptOutcome.SUCCESS, response=response)

    def _notify_server_error(
        self, status: int, request: dict[str, Any], exc: Exception,
    ) -> None:
        try:
            self._report_server_error(status, request, _error_body(exc))
        except Exception:  # noqa: BLE001
            LOGGER.debug("Server error reporter failed", exc_info=True)

    # --- response handling --------------------------------------------------------------------

    @staticmethod
    def _interpret(
        response: Any, schema: type[BaseModel], categories: tuple[str, ...],
    ) -> ClassificationResult:
        parsed = getattr(response, "output_parsed", None)
        if not isinstance(parsed, schema):
            parsed = None
            text = getattr(response, "output_text", None)
            if isinstance(text, str) and text.strip():
                try:
                    parsed = schema.model_validate_json(text)
                except ValidationError:
                    LOGGER.debug("Failed to parse structured output; will fall back: %r", text)

        if parsed is None:
            return ClassificationResult(category=categories[0], confidence=0.0)
        return ClassificationResult(
            category=str(parsed.chosen_category),  # type: ignore[attr-defined]
            confidence=float(parsed.confidence),  # type: ignore[attr-defined]
        )
