"""Tests the classifier retry/backoff policy and structured output fallbacks.

The OpenAI client is replaced by a stub whose ``responses.parse`` replays a
scripted list of responses and exceptions.
"""
from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pydantic
import pytest

from bookmark_sorter.classifier import (
    BookmarkClassifier,
    MissingCredentialError,
    RetryPolicy,
    category_schema,
    status_code_of,
)
from bookmark_sorter.models import BookmarkRecord

CATEGORIES = ("Tech", "News", "Cooking")
RECORD = BookmarkRecord(title="Python docs", url="https://docs.python.org/3/", folder_path="Dev")
_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


class StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class DummyResponses:
    def __init__(self, outcomes: list[object]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    def parse(self, **kwargs: Any) -> object:
        self.calls.append(kwargs)
        if not self._outcomes:
            raise RuntimeError("No more dummy outcomes")
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class DummyClient:
    def __init__(self, outcomes: list[object]) -> None:
        self.responses = DummyResponses(outcomes)


def _parsed(category: str, confidence: float) -> SimpleNamespace:
    schema = category_schema(CATEGORIES)
    parsed = schema(chosen_category=category, confidence=confidence)
    return SimpleNamespace(output_parsed=parsed, output_text=parsed.model_dump_json())


def _text_only(text: str) -> SimpleNamespace:
    return SimpleNamespace(output_parsed=None, output_text=text)


def _make(outcomes: list[object], **kwargs: Any) -> tuple[BookmarkClassifier, DummyClient, list[float]]:
    client = DummyClient(outcomes)
    sleeps: list[float] = []
    classifier = BookmarkClassifier(client=client, sleep=sleeps.append, **kwargs)
    return classifier, client, sleeps


def test_retries_server_errors_then_succeeds() -> None:
    classifier, client, sleeps = _make([StatusError(503), StatusError(503), _parsed("News", 0.7)])
    result = classifier.classify(RECORD, CATEGORIES)
    if (result.category, result.confidence) != ("News", 0.7):
        msg = f"Unexpected result {result}"
        raise AssertionError(msg)
    if len(client.responses.calls) != 3 or len(sleeps) != 2:
        msg = f"Expected 3 calls and 2 delays, got {len(client.responses.calls)} / {sleeps}"
        raise AssertionError(msg)
    for k, delay in enumerate(sleeps):
        floor = 0.4 * 2**k
        if not floor <= delay <= floor + 0.1:
            msg = f"Delay {delay} for retry {k} outside [{floor}, {floor + 0.1}]"
            raise AssertionError(msg)


def test_client_error_is_not_retried() -> None:
    classifier, client, sleeps = _make([StatusError(404), _parsed("Tech", 1.0)])
    try:
        classifier.classify(RECORD, CATEGORIES)
    except StatusError as exc:
        if exc.status_code != 404:
            raise AssertionError("Wrong error propagated") from exc
    else:
        raise AssertionError("Expected the 404 to propagate")
    if len(client.responses.calls) != 1 or sleeps:
        raise AssertionError("404 must not be retried")


def test_rate_limit_exhausts_retries() -> None:
    classifier, client, sleeps = _make([StatusError(429)] * 6)
    try:
        classifier.classify(RECORD, CATEGORIES)
    except StatusError:
        pass
    else:
        raise AssertionError("Expected the final 429 to propagate")
    if len(client.responses.calls) != 5 or len(sleeps) != 4:
        msg = f"Expected 5 attempts and 4 delays, got {len(client.responses.calls)} / {len(sleeps)}"
        raise AssertionError(msg)


def test_connection_error_without_status_is_retried() -> None:
    classifier, client, sleeps = _make(
        [openai.APIConnectionError(request=_REQUEST), _parsed("Tech", 0.9)],
        retry_policy=RetryPolicy(base_delay=0.0, max_jitter=0.0),
    )
    result = classifier.classify(RECORD, CATEGORIES)
    if result.category != "Tech" or len(client.responses.calls) != 2 or sleeps != [0.0]:
        msg = f"Connection failure not retried as expected: {result}, {sleeps}"
        raise AssertionError(msg)


def test_server_errors_are_reported_with_payloads() -> None:
    reports: list[tuple[int, dict[str, Any], object]] = []
    error = openai.InternalServerError(
        "boom",
        response=httpx.Response(500, request=_REQUEST),
        body={"error": {"message": "boom"}},
    )
    classifier, _, _ = _make(
        [error, _parsed("Cooking", 0.5)],
        report_server_error=lambda status, request, body: reports.append((status, request, body)),
    )
    classifier.classify(RECORD, CATEGORIES)
    if len(reports) != 1:
        msg = f"Expected one report, got {reports}"
        raise AssertionError(msg)
    status, request, body = reports[0]
    if status != 500 or body != {"error": {"message": "boom"}}:
        msg = f"Unexpected report {reports[0]}"
        raise AssertionError(msg)
    if request["model"] != classifier.model or "Python docs" not in request["input"][1]["content"]:
        raise AssertionError("Report must carry the outbound request")


def test_failing_reporter_does_not_abort_retries() -> None:
    def _broken_reporter(*_args: object) -> None:
        raise RuntimeError("reporter down")

    classifier, client, _ = _make(
        [StatusError(502), _parsed("Tech", 0.4)], report_server_error=_broken_reporter,
    )
    result = classifier.classify(RECORD, CATEGORIES)
    if result.category != "Tech" or len(client.responses.calls) != 2:
        raise AssertionError("Reporter failure must not stop the retry loop")


def test_text_output_is_parsed_when_structured_field_missing() -> None:
    payload = json.dumps({"chosen_category": "Cooking", "confidence": 0.25})
    classifier, _, _ = _make([_text_only(payload)])
    result = classifier.classify(RECORD, CATEGORIES)
    if (result.category, result.confidence) != ("Cooking", 0.25):
        msg = f"Unexpected result {result}"
        raise AssertionError(msg)


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        json.dumps({"chosen_category": "Gardening", "confidence": 0.9}),
        json.dumps({"chosen_category": "News", "confidence": 3}),
        "",
    ],
)
def test_malformed_output_falls_back_to_first_category(text: str) -> None:
    classifier, _, sleeps = _make([_text_only(text)])
    result = classifier.classify(RECORD, CATEGORIES)
    if (result.category, result.confidence) != ("Tech", 0.0):
        msg = f"Expected fallback result, got {result}"
        raise AssertionError(msg)
    if sleeps:
        raise AssertionError("Malformed output must not trigger retries")


def test_request_carries_model_context_and_schema() -> None:
    classifier, client, _ = _make([_parsed("Tech", 0.8)], model="gpt-test")
    classifier.classify(RECORD, CATEGORIES)
    call = client.responses.calls[0]
    if call["model"] != "gpt-test":
        raise AssertionError("Model identifier not forwarded")
    user_text = call["input"][1]["content"]
    for fragment in ("Title: Python docs", "URL: https://docs.python.org/3/", "Dev", "Tech, News, Cooking"):
        if fragment not in user_text:
            msg = f"Missing {fragment!r} in user input:\n{user_text}"
            raise AssertionError(msg)
    schema = call["text_format"]
    try:
        schema.model_validate({"chosen_category": "Gardening", "confidence": 0.5})
    except pydantic.ValidationError:
        pass
    else:
        raise AssertionError("Schema must reject categories outside the allowed set")


def test_missing_api_key_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    try:
        BookmarkClassifier()
    except MissingCredentialError:
        pass
    else:
        raise AssertionError("Expected MissingCredentialError without an API key")


def test_status_code_of_sdk_errors() -> None:
    error = openai.RateLimitError(
        "slow down", response=httpx.Response(429, request=_REQUEST), body=None,
    )
    if status_code_of(error) != 429:
        raise AssertionError("Expected 429 from RateLimitError")
    if status_code_of(openai.APIConnectionError(request=_REQUEST)) is not None:
        raise AssertionError("Connection errors carry no status")


class ValidatingResponses(DummyResponses):
    """Validates raw payloads against ``text_format`` the way the SDK does."""

    def parse(self, **kwargs: Any) -> object:
        payload = super().parse(**kwargs)
        parsed = kwargs["text_format"].model_validate_json(payload)
        return SimpleNamespace(output_parsed=parsed, output_text=payload)


@pytest.mark.parametrize(
    "payload",
    [json.dumps({"chosen_category": "Gardening", "confidence": 0.5}), "{not json"],
)
def test_schema_rejection_inside_sdk_falls_back_without_retry(payload: str) -> None:
    client = DummyClient([])
    client.responses = ValidatingResponses([payload])
    sleeps: list[float] = []
    classifier = BookmarkClassifier(client=client, sleep=sleeps.append)
    result = classifier.classify(RECORD, CATEGORIES)
    if (result.category, result.confidence) != ("Tech", 0.0):
        msg = f"Expected fallback result, got {result}"
        raise AssertionError(msg)
    if len(client.responses.calls) != 1 or sleeps:
        msg = f"Schema rejection must not be retried: {len(client.responses.calls)} calls, {sleeps}"
        raise AssertionError(msg)
