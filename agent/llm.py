"""
LLM interface for Anthropic Claude models on Amazon Bedrock.
Opens streaming invocations through the anthropic SDK and retries throttled
requests with exponential backoff.
"""

import logging
import random
import time
from typing import Any, Callable, Dict, Iterator, Optional

import anthropic
import httpx
from anthropic import AnthropicBedrock

from .errors import TransportError
from .models import supports_latency_optimized


logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 2.0
MAX_RETRIES = 6

# body keys handled by the Bedrock client itself or sent outside the typed parameters
_ENVELOPE_KEYS = ("anthropic_version", "anthropic_beta")

PERFORMANCE_LATENCY_HEADER = "X-Amzn-Bedrock-PerformanceConfig-Latency"
LATENCY_OPTIMIZED = "optimized"


def is_throttling(error: Exception) -> bool:
    """True if an invocation error means the request was rate limited."""
    if isinstance(error, anthropic.RateLimitError):
        return True
    if isinstance(error, anthropic.APIStatusError) and error.status_code == 429:
        return True
    message = str(error).lower()
    return "throttl" in message or "too many requests" in message


def backoff_delay(attempt: int, jitter: Callable[[float, float], float] = random.uniform) -> float:
    """Delay before retry number ``attempt`` (0-based): base * 2^attempt plus up to 1s jitter."""
    return BACKOFF_BASE_SECONDS * (2 ** attempt) + jitter(0.0, 1.0)


class LLMClient:
    """Bedrock streaming client with throttling backoff."""

    def __init__(self, region: str, timeout: float = 600.0, client: Optional[Any] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 jitter: Callable[[float, float], float] = random.uniform,
                 max_retries: int = MAX_RETRIES):
        """
        Initialize the Bedrock client.

        Args:
            region: AWS region hosting the model
            timeout: read timeout for the streaming response, in seconds
            client: prebuilt client exposing ``messages.create`` (tests inject one)
            sleep: called with the backoff delay between retries
            jitter: random source for the backoff jitter
            max_retries: retries of a throttled invocation before giving up
        """
        self.region = region
        self.sleep = sleep
        self.jitter = jitter
        self.max_retries = max_retries

        if client is None:
            # the SDK's own retries are off: throttling is retried here
            client = AnthropicBedrock(
                aws_region=region,
                max_retries=0,
                http_client=httpx.Client(timeout=httpx.Timeout(timeout, connect=10.0)),
            )
            logger.info(f"Bedrock client initialized: region={region} timeout={timeout}s")
        self.client = client

    def _request_kwargs(self, model_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        kwargs = {k: v for k, v in body.items() if k not in _ENVELOPE_KEYS}
        kwargs["model"] = model_id
        kwargs["stream"] = True
        if body.get("anthropic_beta"):
            kwargs["extra_body"] = {"anthropic_beta": list(body["anthropic_beta"])}
        if supports_latency_optimized(model_id, self.region):
            kwargs["extra_headers"] = {PERFORMANCE_LATENCY_HEADER: LATENCY_OPTIMIZED}
            logger.info(f"performance configuration latency set to '{LATENCY_OPTIMIZED}'")
        return kwargs

    def open_stream(self, model_id: str, body: Dict[str, Any]):
        """
        Open a streaming invocation for a prepared request body.

        Throttled attempts are retried up to ``max_retries`` times; every other
        error is terminal.

        Returns:
            The SDK stream (iterable of events, with ``close()``)

        Raises:
            TransportError: if the invocation could not be opened
        """
        kwargs = self._request_kwargs(model_id, body)
        attempt = 0
        while True:
            try:
                logger.debug(f"invoking {model_id} (attempt {attempt + 1})")
                return self.client.messages.create(**kwargs)
            except (anthropic.APIError, httpx.HTTPError) as e:
                if is_throttling(e) and attempt < self.max_retries:
                    delay = backoff_delay(attempt, self.jitter)
                    logger.warning(f"request throttled, retrying in {delay:.2f}s: {e}")
                    self.sleep(delay)
                    attempt += 1
                    continue
                logger.error(f"invocation of {model_id} failed: {e}")
                raise TransportError(f"error invoking model {model_id}: {e}") from e

    def iter_events(self, stream) -> Iterator[Any]:
        """Yield stream events, mapping mid-stream failures to TransportError."""
        try:
            for event in stream:
                yield event
        except (anthropic.APIError, httpx.HTTPError) as e:
            logger.error(f"Streaming error: {e}")
            raise TransportError(f"error reading response stream: {e}") from e
