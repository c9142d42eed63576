"""Authenticated HTTP requests to the Source service with bounded retries."""

from __future__ import annotations

import base64
import time
from urllib.parse import quote

import httpx
import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_random_exponential,
)

from source_client.config import ClientOptions
from source_client.domain.base import RemoteError, TransportError, UsageError
from source_client.metrics import requests_total, retries_total
from source_client.version import __version__

logger = structlog.get_logger()

USER_AGENT = f"source-client-{__version__}"

DEFAULT_RETRY_MAX = 20
DEFAULT_RETRY_WAIT_MIN = 1.0
DEFAULT_RETRY_WAIT_MAX = 30.0


def basic_token(user: str, password: str) -> str:
    """Build the value of a basic Authorization header."""
    credentials = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
    return f"Basic {credentials}"


def is_retryable_status(response: httpx.Response) -> bool:
    """Too many requests and server errors other than 501 are worth retrying."""
    status = response.status_code
    return status == 429 or (status >= 500 and status != 501)


def is_retryable_error(exc: BaseException) -> bool:
    """Network failures are retried; a request that cannot be built is not."""
    return isinstance(exc, httpx.TransportError) and not isinstance(
        exc, httpx.UnsupportedProtocol
    )


class DeadlineExceeded(httpx.TimeoutException):
    """Raised when no time is left for another attempt."""

    pass


class RequestExecutor:
    """Sends requests to the Source service and classifies the responses.

    Holds one httpx.Client whose connection pool is shared by every call;
    nothing else is mutated after construction, so an executor can be used
    from several threads.
    """

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        options: ClientOptions,
        *,
        retry_max: int = DEFAULT_RETRY_MAX,
        retry_wait_min: float = DEFAULT_RETRY_WAIT_MIN,
        retry_wait_max: float = DEFAULT_RETRY_WAIT_MAX,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize with the service address, credentials and options.

        Args:
            host: Base URL of the service, e.g. http://localhost:8080
            user: Basic auth user name
            password: Basic auth password
            options: Transport options (certificate checks, call timeout)
            retry_max: Retries after the first attempt
            retry_wait_min: Lower bound of the backoff between attempts, in seconds
            retry_wait_max: Upper bound of the backoff between attempts, in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.host = host.rstrip("/")
        self.token = basic_token(user, password)
        self.options = options
        self.timeout = options.request_timeout.total_seconds()
        self.retry_max = retry_max
        self.retry_wait_min = retry_wait_min
        self.retry_wait_max = retry_wait_max

        self.client = httpx.Client(
            verify=not options.insecure_transport,
            timeout=self.timeout,
            transport=transport,
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
        )

    def close(self) -> None:
        """Release pooled connections."""
        self.client.close()

    def url(self, route: str, *args: object) -> str:
        """Build a URL from a route template and path parameters.

        Each parameter is percent-encoded except for '|', which joins
        tag names and values in tag routes.
        """
        params = [quote(str(arg), safe="|") for arg in args]
        return f"{self.host}{route.format(*params)}"

    def headers(self, item_type: str | None = None, has_body: bool = False) -> dict[str, str]:
        """Get request headers with authentication."""
        headers = {
            "Authorization": self.token,
            "User-Agent": USER_AGENT,
        }
        if item_type:
            headers["Source-Type"] = item_type
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    def execute(
        self,
        method: str,
        route: str,
        *args: object,
        body: bytes | None = None,
        item_type: str | None = None,
        operation: str = "send request",
        empty_on_not_found: bool = False,
    ) -> httpx.Response | None:
        """Send one request, retrying transient failures, and classify the outcome.

        Args:
            method: HTTP method
            route: Route template with '{}' placeholders, e.g. "/item/{}"
            *args: Path parameters for the placeholders
            body: JSON request body
            item_type: Value of the Source-Type header
            operation: Description used in errors, logs and metrics
            empty_on_not_found: Return None on 404 instead of raising

        Returns:
            The successful response, or None for a 404 when empty_on_not_found

        Raises:
            UsageError: The request cannot be built (bad host or scheme)
            TransportError: The service was unreachable within the retry budget
            RemoteError: The service answered with a non-success status
        """
        url = self.url(route, *args)
        headers = self.headers(item_type, has_body=body is not None)
        deadline = time.monotonic() + self.timeout
        start = time.perf_counter()

        try:
            response = self._retrying(deadline, operation)(
                self._send, method, url, headers, body, deadline, operation
            )
        except httpx.TransportError as e:
            # Only non-retryable transport errors get here
            requests_total.labels(operation=operation, outcome=type(e).__name__).inc()
            raise UsageError(f"cannot {operation}, invalid request to {url}: {e}") from e
        except httpx.InvalidURL as e:
            requests_total.labels(operation=operation, outcome=type(e).__name__).inc()
            raise UsageError(f"cannot {operation}, invalid url {url!r}: {e}") from e

        duration_ms = (time.perf_counter() - start) * 1000
        requests_total.labels(operation=operation, outcome=str(response.status_code)).inc()
        logger.debug(
            "source_request_complete",
            operation=operation,
            method=method,
            path=response.request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        if response.status_code == httpx.codes.NOT_FOUND and empty_on_not_found:
            return None
        if response.status_code > 299:
            logger.warning(
                "source_request_failed",
                operation=operation,
                status_code=response.status_code,
            )
            raise RemoteError(
                operation,
                response.status_code,
                response.reason_phrase,
                response.text.strip(),
            )
        return response

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        deadline: float,
        operation: str,
    ) -> httpx.Response:
        """Make one attempt with whatever is left of the call deadline."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeadlineExceeded(f"request timeout of {self.timeout:g}s exceeded")

        logger.debug("source_request_start", operation=operation, method=method, url=url)
        return self.client.request(
            method,
            url,
            content=body,
            headers=headers,
            timeout=remaining,
        )

    def _retrying(self, deadline: float, operation: str) -> Retrying:
        backoff = wait_random_exponential(
            multiplier=self.retry_wait_min,
            min=self.retry_wait_min,
            max=self.retry_wait_max,
        )

        def wait(retry_state: RetryCallState) -> float:
            # Never sleep past the deadline
            return max(0.0, min(backoff(retry_state), deadline - time.monotonic()))

        def stop(retry_state: RetryCallState) -> bool:
            return time.monotonic() >= deadline

        def before_sleep(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            if outcome.failed:
                reason = f"{type(outcome.exception()).__name__}: {outcome.exception()}"
            else:
                reason = f"status {outcome.result().status_code}"
            retries_total.labels(operation=operation).inc()
            logger.info(
                "source_request_retry",
                operation=operation,
                attempt=retry_state.attempt_number,
                wait=round(retry_state.next_action.sleep, 3),
                reason=reason,
            )

        def give_up(retry_state: RetryCallState) -> httpx.Response:
            outcome = retry_state.outcome
            if outcome.failed:
                exc = outcome.exception()
                requests_total.labels(operation=operation, outcome=type(exc).__name__).inc()
                logger.warning(
                    "source_request_failed",
                    operation=operation,
                    attempts=retry_state.attempt_number,
                    error=str(exc),
                )
                raise TransportError(
                    f"cannot {operation}, giving up after "
                    f"{retry_state.attempt_number} attempt(s): {exc}"
                ) from exc
            # Out of retries on a retryable status: let the caller classify it
            return outcome.result()

        return Retrying(
            stop=stop_after_attempt(self.retry_max + 1) | stop,
            wait=wait,
            retry=retry_if_exception(is_retryable_error) | retry_if_result(is_retryable_status),
            before_sleep=before_sleep,
            retry_error_callback=give_up,
        )
