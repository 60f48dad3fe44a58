import json
import time
import logging
import http.client
import urllib.error
import urllib.parse
import urllib.request

from dataclasses import dataclass
from typing import Dict, Optional

from core.exceptions import HttpRequestError


logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE"})


@dataclass
class HttpResponse:
    """A lightweight HTTP response wrapper.

    Args:
        status_code: HTTP response status code.
        headers: Response headers map.
        body: Raw response bytes.
    """

    status_code: int
    headers: Dict[str, str]
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors = "replace")

    def json(self) -> dict:
        return json.loads(self.text)


class HttpClient:
    """JSON HTTP client with timeout and retry-with-backoff.

    Rate limited responses (429) are retried for every method. Server errors,
    timeouts and network failures are only retried for idempotent methods so a
    POST that may have been applied is never replayed.

    Args:
        timeout: Request timeout in seconds.
        max_retries: Maximum attempts per request, including the first one.
        retry_backoff: Backoff multiplier used between retries.
        user_agent: User agent value sent in each request.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        user_agent: str = "lark-doc/1.0"
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.user_agent = user_agent

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[dict] = None,
        allow_status: Optional[tuple] = None
    ) -> HttpResponse:
        """Perform an HTTP request.

        Args:
            method: HTTP method.
            url: Target URL.
            headers: Optional request headers.
            params: Optional query parameters.
            json_body: Optional JSON body.
            allow_status: Optional error status codes returned instead of raised.
        """

        method = method.upper()
        allow_status = allow_status or tuple()
        request_headers = {"User-Agent": self.user_agent}
        if headers:
            request_headers.update(headers)

        final_url = self._build_url(url = url, params = params)
        payload = None
        if json_body is not None:
            payload = json.dumps(json_body, ensure_ascii = False).encode("utf-8")
            request_headers["Content-Type"] = "application/json; charset=utf-8"

        attempts = 0
        while True:
            attempts += 1
            try:
                req = urllib.request.Request(
                    final_url,
                    data = payload,
                    headers = request_headers,
                    method = method
                )
                with urllib.request.urlopen(req, timeout = self.timeout) as resp:
                    return HttpResponse(
                        status_code = resp.getcode(),
                        headers = dict(resp.headers.items()),
                        body = resp.read()
                    )
            except urllib.error.HTTPError as exc:
                body = exc.read()
                status_code = int(exc.code)
                if status_code in allow_status:
                    return HttpResponse(
                        status_code = status_code,
                        headers = dict(exc.headers.items()) if exc.headers else {},
                        body = body
                    )
                if self._should_retry(method = method, status_code = status_code, attempts = attempts):
                    logger.warning(
                        "retry %s %s after HTTP %d: attempt = %d/%d",
                        method,
                        final_url,
                        status_code,
                        attempts,
                        self.max_retries
                    )
                    self._sleep(attempts = attempts)
                    continue
                raise HttpRequestError(
                    f"HTTP {status_code} for {method} {final_url}: {body.decode('utf-8', errors = 'replace')}",
                    status_code = status_code
                ) from exc
            except (http.client.HTTPException, OSError) as exc:
                if self._should_retry(method = method, status_code = 503, attempts = attempts):
                    logger.warning(
                        "retry %s %s after network error: attempt = %d/%d",
                        method,
                        final_url,
                        attempts,
                        self.max_retries
                    )
                    self._sleep(attempts = attempts)
                    continue
                reason = getattr(exc, "reason", exc)
                raise HttpRequestError(
                    f"Network error for {method} {final_url}: {reason}"
                ) from exc

    def _build_url(self, url: str, params: Optional[Dict[str, str]]) -> str:
        """Build URL with query parameters.

        Args:
            url: Base url.
            params: Query map.
        """

        if not params:
            return url
        parsed = urllib.parse.urlparse(url)
        existing = urllib.parse.parse_qs(parsed.query)
        for key, value in params.items():
            existing[key] = [str(value)]
        query = urllib.parse.urlencode(existing, doseq = True)
        return urllib.parse.urlunparse(parsed._replace(query = query))

    def _should_retry(self, method: str, status_code: int, attempts: int) -> bool:
        """Decide if request can be retried.

        Args:
            method: Upper-case HTTP method.
            status_code: HTTP status code.
            attempts: Current attempt count.
        """

        if attempts >= self.max_retries:
            return False
        if status_code == 429:
            return True
        if method not in IDEMPOTENT_METHODS:
            return False
        return status_code >= 500 or status_code == 408

    def _sleep(self, attempts: int) -> None:
        time.sleep(self.retry_backoff * attempts)
