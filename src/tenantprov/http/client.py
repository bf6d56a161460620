from __future__ import annotations
import json as _json
from typing import Any, Dict, Iterable, Optional
import requests

from tenantprov.http.errors import (
    HttpError, BadRequestError, UnauthorizedError, ForbiddenError, NotFoundError,
    ThrottleError, ServerError, NetworkError
)
from tenantprov.http.throttle import (
    SAFE_METHODS, compute_sleep_seconds, retry_statuses_for, sleep_backoff
)

_STATUS_ERRORS = {
    400: (BadRequestError, "Bad Request"),
    401: (UnauthorizedError, "Unauthorized"),
    403: (ForbiddenError, "Forbidden"),
    404: (NotFoundError, "Not Found"),
    429: (ThrottleError, "Too Many Requests"),
}


class HttpClient:
    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        max_retries: int = 4,
        logger=None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self._session = session or requests.Session()
        self._log = logger  # optional, expects .debug()

    def _full_url(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        if self.base_url:
            return f"{self.base_url}/{url.lstrip('/')}"
        return url

    def _log_debug(self, msg: str) -> None:
        if self._log:
            self._log.debug(msg)

    def close(self) -> None:
        self._session.close()

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None
    ) -> requests.Response:
        method = method.upper()
        full = self._full_url(url)
        retry_on = retry_statuses_for(method)
        attempt = 0

        while True:
            try:
                self._log_debug(f"HTTP {method} {full}")
                resp = self._session.request(
                    method=method,
                    url=full,
                    headers=headers or {},
                    params=params,
                    json=json,
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as ex:
                # a mutation may have reached the server; never replay it
                if method not in SAFE_METHODS or attempt >= self.max_retries:
                    raise NetworkError(-1, full, str(ex), method=method) from ex
                sleep_backoff(compute_sleep_seconds(attempt, None))
                attempt += 1
                continue

            if resp.status_code < 400:
                self._log_debug(f"HTTP {resp.status_code} {full}")
                return resp

            # Retryable?
            if resp.status_code in retry_on and attempt < self.max_retries:
                self._log_debug(f"HTTP {resp.status_code} {full} (retry {attempt})")
                sleep_backoff(compute_sleep_seconds(attempt, resp.headers.get("Retry-After")))
                attempt += 1
                continue

            raise _to_error(resp, method, full)

    # ---------- Convenience helpers ----------
    def get_json(self, url: str, **kwargs) -> dict:
        r = self.request("GET", url, **kwargs)
        return _json.loads(r.text or "{}")

    def post_json(self, url: str, *, headers=None, json=None) -> dict:
        r = self.request("POST", url, headers=headers, json=json)
        return _json.loads(r.text or "{}")

    def delete(self, url: str, *, headers=None) -> int:
        r = self.request("DELETE", url, headers=headers)
        return r.status_code

    def get_paged(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        page_limit: Optional[int] = None
    ) -> Iterable[dict]:
        """Iterate Graph-style pages. Yields each page dict with a 'value' list."""
        next_url = url
        pages = 0
        while next_url:
            data = self.get_json(next_url, headers=headers, params=params)
            yield data
            pages += 1
            if page_limit and pages >= page_limit:
                break
            next_url = data.get("@odata.nextLink")
            params = None  # nextLink already carries the query


def _to_error(resp: requests.Response, method: str, url: str) -> HttpError:
    body_snip = _safe_snip(resp)
    status = resp.status_code
    if status in _STATUS_ERRORS:
        cls, msg = _STATUS_ERRORS[status]
        return cls(status, url, msg, body_snip, method=method)
    if 500 <= status <= 599:
        return ServerError(status, url, "Server error", body_snip, method=method)
    return HttpError(status, url, "HTTP error", body_snip, method=method)


def _safe_snip(resp: requests.Response, max_len: int = 400) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return (resp.text or "")[:max_len]
    # Graph error envelope: {"error": {"code": ..., "message": ...}}
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return f"{err.get('code', '')}: {err['message']}"[:max_len]
    return (resp.text or "")[:max_len]
