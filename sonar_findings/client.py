"""SonarQube / SonarCloud API client.

Usage:
    client  = SonarClient(url="https://sonarcloud.io", token="squ_xxx")
    version = client.get_text("server/version")
    client.fetch_all_pages("issues/search?projects=my-project", on_page)

API paths are relative to ``<url>/api/`` and carry their own query string.
"""

import json
import warnings
from typing import Callable

import requests

from sonar_findings.models import PageEnvelope

PAGE_SIZE = 500
PAGINATION_WARNING_THRESHOLD = 10_000
RESPONSE_EXCERPT_LENGTH = 500


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class SonarClientError(Exception):
    """Base exception for all client errors."""


class AuthenticationError(SonarClientError):
    """Raised on HTTP 401 — invalid or expired token."""


class NotFoundError(SonarClientError):
    """Raised on HTTP 404 — organization, project or endpoint not found."""


class NetworkError(SonarClientError):
    """Raised on connection timeout or unreachable server."""


class DecodeError(SonarClientError):
    """Raised when a response body or an assembled document is not valid JSON."""


class PagingSchemaError(SonarClientError):
    """Raised when a page reports no usable total count or page size."""


def truncate(text: str, limit: int = RESPONSE_EXCERPT_LENGTH) -> str:
    """Shorten *text* for error messages."""
    return text if len(text) <= limit else text[:limit] + "..."


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class SonarClient:
    """Thin wrapper around the SonarQube REST API."""

    def __init__(self, url: str, token: str, timeout: int = 30, page_size: int = PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self.base_url = url.rstrip("/")
        self.page_size = page_size
        self._timeout = timeout
        self._session = requests.Session()
        # SonarQube auth: token as username, empty password
        self._session.auth = (token, "")

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get_text(self, api_path: str) -> str:
        """Perform a single GET request and return the raw response body.

        Raises:
            AuthenticationError: HTTP 401
            NotFoundError:       HTTP 404
            SonarClientError:    Any other non-2xx response
            NetworkError:        Timeout or connection failure
        """
        return self._request(self._url(api_path))

    def fetch_all_pages(self, api_path: str, on_page: Callable[[PageEnvelope], None]) -> None:
        """Walk every page of a search endpoint, handing each page to *on_page*.

        SonarQube paginates via ``p`` (page number) and ``ps`` (page size);
        both are appended here, so *api_path* must not contain them. The
        number of pages is recomputed from every response as
        ``max(1, ceil(total / page size))`` using the page size the server
        reports, not the one requested.

        *on_page* runs synchronously, once per page in page order, before the
        next page is requested.

        Raises:
            DecodeError:       a page is not a JSON object
            PagingSchemaError: a page has no resolvable total or page size
            SonarClientError:  any transport failure (see ``get_text``)
        """
        if _has_param(api_path, "p"):
            raise ValueError(f"'{api_path}' already carries a page number")

        page = 1
        _warning_emitted = False

        while True:
            url = self._url(api_path + _paging_suffix(api_path, page, self.page_size))
            body = self._request(url)
            envelope = _decode_page(body, api_path, page)

            total = envelope.total_count()
            if total is None:
                raise PagingSchemaError(
                    f"Response missing total result count for {api_path} (page {page}): "
                    f"{truncate(body)}"
                )
            page_size = envelope.effective_page_size()
            if page_size is None:
                raise PagingSchemaError(
                    f"Response missing page size for {api_path} (page {page}): "
                    f"{truncate(body)}"
                )
            pages = max(1, -(-total // page_size))

            if total > PAGINATION_WARNING_THRESHOLD and not _warning_emitted:
                warnings.warn(
                    f"Result set exceeds {PAGINATION_WARNING_THRESHOLD} items (total={total}). "
                    "SonarQube caps pagination at 10 000 — some results may be missing. "
                    "Consider narrowing the query with a branch or directory filter.",
                    UserWarning,
                    stacklevel=2,
                )
                _warning_emitted = True

            on_page(envelope)

            page += 1
            if page > pages:
                break

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _url(self, api_path: str) -> str:
        return f"{self.base_url}/api/{api_path.lstrip('/')}"

    def _request(self, url: str) -> str:
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(
                f"Unable to reach SonarQube server at '{self.base_url}'"
            ) from exc

        if response.status_code == 401:
            raise AuthenticationError(
                f"Authentication failed for {url} — check that your token is valid and not expired."
            )
        if response.status_code == 404:
            raise NotFoundError(
                f"Resource not found: {url}\n{truncate(response.text)}".rstrip()
            )
        if not response.ok:
            raise SonarClientError(
                f"API call failed ({response.status_code}): {url}\n{truncate(response.text)}".rstrip()
            )

        return response.text


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _paging_suffix(api_path: str, page: int, page_size: int) -> str:
    separator = "&" if "?" in api_path else "?"
    return f"{separator}p={page}&ps={page_size}"


def _has_param(api_path: str, name: str) -> bool:
    _, _, query = api_path.partition("?")
    return any(pair.split("=", 1)[0] == name for pair in query.split("&") if pair)


def _decode_page(body: str, api_path: str, page: int) -> PageEnvelope:
    try:
        return PageEnvelope.from_json(body)
    except json.JSONDecodeError as exc:
        raise DecodeError(
            f"Invalid JSON from {api_path} (page {page}): {exc}\n{truncate(body)}"
        ) from exc
    except ValueError as exc:
        raise DecodeError(
            f"Unexpected response from {api_path} (page {page}): {exc}\n{truncate(body)}"
        ) from exc
