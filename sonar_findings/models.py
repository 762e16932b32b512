"""Data models for SonarQube search responses.

Contains the decoded page envelope shared by the paginated search endpoints:
    - Paging        the ``paging`` sub-object (issues/search)
    - PageEnvelope  one page, with findings kept as raw JSON text

The two endpoint families report their totals differently:

    issues/search    {"paging": {"pageIndex": 1, "pageSize": 500, "total": 42}, "issues": [...]}
    hotspots/search  {"paging": {...}, "hotspots": [...]}   (older: {"p": 1, "ps": 500, "total": 42})

Each count also accepts its long spelling: ``totalResults``, ``pageSize``,
``pageIndex`` at the top level and ``resultCount`` inside ``paging``; the short
spelling wins when both are present.

Both shapes are decoded into the same envelope and resolved by
``total_count()`` / ``effective_page_size()``.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

#: Top-level keys whose array elements are kept as raw JSON text
FRAGMENT_KEYS = ("issues", "hotspots")

_WHITESPACE_RE = re.compile(r"[ \t\n\r]*")
_DECODER = json.JSONDecoder()


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

@dataclass
class Paging:
    result_count: int | None = None
    page_size: int | None = None
    page_index: int | None = None


@dataclass
class PageEnvelope:
    paging: Paging | None = None
    total_results: int | None = None
    page_size: int | None = None
    page_index: int | None = None
    issues: list[str] | None = None
    hotspots: list[str] | None = None

    @classmethod
    def from_json(cls, text: str) -> "PageEnvelope":
        """Decode one response body.

        Raises:
            json.JSONDecodeError: the body is not valid JSON
            ValueError:           the body is valid JSON but not an object
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        raw_paging = data.get("paging")
        paging = None
        if isinstance(raw_paging, dict):
            paging = Paging(
                result_count=_first_int(raw_paging, "total", "resultCount"),
                page_size=_as_int(raw_paging.get("pageSize")),
                page_index=_as_int(raw_paging.get("pageIndex")),
            )

        fragments = _raw_fragments(text)
        return cls(
            paging=paging,
            total_results=_first_int(data, "total", "totalResults"),
            page_size=_first_int(data, "ps", "pageSize"),
            page_index=_first_int(data, "p", "pageIndex"),
            issues=fragments.get("issues"),
            hotspots=fragments.get("hotspots"),
        )

    def total_count(self) -> int | None:
        """Total number of results, ``paging`` taking precedence over ``total``."""
        if self.paging is not None and self.paging.result_count is not None:
            return self.paging.result_count
        return self.total_results

    def effective_page_size(self) -> int | None:
        """Page size the server actually applied (it may clamp the requested one)."""
        if self.page_size is not None and self.page_size > 0:
            return self.page_size
        if self.paging is not None and self.paging.page_size is not None and self.paging.page_size > 0:
            return self.paging.page_size
        return None


# ---------------------------------------------------------------------------
# Raw fragment extraction
# ---------------------------------------------------------------------------

def _as_int(value: Any) -> int | None:
    # bool is a subclass of int
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _first_int(data: dict, *keys: str) -> int | None:
    """First integer among *keys*; each field has a short and a long spelling."""
    for key in keys:
        value = _as_int(data.get(key))
        if value is not None:
            return value
    return None


def _skip_ws(text: str, pos: int) -> int:
    return _WHITESPACE_RE.match(text, pos).end()


def _raw_fragments(text: str) -> dict[str, list[str]]:
    """Return ``{key: [raw element text, ...]}`` for each array in FRAGMENT_KEYS.

    *text* must already be known to hold a valid JSON object. Elements are
    sliced verbatim from *text*, so field order, unknown fields and number
    formatting survive untouched.
    """
    fragments: dict[str, list[str]] = {}
    pos = _skip_ws(text, 0) + 1  # past "{"

    while True:
        pos = _skip_ws(text, pos)
        if text[pos] == "}":
            return fragments

        key, pos = _DECODER.raw_decode(text, pos)
        pos = _skip_ws(text, pos) + 1  # past ":"
        pos = _skip_ws(text, pos)

        if key in FRAGMENT_KEYS and text[pos] == "[":
            fragments[key], pos = _split_array(text, pos)
        else:
            _, pos = _DECODER.raw_decode(text, pos)

        pos = _skip_ws(text, pos)
        if text[pos] == ",":
            pos += 1


def _split_array(text: str, pos: int) -> tuple[list[str], int]:
    """Split the array starting at ``text[pos] == "["`` into raw element texts."""
    items: list[str] = []
    pos = _skip_ws(text, pos + 1)
    if text[pos] == "]":
        return items, pos + 1

    while True:
        _, end = _DECODER.raw_decode(text, pos)
        items.append(text[pos:end])
        pos = _skip_ws(text, end)
        if text[pos] == "]":
            return items, pos + 1
        pos = _skip_ws(text, pos + 1)  # past ","
