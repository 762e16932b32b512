"""Vulnerability findings export.

Functions:
    issues_query(config)                         -> str
    hotspots_query(config)                       -> str
    collect_findings(client, config)             -> (issues, hotspots)
    build_document(issues, hotspots)             -> str

Findings travel as raw JSON text from the HTTP response to the final
document. Each one is checked to be a single JSON value, and only the
assembled document is decoded into Python objects and pretty-printed.
"""

import json
from typing import Callable
from urllib.parse import quote_plus

from sonar_findings.client import DecodeError, SonarClient, truncate
from sonar_findings.config import Config
from sonar_findings.models import PageEnvelope

ProgressCallback = Callable[[str, int, int], None]

_DECODER = json.JSONDecoder()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def issues_query(config: Config) -> str:
    """API path for every VULNERABILITY issue of the project."""
    return (
        "issues/search?organization=" + quote_plus(config.organization)
        + "&types=VULNERABILITY"
        + "&projects=" + quote_plus(config.project_key)
        + _optional("languages", config.language)
        + _optional("branch", config.branch)
        + _optional("directories", config.directories)
    )


def hotspots_query(config: Config) -> str:
    """API path for every security hotspot of the project."""
    return (
        "hotspots/search?organization=" + quote_plus(config.organization)
        + "&projectKey=" + quote_plus(config.project_key)
        + _optional("branch", config.branch)
    )


def _optional(name: str, value: str | None) -> str:
    if value is None or not value.strip():
        return ""
    return f"&{name}={quote_plus(value)}"


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

def collect_findings(
    client: SonarClient,
    config: Config,
    on_progress: ProgressCallback | None = None,
) -> tuple[list[str], list[str]]:
    """Fetch all issues, then all hotspots, as raw JSON fragments."""
    issues: list[str] = []
    hotspots: list[str] = []

    client.fetch_all_pages(
        issues_query(config),
        _appender(issues, lambda page: page.issues, "issues", on_progress),
    )
    client.fetch_all_pages(
        hotspots_query(config),
        _appender(hotspots, lambda page: page.hotspots, "hotspots", on_progress),
    )
    return issues, hotspots


def _appender(
    accumulator: list[str],
    select: Callable[[PageEnvelope], list[str] | None],
    label: str,
    on_progress: ProgressCallback | None,
) -> Callable[[PageEnvelope], None]:
    def on_page(page: PageEnvelope) -> None:
        fragments = select(page) or []
        accumulator.extend(fragments)
        if on_progress:
            on_progress(label, len(fragments), len(accumulator))

    return on_page


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def build_document(issues: list[str], hotspots: list[str]) -> str:
    """Splice raw fragments into ``{"issues": [...], "hotspots": [...]}``.

    Each fragment must be exactly one JSON value. The spliced text is then
    parsed once and pretty-printed, so the output is stable whatever
    whitespace the server used. Fails as a whole if any fragment is bad.

    Raises:
        DecodeError: a fragment is not one complete JSON value
    """
    for label, fragments in (("issues", issues), ("hotspots", hotspots)):
        for index, fragment in enumerate(fragments):
            _check_freestanding(fragment, label, index)

    spliced = (
        '{"issues":[' + ",".join(issues)
        + '],"hotspots":[' + ",".join(hotspots)
        + "]}"
    )
    try:
        document = json.loads(spliced)
    except json.JSONDecodeError as exc:
        raise DecodeError(
            f"Collected findings do not form valid JSON: {exc}\n{truncate(spliced)}"
        ) from exc

    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def _check_freestanding(fragment: str, label: str, index: int) -> None:
    # '1],"hotspots":[2' is valid inside the splice but would rewrite the document
    text = fragment.strip(" \t\n\r")
    try:
        _, end = _DECODER.raw_decode(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(
            f"Invalid JSON in {label}[{index}]: {exc}\n{truncate(fragment)}"
        ) from exc
    if end != len(text):
        raise DecodeError(
            f"{label}[{index}] is not a single JSON value: {truncate(fragment)}"
        )
