"""Configuration loading and validation.

Usage:
    config = load()                            # environment + defaults only
    config = load("sonar-findings.yaml")       # file, overridden by environment
    generate_template("sonar-findings.yaml")   # writes example file to disk

Every value can come from the environment, so CI jobs usually need nothing
but ``SONAR_TOKEN``. All validation problems are reported together.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_URL = "https://sonarcloud.io"
DEFAULT_ORGANIZATION = "Cognia-Security"
DEFAULT_PROJECT_KEY = "Cognia-Security_BenchmarkJava"
DEFAULT_LANGUAGE = "java"
DEFAULT_OUTPUT_DIR = "results"
DEFAULT_POM_PATH = "pom.xml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Config:
    token: str
    url: str = DEFAULT_URL
    organization: str = DEFAULT_ORGANIZATION
    project_key: str = DEFAULT_PROJECT_KEY
    branch: str | None = None
    directories: str | None = None
    language: str | None = DEFAULT_LANGUAGE
    output_dir: str = DEFAULT_OUTPUT_DIR
    pom_path: str = DEFAULT_POM_PATH


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str | None = None) -> Config:
    """Build the configuration from an optional YAML file and the environment.

    Environment variables SONAR_URL, SONAR_TOKEN, SONAR_ORGANIZATION,
    SONAR_PROJECT_KEY, SONAR_BRANCH and SONAR_DIRECTORIES override file
    values. Blank values count as unset.

    Raises:
        ConfigError: if the given file is missing or malformed, or required
                     fields are absent.
    """
    raw = _read_file(config_path) if config_path else {}

    server  = _section(raw, "server", config_path)
    project = _section(raw, "project", config_path)
    output  = _section(raw, "output", config_path)

    config = Config(
        url=_pick("SONAR_URL", server.get("url"), DEFAULT_URL),
        token=_pick("SONAR_TOKEN", server.get("token"), ""),
        organization=_pick("SONAR_ORGANIZATION", project.get("organization"), DEFAULT_ORGANIZATION),
        project_key=_pick("SONAR_PROJECT_KEY", project.get("key"), DEFAULT_PROJECT_KEY),
        branch=_pick("SONAR_BRANCH", project.get("branch"), None),
        directories=_pick("SONAR_DIRECTORIES", project.get("directories"), None),
        # an explicit empty language drops the filter
        language=_blank_to_none(project.get("language", DEFAULT_LANGUAGE)),
        output_dir=_blank_to_none(output.get("directory")) or DEFAULT_OUTPUT_DIR,
        pom_path=_blank_to_none(output.get("pom")) or DEFAULT_POM_PATH,
    )
    _validate(config)
    return config


def _read_file(config_path: str) -> dict:
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `sonar-findings init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")
    return raw


def _section(raw: dict, name: str, config_path: str | None) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' in '{config_path}' must be a mapping.")
    return value


def _blank_to_none(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _pick(env_name: str, file_value, default: str | None) -> str | None:
    """Environment first, then file, then *default*; blanks are skipped."""
    for value in (os.environ.get(env_name), file_value):
        value = _blank_to_none(value)
        if value is not None:
            return value
    return default


def _validate(config: Config) -> None:
    """Raise ConfigError if required fields are missing."""
    errors: list[str] = []

    if not config.token:
        errors.append(
            "  - 'server.token' is missing (or set the SONAR_TOKEN environment variable)"
        )
    if not config.url.startswith(("http://", "https://")):
        errors.append(
            f"  - 'server.url' must be an http(s) URL, got '{config.url}'"
        )
    if config.directories and "," in config.directories:
        errors.append(
            "  - 'project.directories' must name a single directory (no commas)"
        )

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
server:
  url: "https://sonarcloud.io"
  token: "squ_xxxxxxxxxxxx"       # Generate at: <your-sonar-url>/account/security

project:
  organization: "Cognia-Security"
  key: "Cognia-Security_BenchmarkJava"
  # branch: "main"                # Omit to use the main branch
  # directories: "src/main/java"  # Single directory, restricts issues only
  language: "java"

output:
  directory: "results"
  pom: "pom.xml"                  # Source of the version in the result filename
"""


def generate_template(output_path: str = "sonar-findings.yaml") -> None:
    """Write a template sonar-findings.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists (to avoid overwriting secrets).
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
