"""Result file naming and writing.

The result file is named after the analysed project's Maven version and the
version of the SonarQube server that produced the findings:

    Benchmark_1.2-sonarqube-v10.4.0.87286.json
"""

import os
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path

from sonar_findings.client import SonarClient


class VersionLookupError(Exception):
    """Raised when the project version cannot be read from the descriptor."""


def project_version(pom_path: str) -> str:
    """Return the text of the first ``<version>`` element in *pom_path*.

    Document order is used and the POM namespace is ignored, so a ``<parent>``
    block declared before the project's own version wins.
    """
    try:
        root = ET.parse(pom_path).getroot()
    except OSError as exc:
        raise VersionLookupError(f"Cannot read project descriptor '{pom_path}': {exc}") from exc
    except ET.ParseError as exc:
        raise VersionLookupError(f"Failed to parse '{pom_path}': {exc}") from exc

    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] == "version":
            return (element.text or "").strip()

    raise VersionLookupError(f"No <version> element in '{pom_path}'")


def server_version(client: SonarClient) -> str:
    return client.get_text("server/version").strip()


def result_filename(client: SonarClient, pom_path: str) -> str:
    return f"Benchmark_{project_version(pom_path)}-sonarqube-v{server_version(client)}.json"


def write_document(text: str, output_dir: str, filename: str) -> Path:
    """Write *text* to ``output_dir/filename`` in one step.

    The content goes to a temporary file next to the target first, so an
    interrupted write never leaves a truncated result behind.
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / filename

    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{filename}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return target
