import pytest

_SONAR_ENV = (
    "SONAR_URL", "SONAR_TOKEN", "SONAR_ORGANIZATION",
    "SONAR_PROJECT_KEY", "SONAR_BRANCH", "SONAR_DIRECTORIES",
)


@pytest.fixture(autouse=True)
def _clean_sonar_env(monkeypatch):
    """Keep the developer's own SONAR_* variables out of the tests."""
    for name in _SONAR_ENV:
        monkeypatch.delenv(name, raising=False)
