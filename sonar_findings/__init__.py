"""Export SonarQube vulnerability findings as a single JSON snapshot."""

__version__ = "0.1.0"
