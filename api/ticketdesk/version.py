from importlib.metadata import PackageNotFoundError, version as dist_version
from pathlib import Path
import os

def get_version(default: str = "0.0.0-dev") -> str:
    """
    Service version, first match wins:
        APP_VERSION env var (CI/CD), a VERSION file next to the API or at the
        repo root, the installed ticketdesk distribution, then `default`.
    """
    if v := os.getenv("APP_VERSION"):
        return v

    for p in (
        Path(__file__).resolve().parents[1] / "VERSION",      # api/VERSION
        Path(__file__).resolve().parents[2] / "VERSION",      # repo root
    ):
        if p.is_file():
            return p.read_text().strip()

    try:
        return dist_version("ticketdesk")
    except PackageNotFoundError:
        return default
