"""Prompt tag dictionary: baseline loading, name-keyed diffs and preset library."""
from .config import REPO_ROOT


def _read_version() -> str:
    """Checkout ``VERSION`` file first, installed distribution metadata second."""
    candidate = REPO_ROOT / "VERSION"
    if candidate.is_file():
        return candidate.read_text(encoding="utf-8").strip() or "0.0.0"
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("promptdex")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _read_version()

__all__ = ["REPO_ROOT", "__version__"]
