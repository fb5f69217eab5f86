"""Top-level package for voicenote."""

__version__ = "0.1.0"

from . import config, errors, recorder, storage, tempfiles, transcriber  # noqa: E402

__all__ = ["config", "errors", "recorder", "storage", "tempfiles", "transcriber", "__version__"]
