"""Run the API with uvicorn. HOST and PORT pick the bind address (default 0.0.0.0:8000)."""
import os

import uvicorn

from agribridge.core.config import settings


def _read_port() -> int:
    value = os.environ.get("PORT", "8000")
    try:
        return int(value)
    except ValueError as exc:  # pragma: no cover - fatal configuration
        raise SystemExit(f"Invalid PORT '{value}': {exc}") from exc


def main() -> None:
    uvicorn.run(
        "agribridge.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=_read_port(),
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
