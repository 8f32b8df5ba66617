"""Convenience entrypoint to run the orchestrator locally."""

from __future__ import annotations

import uvicorn

from .logging import configure_logging
from .settings import get_settings


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "orchestrator.app:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
