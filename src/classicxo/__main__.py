"""Entry point for running ClassicXO via ``python -m classicxo``."""

from __future__ import annotations

import uvicorn

from .config import load_config
from .logging_setup import setup_logging


def main() -> None:
    """Start the FastAPI-powered ClassicXO web server."""

    config = load_config()
    setup_logging(config.log_level, config.log_file)
    uvicorn.run(
        "classicxo.ui:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_config=None,
    )


if __name__ == "__main__":
    main()
