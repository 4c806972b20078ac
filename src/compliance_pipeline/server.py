"""Entrypoint for the compliance pipeline HTTP server."""

from __future__ import annotations

from compliance_pipeline import __version__
from compliance_pipeline.config import load_settings
from compliance_pipeline.logging_utils import configure_logging, get_logger


def run_entrypoint() -> None:
    """Run the HTTP server with uvicorn."""
    settings = load_settings()
    configure_logging()
    from compliance_pipeline.transport.http_server import create_http_app

    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to run the HTTP server") from exc

    logger = get_logger(__name__)
    logger.info("Initializing compliance pipeline v%s", __version__)
    logger.info("Log file configured at: %s", settings.logging.file)
    app = create_http_app()
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
