"""Application assembly and the ``jobservices`` command line entry point.

    jobservices --listen-port 60000 --ssl-cert server.crt --ssl-key server.key

The app can also be served directly with ``uvicorn jobservices.main:app``, in
which case settings come from the environment and ``jobservices.yml`` only.
"""

import argparse
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from jobservices import __version__
from jobservices.api.main import api_router
from jobservices.config.postgres import dispose_engine, init_engine, ping_database
from jobservices.logging_config import configure_logging, get_logger
from jobservices.middleware.request_logging import RequestLoggingMiddleware
from jobservices.settings import CONFIG_ENV_VAR, Settings, get_settings

logger = get_logger(name=__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI app.

    Settings are resolved at startup when not given, so importing this
    module never requires a database URI.
    """
    configure_logging(settings.log_level if settings else None)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        init_engine(
            resolved.db.async_url,
            pool_size=resolved.db.pool_size,
            max_overflow=resolved.db.max_overflow,
        )
        try:
            await ping_database()
        except Exception:
            logger.exception("Database ping failed; refusing to start")
            await dispose_engine()
            raise
        logger.info("Database connection verified")
        try:
            yield
        finally:
            await dispose_engine()

    app = FastAPI(title="jobservices", version=__version__, lifespan=lifespan)
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error on {} {}: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    app.include_router(api_router)
    return app


app = create_app()


def check_tls_flags(ssl_cert: Optional[Path], ssl_key: Optional[Path]) -> None:
    """Both TLS files or neither; raises ValueError otherwise."""
    if ssl_cert is None and ssl_key is not None:
        raise ValueError("--ssl-cert is required with --ssl-key.")
    if ssl_key is None and ssl_cert is not None:
        raise ValueError("--ssl-key is required with --ssl-cert.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobservices",
        description="REST API over the analyses (jobs) table",
    )
    parser.add_argument("--listen-port", type=int, default=None, help="The port to listen on (default 60000)")
    parser.add_argument("--ssl-cert", type=Path, default=None, help="Path to the SSL .crt file")
    parser.add_argument("--ssl-key", type=Path, default=None, help="Path to the SSL .key file")
    parser.add_argument("--config", type=Path, default=None, help="Path to jobservices.yml")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Merge command line flags over the configured settings."""
    if args.config is not None:
        os.environ[CONFIG_ENV_VAR] = str(args.config)

    overrides = {}
    if args.listen_port is not None:
        overrides["listen_port"] = args.listen_port
    if args.ssl_cert is not None:
        overrides["ssl_cert"] = args.ssl_cert
    if args.ssl_key is not None:
        overrides["ssl_key"] = args.ssl_key
    return Settings(**overrides)


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        check_tls_flags(args.ssl_cert, args.ssl_key)
    except ValueError as e:
        parser.error(str(e))

    settings = load_settings(args)
    try:
        check_tls_flags(settings.ssl_cert, settings.ssl_key)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(settings.log_level)
    logger.info(
        "Starting jobservices on {}:{} (tls={})",
        settings.listen_host, settings.listen_port, settings.use_ssl,
    )

    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        ssl_certfile=str(settings.ssl_cert) if settings.use_ssl else None,
        ssl_keyfile=str(settings.ssl_key) if settings.use_ssl else None,
        log_config=None,
    )


if __name__ == "__main__":
    main()
