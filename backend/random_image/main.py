"""
Random Image Server

Builds the FastAPI app and runs it under uvicorn.

Usage:
    random-image-server                       # config.json next to the package
    random-image-server --config /etc/ri.json
    PORT=8080 random-image-server             # PORT overrides the config
"""

import argparse
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .access_log import AccessLogMiddleware, access_logger
from .config import ImageServerConfig, load_config, resolve_port
from .errors import FileStreamError, NoImagesAvailable
from .routes_fastapi import file_stream_error_handler, no_images_handler, router
from .scanner import list_images

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"


# ============================================
# Logging
# ============================================

ACCESS_HANDLER_NAME = "random_image.access.stdout"


def setup_access_logging() -> logging.Handler:
    """
    Bare access lines to stdout, not propagated to the root logger.

    Safe to call repeatedly: the handler is added once and re-pointed at
    the current sys.stdout.
    """
    handler = next(
        (h for h in access_logger.handlers if h.get_name() == ACCESS_HANDLER_NAME),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(ACCESS_HANDLER_NAME)
        handler.setFormatter(logging.Formatter("%(message)s"))
        access_logger.addHandler(handler)
    else:
        handler.setStream(sys.stdout)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False
    return handler


def setup_logging(level: int = logging.INFO) -> None:
    """Diagnostics to stderr, access lines as bare text to stdout"""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    setup_access_logging()


# ============================================
# Startup
# ============================================

def ensure_images_folder(folder: str) -> bool:
    """Create the images folder if needed. Returns True if it was created"""
    if os.path.isdir(folder):
        return False
    os.makedirs(folder, exist_ok=True)
    logger.info(f"[Server] Created images folder at {folder}")
    return True


def log_startup(config: ImageServerConfig, port: int) -> int:
    """Startup diagnostics. Returns the number of images found"""
    image_count = len(list_images(config.images_folder))
    logger.info(f"[Server] Listening on http://localhost:{port}")
    logger.info(f"[Server] Loaded {image_count} images from {config.images_folder}")
    logger.info(f"[Server] Access log: {config.log_file}")
    if image_count == 0:
        logger.warning("[Server] Warning: no valid image files in the images folder")
    return image_count


# ============================================
# App Factory
# ============================================

def create_app(config: ImageServerConfig, port: Optional[int] = None) -> FastAPI:
    """
    Build the app around an already loaded configuration.

    The images folder is created here so that a fresh install serves
    404s instead of failing to start.
    """
    setup_access_logging()
    ensure_images_folder(config.images_folder)
    listen_port = config.port if port is None else port

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_startup(config, listen_port)
        yield

    app = FastAPI(title="Random Image Server", lifespan=lifespan)
    app.state.config = config
    app.state.port = listen_port

    app.add_middleware(
        AccessLogMiddleware,
        log_file=config.log_file,
        proxy_headers=config.proxy_headers,
    )
    app.add_exception_handler(NoImagesAvailable, no_images_handler)
    app.add_exception_handler(FileStreamError, file_stream_error_handler)
    app.include_router(router)

    return app


_app: Optional[FastAPI] = None


def get_app() -> FastAPI:
    """App built from the default config.json, for `uvicorn random_image.main:app`"""
    global _app
    if _app is None:
        setup_logging()
        config = load_config()
        _app = create_app(config, resolve_port(config))
    return _app


def __getattr__(name: str):
    # Build `app` on first access so importing this module has no side effects
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


# ============================================
# CLI
# ============================================

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve a random image from a folder.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.json (created with defaults if missing)",
    )
    parser.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help=f"Interface to bind (default: {DEFAULT_HOST})",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging()

    config = load_config(args.config)
    port = resolve_port(config)
    app = create_app(config, port)

    uvicorn.run(app, host=args.host, port=port, access_log=False, log_config=None)


if __name__ == "__main__":
    main()
