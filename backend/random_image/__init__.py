"""
Random Image Module

Serves a randomly chosen image from a local folder over HTTP.

Features:
- GET / streams a random image, GET /list and GET /health report on the folder
- config.json merged over built-in defaults, PORT env override
- Access log to stdout and an append-only log file
"""

from .config import ImageServerConfig, load_config, resolve_port
from .main import create_app
from .routes_fastapi import router

__all__ = [
    "ImageServerConfig",
    "load_config",
    "resolve_port",
    "create_app",
    "router",
]
