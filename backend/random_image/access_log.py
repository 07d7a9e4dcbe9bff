"""
Access Log Middleware
访问日志中间件

Writes one line per request, once the response has been fully sent:

    2025/01/31 - 14:05:09 | 200 | GET |    3ms |       127.0.0.1 | "/"

The line goes to stdout (logger "random_image.access") and is appended
to the configured log file. A failed file write is logged as an error
and never affects the response.
"""

import logging
import time
from datetime import datetime
from typing import Iterable, Optional

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

access_logger = logging.getLogger("random_image.access")

UNKNOWN_IP = "unknown"
TIMESTAMP_FORMAT = "%Y/%m/%d - %H:%M:%S"


# ============================================
# Helpers
# ============================================

def resolve_client_ip(
    headers: Headers,
    proxy_headers: Iterable[str],
    peer_host: Optional[str] = None,
) -> str:
    """
    Work out the client address for a request.

    The first configured proxy header that is present wins, then the
    transport peer address, then "unknown". For a proxy chain like
    "1.2.3.4, 5.6.7.8" only the first hop is kept.
    """
    ip = None
    for header in proxy_headers:
        value = headers.get(header)
        if value:
            ip = value
            break

    if not ip:
        ip = peer_host or UNKNOWN_IP

    if "," in ip:
        ip = ip.split(",")[0].strip()

    return ip


def format_log_line(
    status_code: int,
    method: str,
    elapsed_ms: int,
    client_ip: str,
    path: str,
    now: Optional[datetime] = None,
) -> str:
    """Build a log line, newline included. Widths are minimums, never truncated"""
    timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    response_time = f"{elapsed_ms}ms"
    return (
        f"{timestamp} | {status_code} | {method} | "
        f"{response_time:>6} | {client_ip:>15} | \"{path}\"\n"
    )


# ============================================
# Middleware
# ============================================

class AccessLogMiddleware:
    """
    Pure ASGI middleware so that timing covers the whole streamed body,
    not just the handler.
    """

    def __init__(self, app: ASGIApp, log_file: str, proxy_headers: Iterable[str] = ()):
        self.app = app
        self.log_file = log_file
        self.proxy_headers = list(proxy_headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500
        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, response_started
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            # Once the status line is out it is what the client saw;
            # otherwise the server's error middleware answers 500
            self.record(scope, status_code if response_started else 500, start)
            raise

        self.record(scope, status_code, start)

    def record(self, scope: Scope, status_code: int, start: float) -> None:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        client = scope.get("client")
        client_ip = resolve_client_ip(
            Headers(scope=scope),
            self.proxy_headers,
            client[0] if client else None,
        )
        line = format_log_line(
            status_code=status_code,
            method=scope["method"],
            elapsed_ms=elapsed_ms,
            client_ip=client_ip,
            path=scope["path"],
        )

        access_logger.info(line.rstrip("\n"))
        self.append(line)

    def append(self, line: str) -> bool:
        """Append line to the log file. Returns False if the write failed"""
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(line)
            return True
        except OSError as e:
            logger.error(f"[AccessLog] Failed to write log file {self.log_file}: {e}")
            return False
