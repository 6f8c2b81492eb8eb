import logging
import os
import uuid
from contextvars import ContextVar

from pythonjsonlogger import jsonlogger


request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        # The JSON format string references request_id unconditionally, so
        # startup logs outside a request still need the attribute.
        record.request_id = request_id_ctx.get() or ""
        return True


def setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers = []
    handler = logging.StreamHandler()
    fmt = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s")
    handler.setFormatter(fmt)
    handler.addFilter(ContextFilter())
    logger.addHandler(handler)


def bind_request_id(req_id: str | None = None) -> str:
    rid = req_id or str(uuid.uuid4())
    request_id_ctx.set(rid)
    return rid
