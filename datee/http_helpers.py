import logging
import uuid
from typing import Any

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder

from .errors import DateeError

logger = logging.getLogger(__name__)


def json_payload(data: Any) -> Any:
    return jsonable_encoder(data)


def error_detail(*, message: str, hint: str | None = None, trace_id: str | None = None) -> dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "hint": hint,
        "trace_id": trace_id or str(uuid.uuid4()),
    }


def to_http_exception(exc: DateeError) -> HTTPException:
    detail = error_detail(message=exc.message, hint=exc.hint)
    if exc.status_code >= 500:
        logger.error("[HTTP] %s trace_id=%s", exc.message, detail["trace_id"])
    return HTTPException(status_code=exc.status_code, detail=detail)
