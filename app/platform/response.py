from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
    headers: Optional[dict] = None,
    **payload: Any,
) -> JSONResponse:
    """
    Single source of truth for ALL API responses.
    Automatically sets ok = True if < 400 else False; extra keyword
    arguments are merged into the body (data, total, email_sent, ...).
    """
    content = {"ok": status_code < 400}
    if message is not None:
        content["message"] = message
    content.update(jsonable_encoder(payload))

    return JSONResponse(status_code=status_code, content=content, headers=headers)
