"""
Response Envelope

Every response body is `{"success": bool, "message"?: str, ...}` with the
resource, listing or error details as sibling keys.
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(message: Optional[str] = None, **payload: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body.update(payload)
    return body


def failure(
    status_code: int,
    message: str,
    errors: Optional[list[str]] = None,
    error: Optional[str] = None,
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors is not None:
        body["errors"] = errors
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
