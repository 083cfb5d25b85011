"""Response envelope helpers: {success, data, message, errors}."""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = 200,
) -> JSONResponse:
    """
    Wrap a payload in the success envelope.

    Pydantic models inside ``data`` are serialized by alias (camelCase).
    """
    content: dict[str, Any] = {"success": True}
    if data is not None:
        content["data"] = jsonable_encoder(data, by_alias=True)
    if message:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)
