from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Envelope used by every audit API response.

    ``status`` is "success" below 400 and "error" otherwise. Pydantic models in
    ``data`` are encoded by alias so task documents keep their camelCase keys.
    """
    status_str = "success" if status_code < 400 else "error"
    encoded = jsonable_encoder(data, by_alias=True) if data is not None else {}

    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "status": status_str,
            "message": message,
            "data": encoded,
        },
    )
