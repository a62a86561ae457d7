"""JSON response envelope: ``{status, message, data}`` / ``{status, message, errors}``."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(data: Any = None, message: str = "OK", status: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"status": status, "message": message, "data": jsonable_encoder(data)},
    )


def error(message: str = "Error", errors: dict[str, list[str]] | None = None, status: int = 400) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"status": status, "message": message, "errors": errors or {}},
    )


def validation_error(field: str, message: str) -> JSONResponse:
    """422 response for a single field, mirroring request validation failures."""
    return error(message=message, errors={field: [message]}, status=422)
