"""Jinja2 templates shared by the web routes and the reset-password API."""

from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

TYPE_SUCCESS = "success"
TYPE_ERROR = "error"


def render_reset_result(request: Request, title: str, kind: str) -> Response:
    """Render the reset-password page showing the outcome message."""
    return templates.TemplateResponse(
        request,
        "reset_password.html",
        {"message": {"title": title, "type": kind}},
    )
