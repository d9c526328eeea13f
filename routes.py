# routes.py
from fastapi import FastAPI
from controller.short_form_controller import short_form_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(short_form_router)
