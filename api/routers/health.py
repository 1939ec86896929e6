import logging

from fastapi import APIRouter, Request

from api.schemas import success
from storage.database import DatabaseConnectionError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/")
def root():
    return success({"service": "backoffice"}, "Back office API is running")


@router.get("/api/v1")
def api_root(request: Request):
    try:
        database = "ok" if request.app.state.database.health_check() else "unavailable"
    except DatabaseConnectionError:
        database = "unavailable"
    return success({"database": database}, "API v1 is running")
