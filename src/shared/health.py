from time import perf_counter

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.container import AppContainer
from src.dependencies import get_container

router = APIRouter(tags=["Health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health(container: AppContainer = Depends(get_container)):
    """Liveness plus a cheap database probe when the app owns an engine."""
    engine = container.engine
    if engine is None:
        return {"ok": True, "checks": {}}
    t0 = perf_counter()
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "checks": {"db": "SELECT 1 failed"}, "error": type(e).__name__},
        )
    dt_ms = int((perf_counter() - t0) * 1000)
    return {"ok": True, "checks": {"db_select_1_ms": dt_ms}}
