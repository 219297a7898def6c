from fastapi import APIRouter, Request
from sqlalchemy import text

from ..infra.redis_client import ping

router = APIRouter()


@router.get("/ready")
async def ready(request: Request):
    db_ok = False
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        pass

    redis_ok = await ping(getattr(request.app.state, "redis", None))
    ai_client = request.app.state.ai_client
    return {
        "ok": True,
        "db_ok": db_ok,
        "redis_ok": redis_ok,
        "ai_mode": ai_client.mode,
        "ai_available": ai_client.is_available(),
    }
