from fastapi import APIRouter
from datetime import datetime, timezone

from travel_crm.config import settings

router = APIRouter(prefix="/health", tags=["health"])

@router.get("")
def health_root():
    return {
        "status": "ok",
        "ts": datetime.now(timezone.utc).isoformat(),
        "openai_configured": bool(settings.OPENAI_API_KEY),
        "database_configured": bool(settings.DATABASE_URL),
    }
