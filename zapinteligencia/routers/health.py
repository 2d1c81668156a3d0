from fastapi import APIRouter

from zapinteligencia.config import settings
from zapinteligencia.db.supabase import db_status

router = APIRouter()


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "persistence_enabled": settings.persistence_enabled,
        "supabase": db_status(),
    }
