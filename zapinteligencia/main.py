"""
ZapInteligência - inteligência de clientes para delivery
Upload dos relatórios do PDV + contatos -> novos leads, inativos, ticket alto, bairros, produtos
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from zapinteligencia.config import settings
from zapinteligencia.routers import health, reports
from zapinteligencia.services.run_store import RunStore

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# Silence httpx per-request logs (supabase client)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

store = RunStore(settings.upload_dir, settings.output_dir)
reports.set_store(store)


@asynccontextmanager
async def lifespan(app):
    store.ensure_dirs()
    logger.info(
        "ZapInteligência started (uploads=%s, outputs=%s, persistence=%s)",
        store.upload_dir, store.output_dir, settings.persistence_enabled,
    )
    yield


app = FastAPI(
    title="ZapInteligência",
    description="Normalização e cruzamento de clientes, pedidos e contatos do delivery",
    version="1.0.0",
    lifespan=lifespan,
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(reports.router)
