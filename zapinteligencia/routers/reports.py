"""
Upload, processing and report endpoints.

POST /upload          arquivos do PDV / contatos (nome do arquivo define o tipo)
POST /process         roda o pipeline sobre os últimos uploads
GET  /data_status     uploads atuais e última rodada
GET  /reports/{name}  linhas de um relatório da última rodada (JSON)
GET  /download/{file} arquivo gerado (CSV/XLSX)
POST /clear_cache     remove uploads e esquece a última rodada
"""
import asyncio
import logging
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from zapinteligencia.config import settings
from zapinteligencia.db.supabase import get_db, is_configured
from zapinteligencia.models.neighborhoods import load_alias_table
from zapinteligencia.services.file_loader import load_table, load_table_bytes
from zapinteligencia.services.persistence import persist_run
from zapinteligencia.services.pipeline import RunContext, RunReport, run_pipeline_async
from zapinteligencia.services.report_writer import REPORT_TABLES, write_reports
from zapinteligencia.services.run_store import RunStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])

_store: RunStore | None = None


def set_store(store: RunStore):
    global _store
    _store = store


def get_store() -> RunStore:
    global _store
    if _store is None:
        _store = RunStore(settings.upload_dir, settings.output_dir)
    return _store


class ProcessRequest(BaseModel):
    inactive_days: int | None = None
    min_ticket: float | None = None
    analysis_period_months: int | None = None
    persist: bool | None = None


def _run_summary(report: RunReport, files: dict[str, Path], persist: dict | None) -> dict:
    return {
        "ran_at": report.ran_at.isoformat(),
        "ok": report.ok,
        "failures": [f.message for f in report.failures],
        "tables": {kind.value: summary.model_dump() for kind, summary in report.tables.items()},
        "lead_summary": report.lead_summary,
        "counts": {
            "new_leads": len(report.new_leads),
            "inactive_customers": len(report.inactive_customers),
            "high_ticket_customers": len(report.high_ticket_customers),
            "neighborhoods": len(report.geographic.per_neighborhood),
            "top_products": len(report.preferences.top_products),
        },
        "suggestions": report.suggestions,
        "reports": {name: path.name for name, path in files.items()},
        "persistence": persist,
    }


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@router.post("/upload")
async def upload(files: list[UploadFile] = File(...)):
    """Recebe um ou mais arquivos; valida extensão, tamanho e se é legível."""
    store = get_store()
    max_bytes = settings.max_file_size_mb * 1024 * 1024
    uploaded = []
    for file in files:
        filename = Path(file.filename or "").name
        suffix = Path(filename).suffix.lower()
        if suffix not in settings.allowed_extension_set:
            raise HTTPException(status_code=400, detail=f"Extensão não permitida: {filename}")

        content = await file.read()
        if len(content) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"{filename} excede {settings.max_file_size_mb} MB",
            )

        try:
            table = await asyncio.to_thread(load_table_bytes, content, filename)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

        try:
            kind, _ = store.save_upload(filename, content)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        uploaded.append({
            "filename": filename,
            "kind": kind.value,
            "rows": len(table.rows),
            "columns": table.headers,
        })
    return {"uploaded": uploaded}


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------

@router.post("/process")
async def process(req: ProcessRequest | None = None):
    """Roda normalização, reconciliação e agregação sobre os uploads atuais."""
    req = req or ProcessRequest()
    store = get_store()
    uploads = store.uploads()
    if not uploads:
        raise HTTPException(status_code=400, detail="Nenhum arquivo enviado. Use /upload primeiro.")

    tables = {}
    for kind, path in uploads.items():
        try:
            tables[kind] = await asyncio.to_thread(load_table, path)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    persist = settings.persistence_enabled if req.persist is None else req.persist
    if persist and not is_configured():
        raise HTTPException(status_code=400, detail="Persistência solicitada, mas o Supabase não está configurado")

    try:
        db = get_db() if persist else None
        context = RunContext(
            alias_table=await asyncio.to_thread(load_alias_table, db),
            inactive_days=req.inactive_days if req.inactive_days is not None else settings.default_inactive_days,
            min_ticket=req.min_ticket if req.min_ticket is not None else settings.default_min_ticket,
            analysis_period_months=(
                req.analysis_period_months
                if req.analysis_period_months is not None
                else settings.analysis_period_months
            ),
        )
        report = await run_pipeline_async(tables, context)
        files = await asyncio.to_thread(write_reports, report, store.output_dir)

        persist_result = None
        if db is not None:
            result = await asyncio.to_thread(persist_run, report, settings.company_slug, db)
            persist_result = {"written": result.written, "errors": result.errors}
    except Exception as e:
        logger.error("Processing failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro no processamento: {e}")

    store.set_result(report, files, persist_result)
    return _run_summary(report, files, persist_result)


# ---------------------------------------------------------------------------
# Status / reports / downloads
# ---------------------------------------------------------------------------

@router.get("/data_status")
async def data_status():
    return get_store().status()


@router.get("/reports/{name}")
async def get_report(name: str, limit: int = Query(100, ge=1), offset: int = Query(0, ge=0)):
    """Linhas de um relatório da última rodada, paginadas."""
    builder = REPORT_TABLES.get(name)
    if builder is None:
        raise HTTPException(
            status_code=404,
            detail=f"Relatório '{name}' não existe. Disponíveis: {', '.join(REPORT_TABLES)}",
        )
    report = get_store().last_report
    if report is None:
        raise HTTPException(status_code=404, detail="Nenhum processamento realizado ainda")

    columns, rows = builder(report)
    return {
        "name": name,
        "columns": columns,
        "total": len(rows),
        "rows": rows[offset:offset + limit],
    }


@router.get("/download/{filename}")
async def download(filename: str):
    path = get_store().output_file(filename)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Arquivo não encontrado: {filename}")
    return FileResponse(path, filename=path.name)


@router.post("/clear_cache")
async def clear_cache():
    removed = get_store().clear()
    return {"status": "ok", "files_removed": removed}
