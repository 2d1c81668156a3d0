#!/usr/bin/env python3
"""
HTTP tests for routers/health.py and routers/reports.py

Usage:
    python3 testes/test_api.py

What it tests:
1. GET /health
2. POST /upload validation (extension, size, unknown file name, unreadable file)
3. Full flow: upload -> process -> data_status -> reports -> download -> clear_cache;
   processing with settings defaults; report pagination bounds
4. Error responses (nothing uploaded, unknown report, missing file)

Uses FastAPI's TestClient against a RunStore in a temporary directory.
Persistence is disabled for every request (no Supabase writes).
"""
import sys
import tempfile
from pathlib import Path

from _harness import run, section, summary
from fastapi.testclient import TestClient

from zapinteligencia.config import settings
from zapinteligencia.db.supabase import is_configured
from zapinteligencia.main import app
from zapinteligencia.routers import reports
from zapinteligencia.services.run_store import RunStore

CONTACTS_CSV = "Name,Phone 1 - Value\nLT_01 Ana,+55 19 99999-1111\n".encode("utf-8-sig")
CUSTOMERS_CSV = (
    "Nome;Fone Principal;Bairro;Qtd. Pedidos\n"
    "Ana Souza;5519999991111;Centro;3\n"
    "Carla Dias;19977773333;Fontanela;8\n"
).encode("utf-8-sig")
ORDERS_CSV = (
    "Código;Cliente;Telefone;Total;Valor Entrega;Data Fechamento;Bairro\n"
    "1;Ana;5519999991111;40,00;10,00;25/02/2023;Centro\n"
    "2;Carla;19977773333;90,00;10,00;01/12/2022;Fontanela\n"
).encode("utf-8-sig")

NO_PERSIST = {"inactive_days": 30, "min_ticket": 50.0, "analysis_period_months": 0, "persist": False}


def _client(tmp: str) -> TestClient:
    reports.set_store(RunStore(Path(tmp) / "input", Path(tmp) / "output"))
    return TestClient(app)


def _upload(client: TestClient, *files: tuple[str, bytes]):
    return client.post(
        "/upload",
        files=[("files", (name, content, "application/octet-stream")) for name, content in files],
    )


# ── 1. Health ─────────────────────────────────────────────────────────────────


def test_health() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        resp = _client(tmp).get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ── 2. Upload validation ──────────────────────────────────────────────────────


def test_upload_rejects_extension() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        resp = _upload(_client(tmp), ("contacts.txt", b"x"))
    assert resp.status_code == 400


def test_upload_rejects_unknown_name() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        resp = _upload(_client(tmp), ("relatorio.csv", b"a,b\n1,2\n"))
    assert resp.status_code == 400


def test_upload_rejects_unreadable_spreadsheet() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        resp = _upload(_client(tmp), ("Lista-Clientes.xlsx", b"not a spreadsheet"))
    assert resp.status_code == 422


def test_upload_rejects_large_file() -> None:
    original = settings.max_file_size_mb
    settings.max_file_size_mb = 0
    try:
        with tempfile.TemporaryDirectory() as tmp:
            resp = _upload(_client(tmp), ("contacts.csv", CONTACTS_CSV))
    finally:
        settings.max_file_size_mb = original
    assert resp.status_code == 413


# ── 3. Full flow ──────────────────────────────────────────────────────────────


def test_full_flow() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)

        resp = _upload(
            client,
            ("contacts.csv", CONTACTS_CSV),
            ("Lista-Clientes.csv", CUSTOMERS_CSV),
            ("Todos os pedidos.csv", ORDERS_CSV),
        )
        assert resp.status_code == 200, resp.text
        kinds = [u["kind"] for u in resp.json()["uploaded"]]
        assert kinds == ["contacts", "customers", "orders"]

        status = client.get("/data_status").json()
        assert set(status["uploaded"]) == {"contacts", "customers", "orders"}
        assert status["missing"] == ["order_items"]
        assert status["last_run"] is None

        resp = client.post("/process", json=NO_PERSIST)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["ok"] is True
        assert body["counts"]["new_leads"] == 1
        assert body["counts"]["inactive_customers"] == 2
        assert body["counts"]["high_ticket_customers"] == 2
        assert body["persistence"] is None
        assert "novos_leads" in body["reports"]

        leads = client.get("/reports/novos_leads").json()
        assert leads["total"] == 1
        assert leads["rows"][0][:2] == ["LT_01 Carla", "19977773333"]

        inactive = client.get("/reports/clientes_inativos", params={"limit": 1}).json()
        assert inactive["total"] == 2 and len(inactive["rows"]) == 1
        assert inactive["rows"][0][0] == "19977773333"     # most inactive first

        filename = body["reports"]["novos_leads"]
        download = client.get(f"/download/{filename}")
        assert download.status_code == 200
        assert download.content.decode("utf-8-sig").startswith("Name,Phone 1 - Value")

        status = client.get("/data_status").json()
        assert status["last_run"] is not None
        assert status["last_persist"] is None

        cleared = client.post("/clear_cache").json()
        assert cleared["files_removed"] == 3
        assert client.get("/data_status").json()["uploaded"] == {}
        assert client.get("/reports/novos_leads").status_code == 404


def test_process_with_default_settings() -> None:
    """Only persist=false: thresholds and analysis period come from settings."""
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        _upload(
            client,
            ("contacts.csv", CONTACTS_CSV),
            ("Lista-Clientes.csv", CUSTOMERS_CSV),
            ("Todos os pedidos.csv", ORDERS_CSV),
        )
        resp = client.post("/process", json={"persist": False})
        assert resp.status_code == 200, resp.text
        counts = resp.json()["counts"]
        assert counts["high_ticket_customers"] == 2
        assert counts["neighborhoods"] == 2
        geo = client.get("/reports/analise_geografica").json()
        assert geo["total"] == 2


def test_report_pagination() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        _upload(client, ("Lista-Clientes.csv", CUSTOMERS_CSV), ("Todos os pedidos.csv", ORDERS_CSV))
        client.post("/process", json=NO_PERSIST)
        assert client.get("/reports/clientes_inativos", params={"limit": 0}).status_code == 422
        assert client.get("/reports/clientes_inativos", params={"offset": -1}).status_code == 422
        page = client.get("/reports/clientes_inativos", params={"limit": 1, "offset": 1}).json()
        assert page["total"] == 2
        assert page["rows"][0][0] == "5519999991111"
        prefs = client.get("/reports/preferencias_clientes")
        assert prefs.status_code == 200
        assert prefs.json()["total"] == 0


# ── 4. Errors ─────────────────────────────────────────────────────────────────


def test_process_without_uploads() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        resp = _client(tmp).post("/process", json=NO_PERSIST)
    assert resp.status_code == 400


def test_process_persist_without_supabase() -> None:
    if is_configured():
        return
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        _upload(client, ("contacts.csv", CONTACTS_CSV))
        resp = client.post("/process", json={"persist": True})
    assert resp.status_code == 400


def test_unknown_report_and_file() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        assert client.get("/reports/nao_existe").status_code == 404
        assert client.get("/download/nao_existe.csv").status_code == 404


# ── Main ──────────────────────────────────────────────────────────────────────


def main() -> None:
    print()
    print("=" * 65)
    print("  ZapInteligência - HTTP API")
    print("=" * 65)

    section("Health / Upload")
    run(
        test_health,
        test_upload_rejects_extension,
        test_upload_rejects_unknown_name,
        test_upload_rejects_unreadable_spreadsheet,
        test_upload_rejects_large_file,
    )

    section("Flow")
    run(test_full_flow, test_process_with_default_settings, test_report_pagination)

    section("Errors")
    run(test_process_without_uploads, test_process_persist_without_supabase, test_unknown_report_and_file)

    sys.exit(summary())


if __name__ == "__main__":
    main()
