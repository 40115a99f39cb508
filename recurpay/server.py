"""
HTTP host: trigger a sweep on demand and inspect records.

  GET  /health            -> {"status": "ok"}
  POST /sweep             -> sweep summary (409 while another sweep runs)
  GET  /records           -> record ids on the contract
  GET  /records/{id}      -> one record + eligibility under the configured policy

Run: recurpay serve  (or uvicorn recurpay.server:app). Config and key come
from config.json / .env like the CLI. With --schedule the cron loop runs in a
background thread next to the server.
"""

import threading
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from recurpay.errors import ConfigurationError, ReadError, SweepError
from recurpay.sweep import PaymentSweepWorkflow, build_workflow, is_eligible

app = FastAPI(title="recurpay", description="Recurring payment sweeper")

_workflow: Optional[PaymentSweepWorkflow] = None
# One sweep at a time, whether triggered over HTTP or by the cron loop.
sweep_lock = threading.Lock()


def get_workflow() -> PaymentSweepWorkflow:
    """Workflow wired from config.json + env, built on first use."""
    global _workflow
    if _workflow is None:
        _workflow = build_workflow(log=lambda m: print(f"[SERVER] {m}", flush=True))
    return _workflow


@app.exception_handler(SweepError)
def sweep_error_handler(request: Request, e: SweepError) -> JSONResponse:
    status = 502 if isinstance(e, ReadError) else 500
    return JSONResponse(status_code=status, content={"error": str(e), "type": type(e).__name__})


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/sweep")
def trigger_sweep(workflow: PaymentSweepWorkflow = Depends(get_workflow)):
    if not sweep_lock.acquire(blocking=False):
        return JSONResponse(status_code=409, content={"error": "A sweep is already running"})
    try:
        result = workflow.run_sweep()
    finally:
        sweep_lock.release()
    body: Dict[str, Any] = result.to_summary()
    body["records"] = [r.model_dump() for r in result.records]
    return body


@app.get("/records")
def list_records(workflow: PaymentSweepWorkflow = Depends(get_workflow)):
    return {"ids": workflow.fetch_record_ids()}


@app.get("/records/{record_id}")
def get_record(record_id: int, workflow: PaymentSweepWorkflow = Depends(get_workflow)):
    record = workflow.fetch_record(record_id)
    eligible, reason = is_eligible(record, workflow.config.eligibility)
    body = record.model_dump()
    body["times_remaining"] = record.times_remaining
    body["eligible"] = eligible
    body["skip_reason"] = reason
    return body


def locked_tick() -> None:
    """Scheduler tick that shares the HTTP trigger's lock (skips if a sweep is running)."""
    if not sweep_lock.acquire(blocking=False):
        print("[SERVER] Tick skipped: a sweep is already running", flush=True)
        return
    try:
        get_workflow().run_sweep()
    finally:
        sweep_lock.release()


def start_scheduler() -> threading.Thread:
    """Run the cron loop in a daemon thread next to the server."""
    from recurpay.schedule import CronSchedule, run_on_schedule

    try:
        schedule = CronSchedule(get_workflow().config.schedule)
    except ConfigurationError as e:
        raise SystemExit(f"❌ {e}") from e
    t = threading.Thread(target=run_on_schedule, args=(locked_tick, schedule), daemon=True)
    t.start()
    return t
