"""
recurpay CLI.

Commands:
  recurpay sweep         Run one sweep now and print the summary (JSON)
  recurpay run           Run sweeps forever on the config's cron schedule
  recurpay serve         Start the HTTP host (add --schedule to also run the cron loop)
  recurpay records       List record ids on the contract (read-only)
  recurpay record <id>   Show one record and whether it is eligible (read-only)

Every command takes --config <path> (default: RECURPAY_CONFIG or ./config.json).
RECURPAY_PRIVATE_KEY is read from the environment or .env.
"""
import json
import os
import sys
from typing import Optional

from recurpay.config import load_config, load_env
from recurpay.errors import SweepError


def _option(name: str) -> Optional[str]:
    """Value following `name` in argv, e.g. --config path."""
    if name in sys.argv:
        idx = sys.argv.index(name)
        if idx + 1 < len(sys.argv) and not sys.argv[idx + 1].startswith("-"):
            return sys.argv[idx + 1]
    return None


def _positional() -> list:
    args = []
    skip = False
    for a in sys.argv[2:]:
        if skip:
            skip = False
            continue
        if a == "--config":
            skip = True
            continue
        if a.startswith("-"):
            continue
        args.append(a)
    return args


def _fail(e: Exception) -> None:
    print(f"❌ {e}")
    sys.exit(1)


def _workflow():
    from recurpay.sweep import build_workflow
    return build_workflow(load_config(_option("--config")))


def sweep_command():
    """One tick: read all records, submit reports for eligible ones, print the summary."""
    try:
        result = _workflow().run_sweep()
    except SweepError as e:
        _fail(e)
    print(json.dumps(result.to_summary(), indent=2))
    failed = [r for r in result.records if r.reason and r.reason.startswith("submission failed")]
    if failed:
        print(f"⚠️  {len(failed)} submission(s) failed: {', '.join(str(r.id) for r in failed)}")


def run_command():
    """Cron loop: one sweep per firing time, until interrupted."""
    from recurpay.schedule import CronSchedule, run_on_schedule

    try:
        workflow = _workflow()
        schedule = CronSchedule(workflow.config.schedule)
    except SweepError as e:
        _fail(e)
    print("=" * 70)
    print("recurpay: recurring payment sweeper")
    print("=" * 70)
    evm = workflow.config.primary_evm()
    print(f"  Contract: {evm.recurring_payments_address} ({evm.chain_name})")
    print(f"  Schedule: {schedule.expression}")
    print(f"  Policy:   {workflow.config.eligibility.value}\n")
    try:
        run_on_schedule(workflow.run_sweep, schedule)
    except KeyboardInterrupt:
        print("\nStopped.")


def serve_command():
    """HTTP host (FastAPI + uvicorn). PORT env, default 8000."""
    import uvicorn

    config_path = _option("--config")
    if config_path:
        os.environ["RECURPAY_CONFIG"] = config_path
    from recurpay import server

    if "--schedule" in sys.argv:
        server.start_scheduler()
        print("[SERVER] Cron loop started in background.")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(server.app, host="0.0.0.0", port=port)


def records_command():
    try:
        ids = _workflow().fetch_record_ids()
    except SweepError as e:
        _fail(e)
    print(json.dumps({"ids": ids}))


def record_command():
    from recurpay.sweep import is_eligible

    args = _positional()
    if not args or not args[0].isdigit():
        print("Usage: recurpay record <id>")
        sys.exit(1)
    record_id = int(args[0])
    try:
        workflow = _workflow()
        record = workflow.fetch_record(record_id)
    except SweepError as e:
        _fail(e)
    eligible, reason = is_eligible(record, workflow.config.eligibility)
    body = record.model_dump()
    body["times_remaining"] = record.times_remaining
    print(json.dumps(body, indent=2))
    if eligible:
        print(f"✅ Eligible under policy '{workflow.config.eligibility.value}'")
    else:
        print(f"❌ Not eligible under policy '{workflow.config.eligibility.value}': {reason}")


COMMANDS = {
    "sweep": sweep_command,
    "run": run_command,
    "serve": serve_command,
    "records": records_command,
    "record": record_command,
}


def main():
    """CLI entry point."""
    load_env()
    if len(sys.argv) < 2:
        print(__doc__.strip())
        sys.exit(1)
    command = sys.argv[1]
    handler = COMMANDS.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        print("Use 'recurpay sweep', 'recurpay run', 'recurpay serve', 'recurpay records', 'recurpay record <id>'")
        sys.exit(1)
    handler()


if __name__ == "__main__":
    main()
