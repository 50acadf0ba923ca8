"""gym_sync.run_sync

Unified CLI entrypoint for USA Gymnastics meet sync.

Modes (--mode):
  sanction   : sync one sanction with its clubs, gymnasts, sessions,
               result sets and participant links
  scores     : sync the scores of one result set
  club_meets : sync every past meet since --since in which --club-id took part

Usage (sanction):
    python -m gym_sync.run_sync \\
        --mode sanction \\
        --db-dsn "$DB_DSN" \\
        --sanction-id 59310

Usage (club_meets):
    python -m gym_sync.run_sync \\
        --mode club_meets \\
        --db-dsn "$DB_DSN" \\
        --club-id 24029 \\
        --since 2022-09-01 \\
        --rejects-path "artifacts/rejects/club_meets_rejects.csv"
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click

from gym_sync.club_meets import DEFAULT_CLUB_ID, DEFAULT_SINCE, sync_all_meets_for_club
from gym_sync.fetch import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS, ApiSettings, UsagymClient
from gym_sync.shared import (
    FetchFailedError,
    RejectWriter,
    SyncCounters,
    SyncError,
    write_run_report,
)
from gym_sync.store import Store, StoreSettings, apply_schema
from gym_sync.sync_sanction import sync_sanction_and_participants, sync_scores


@click.command()
@click.option(
    "--mode",
    default="sanction",
    type=click.Choice(["sanction", "scores", "club_meets"]),
    show_default=True,
    help="Sync mode",
)
@click.option("--db-dsn", required=True, envvar="DB_DSN", help="PostgreSQL DSN (env DB_DSN)")
@click.option("--api-base-url", default=DEFAULT_BASE_URL, envvar="USAGYM_API_BASE_URL", show_default=True)
@click.option("--timeout", default=DEFAULT_TIMEOUT_SECONDS, type=float, envvar="USAGYM_TIMEOUT_SECONDS", show_default=True, help="Upstream request timeout in seconds")
# sanction flags
@click.option("--sanction-id", default=None, type=int, help="[sanction] Sanction to sync")
# scores flags
@click.option("--result-set-id", default=None, type=int, help="[scores] Result set to sync")
# club_meets flags
@click.option("--club-id", default=DEFAULT_CLUB_ID, type=int, show_default=True, help="[club_meets] Club whose meets are synced")
@click.option("--since", default=DEFAULT_SINCE.isoformat(), type=click.DateTime(formats=["%Y-%m-%d"]), show_default=True, help="[club_meets] Earliest meet start date")
# shared flags
@click.option("--apply-schema", "apply_schema_first", is_flag=True, default=False, help="Apply the bundled schema migration before syncing")
@click.option("--dry-run", is_flag=True, default=False)
@click.option(
    "--rejects-path",
    default="./artifacts/rejects/gym_sync_rejects.csv",
    show_default=True,
)
@click.option("--report-dir", default="./artifacts/reports", show_default=True, type=click.Path())
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option("--verbose", "-v", is_flag=True, default=False)
def main(
    mode: str,
    db_dsn: str,
    api_base_url: str,
    timeout: float,
    sanction_id: int | None,
    result_set_id: int | None,
    club_id: int,
    since: datetime,
    apply_schema_first: bool,
    dry_run: bool,
    rejects_path: str,
    report_dir: str,
    run_id: str | None,
    verbose: bool,
) -> None:
    """Unified USA Gymnastics meet sync CLI."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()
    counters = SyncCounters()
    rejects = RejectWriter(Path(rejects_path))

    _validate_mode_flags(mode, sanction_id, result_set_id, run_id)
    click.echo(f"[{run_id}] Starting {mode} run (dry_run={dry_run})")

    params: dict[str, Any] = {}
    result: Any = None
    client = UsagymClient(ApiSettings(base_url=api_base_url, timeout=timeout))
    store = Store(StoreSettings(dsn=db_dsn))
    try:
        store.open()
        if apply_schema_first:
            with store.connection() as conn:
                apply_schema(conn)
            click.echo(f"[{run_id}] Schema applied.")

        if mode == "sanction":
            params = {"sanction_id": sanction_id}
            result = sync_sanction_and_participants(
                store, client, sanction_id, counters, rejects, dry_run=dry_run,  # type: ignore[arg-type]
            )
            result = asdict(result) if result is not None else None
        elif mode == "scores":
            params = {"result_set_id": result_set_id}
            rows = sync_scores(
                store, client, result_set_id, counters, rejects, dry_run=dry_run,  # type: ignore[arg-type]
            )
            result = [asdict(r) for r in rows]
        else:
            params = {"club_id": club_id, "since": since.date().isoformat()}
            summaries = sync_all_meets_for_club(
                store, client, club_id, since.date(), counters, rejects, dry_run=dry_run,
            )
            result = [asdict(s) for s in summaries]
    except (SyncError, FetchFailedError) as exc:
        report_path = write_run_report(
            run_id, started_at, mode, dry_run, {**params, "error": str(exc)},
            counters, Path(report_dir),
        )
        click.echo(f"[{run_id}] Run report: {report_path}")
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)
    finally:
        rejects.close()
        client.close()
        store.close()

    report_path = write_run_report(
        run_id, started_at, mode, dry_run, params, counters, Path(report_dir),
    )
    click.echo(json.dumps(result, indent=2, default=str))
    click.echo(f"[{run_id}] Run report: {report_path}")
    click.echo(json.dumps(counters.to_dict(), indent=2, default=str))
    if dry_run:
        click.echo(f"[{run_id}] [dry-run] All changes rolled back.")
    click.echo(f"[{run_id}] Done.")


def _validate_mode_flags(
    mode: str,
    sanction_id: int | None,
    result_set_id: int | None,
    run_id: str,
) -> None:
    required = {
        "sanction": {"--sanction-id": sanction_id},
        "scores": {"--result-set-id": result_set_id},
    }.get(mode, {})
    missing = [k for k, v in required.items() if v is None]
    if missing:
        click.echo(
            f"[{run_id}] FATAL: {mode} mode requires: {', '.join(missing)}",
            err=True,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
