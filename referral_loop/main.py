"""Command-line entry point for the referral loop pipeline."""

import argparse
import json
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from referral_loop import config
from referral_loop.dashboard import physician_dashboard
from referral_loop.database import init_database
from referral_loop.fhir import Encounter
from referral_loop.notifications import handle_notification_bundle
from referral_loop.pipeline import EncounterPipeline, ProcessEncounterResult
from referral_loop.scripts.seed_database import seed_database

console = Console()


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def load_json(path: str) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def print_result(result: ProcessEncounterResult) -> None:
    console.print(f"[bold]Encounter[/bold] {result.encounter_id} -> patient {result.patient_id}")

    if result.match_results:
        table = Table("Referral", "Task", "Score", "Confidence", "Org NPI", "Org name", "Pract NPI", "Specialty", "Date")
        for match in result.match_results:
            s = match.signals
            table.add_row(
                match.referral_id, match.task_id, f"{match.score:.2f}", match.confidence,
                str(s.org_npi), f"{s.org_name:.2f}", str(s.practitioner_npi), str(s.specialty), str(s.date_in_window),
            )
        console.print(table)
    else:
        console.print("[dim]No referral matches[/dim]")

    if result.task_updated:
        console.print(f"Task updated: [cyan]{result.task_updated}[/cyan]")
    colour = "green" if result.routed else "yellow"
    target = f" to {result.routed_to}" if result.routed else ""
    console.print(f"[{colour}]Routed: {result.routed}{target}[/{colour}] ({result.reason})")


def cmd_process(args) -> None:
    pipeline = EncounterPipeline()
    for path in args.files:
        encounter = Encounter.model_validate(load_json(path))
        print_result(pipeline.process_encounter(encounter))


def cmd_notify(args) -> None:
    summary = handle_notification_bundle(load_json(args.file), EncounterPipeline())
    console.print(f"Processed {summary['processed']} notification event(s)")
    for result in summary["results"]:
        print_result(result)


def cmd_sweep(args) -> None:
    overdue = EncounterPipeline().sweep_overdue()
    if overdue:
        console.print(f"[red]Overdue:[/red] {', '.join(overdue)}")
    else:
        console.print("[green]No overdue referrals[/green]")


def cmd_dashboard(args) -> None:
    data = physician_dashboard()
    table = Table("Referral", "Patient", "Task", "Status", "Detail", "Due", "Output")
    for item in data["referrals"]:
        sr, task = item["serviceRequest"], item["task"]
        table.add_row(
            sr["id"], task.patient_id, task.id, task.status.value,
            task.business_status.value, task.due_date or "", ", ".join(task.output),
        )
    console.print(table)
    console.print(f"Routed events: {len(data['routedEvents'])}")
    if data["overdue"]:
        console.print(f"[red]Newly overdue:[/red] {', '.join(data['overdue'])}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="referral-loop", description=__doc__)
    parser.add_argument("--seed", action="store_true", help="seed demo directory and referral first")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="seed demo data").set_defaults(func=lambda args: None)

    process = sub.add_parser("process", help="process encounter JSON files in order")
    process.add_argument("files", nargs="+")
    process.set_defaults(func=cmd_process)

    notify = sub.add_parser("notify", help="handle a broker notification bundle")
    notify.add_argument("file")
    notify.set_defaults(func=cmd_notify)

    sub.add_parser("sweep", help="mark overdue referrals").set_defaults(func=cmd_sweep)
    sub.add_parser("dashboard", help="show referrals and routed events").set_defaults(func=cmd_dashboard)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper())

    init_database()
    if args.seed or args.command == "seed":
        seed_database()

    try:
        args.func(args)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
