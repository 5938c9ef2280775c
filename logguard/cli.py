# logguard/cli.py
"""
LogGuard command line interface
Anomaly triage from the terminal, tables rendered with rich
"""

import argparse
import asyncio
import getpass
import logging
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .core.cache import QueryCache
from .core.classification import CATEGORY_STYLES, SEVERITY_COLORS, DetectionCategory, Severity
from .core.config import settings
from .core.models import (
    AIConfig,
    AIProvider,
    AITier,
    Anomaly,
    AnomalyStatus,
    MetricsTimeRange,
    Priority,
    TriggerConditions,
    Webhook,
    WebhookProvider,
)
from .client.api import LogGuardClient
from .client.errors import LogGuardError
from .services.anomaly_list import AnomalyFilter, AnomalyListView, TimeRange
from .services.api_keys import PROVIDER_NAMES, ApiKeyService
from .services.bulk_update import BulkStatusUpdateCoordinator
from .services.dispatch import AnalysisDispatchGateway, AnalysisStrategy, AnalysisSummary
from .services.export import write_export
from .services.log_files import (
    LogFileService,
    format_duration,
    format_file_size,
    format_time_ago,
    job_progress_text,
    status_text,
)
from .services.metrics import TIME_RANGE_LABELS, MetricsService, format_rate, provider_rows
from .services.notifications import Notification, Notifier
from .services.poller import ProcessingPoller
from .services.review import AnomalyReviewSession
from .services.webhooks import WebhookService, first_validation_message

logger = logging.getLogger(__name__)

console = Console()


def print_notification(notification: Notification):
    if notification.is_error:
        console.print(f"[bold red]✗ {notification.title}[/]")
    else:
        console.print(f"[bold green]✓ {notification.title}[/]")
    if notification.description:
        console.print(f"  {notification.description}")


class Workspace:
    """Wires the workflow services together for one CLI invocation"""

    def __init__(self, client: LogGuardClient):
        self.client = client
        self.cache = QueryCache()
        self.notifier = Notifier()
        self.notifier.add_listener(print_notification)

        self.view = AnomalyListView(client, self.cache)
        self.bulk = BulkStatusUpdateCoordinator(client, self.cache, self.view.selection, self.notifier)
        self.gateway = AnalysisDispatchGateway(client, self.cache, self.notifier)
        self.files = LogFileService(client, self.cache, self.notifier)
        self.keys = ApiKeyService(client, self.cache, self.notifier)
        self.poller = ProcessingPoller(client, self.cache)
        self.webhooks = WebhookService(client, self.cache, self.notifier)
        self.metrics = MetricsService(client, self.cache)


# ===== RENDERING =====

def _risk_text(anomaly: Anomaly) -> str:
    color = SEVERITY_COLORS[anomaly.severity]
    return f"[{color}]{anomaly.risk_badge}[/]"


def _category_text(category: DetectionCategory) -> str:
    color, _ = CATEGORY_STYLES[category]
    return f"[{color}]{category.value}[/]"


def anomaly_table(anomalies: List[Anomaly], title: str = "Anomalies") -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Time", no_wrap=True)
    table.add_column("Type")
    table.add_column("Risk", no_wrap=True)
    table.add_column("Method")
    table.add_column("Status")
    table.add_column("Description", overflow="fold")

    for anomaly in anomalies:
        description = anomaly.description
        if len(description) > 80:
            description = description[:77] + "..."
        table.add_row(
            anomaly.id,
            anomaly.timestamp.strftime("%Y-%m-%d %H:%M"),
            anomaly.type_label,
            _risk_text(anomaly),
            _category_text(anomaly.category),
            anomaly.status_label,
            description,
        )
    return table


def anomaly_panel(anomaly: Anomaly) -> Panel:
    lines = [
        f"[bold]Type:[/] {anomaly.type_label}",
        f"[bold]Time:[/] {anomaly.timestamp.isoformat()}",
        f"[bold]Risk:[/] {_risk_text(anomaly)}",
        f"[bold]Detection:[/] {_category_text(anomaly.category)} ({anomaly.detection_method})",
        f"[bold]Status:[/] {anomaly.status_label}",
        f"[bold]Priority:[/] {anomaly.priority.value if anomaly.priority else 'not set'}",
        "",
        anomaly.description,
    ]

    if anomaly.source_data:
        lines.append("")
        lines.append("[bold]Source data[/]")
        for key, value in anomaly.source_data.items():
            lines.append(f"  {key}: {value}")

    if anomaly.raw_log_entry:
        lines.append("")
        line_no = f" (line {anomaly.log_line_number})" if anomaly.log_line_number else ""
        lines.append(f"[bold]Raw log entry{line_no}[/]")
        lines.append(f"  {anomaly.raw_log_entry}")

    if anomaly.analyst_notes:
        lines.append("")
        lines.append("[bold]Analyst notes[/]")
        lines.append(f"  {anomaly.analyst_notes}")

    return Panel("\n".join(lines), title=f"Anomaly {anomaly.id}", expand=False)


def summary_panel(summary: AnalysisSummary) -> Panel:
    lines = [summary.description]
    if summary.completed:
        lines.append("")
        lines.append(f"Log entries analyzed: {summary.log_entries_analyzed}")
        lines.append(f"Anomalies found: {summary.anomalies_found}")
        if summary.models_used:
            lines.append(f"Models: {', '.join(summary.models_used)}")
        if summary.average_confidence is not None:
            lines.append(f"Average confidence: {summary.average_confidence:.0%}")
        for detected in summary.top_anomalies:
            lines.append(f"  • {detected.anomaly_type} ({detected.risk_score:.1f}) {detected.description}")
    return Panel("\n".join(lines), title=summary.title, expand=False)


# ===== COMMANDS =====

def _filter_from_args(args) -> AnomalyFilter:
    return AnomalyFilter(
        risk_level=Severity(args.risk.capitalize()) if args.risk else None,
        status=AnomalyStatus(args.status) if args.status else None,
        category=DetectionCategory(args.category) if args.category else None,
        time_range=TimeRange(args.since),
        search=args.search or "",
        log_file_id=args.log_file,
    )


async def cmd_anomalies(ws: Workspace, args) -> int:
    await ws.view.refresh()
    visible = ws.view.set_filter(_filter_from_args(args))

    shown = visible[:args.limit] if args.limit else visible
    console.print(anomaly_table(shown, title=f"Anomalies ({len(visible)} of {len(ws.view.anomalies)})"))
    if len(shown) < len(visible):
        console.print(f"[dim]{len(visible) - len(shown)} more; raise --limit to see them[/]")
    return 0


async def cmd_show(ws: Workspace, args) -> int:
    session = AnomalyReviewSession(ws.client, ws.cache, ws.notifier, args.anomaly_id)
    anomaly = await session.load()
    if anomaly is None:
        console.print(f"[red]Failed to load anomaly details:[/] {session.load_error}")
        return 1
    console.print(anomaly_panel(anomaly))
    return 0


async def cmd_review(ws: Workspace, args) -> int:
    session = AnomalyReviewSession(ws.client, ws.cache, ws.notifier, args.anomaly_id)
    if await session.load() is None:
        console.print(f"[red]Failed to load anomaly details:[/] {session.load_error}")
        return 1

    session.set_status(AnomalyStatus(args.status))
    if args.priority:
        session.set_priority(Priority(args.priority))
    if args.notes:
        session.set_notes(args.notes)

    await session.submit()
    return 1 if session.submit_error else 0


async def cmd_bulk_update(ws: Workspace, args) -> int:
    await ws.view.refresh()
    ws.view.selection.select_all(args.anomaly_ids)

    missing = [i for i in args.anomaly_ids if not ws.view.selection.is_selected(i)]
    for anomaly_id in missing:
        console.print(f"[yellow]Skipping unknown anomaly {anomaly_id}[/]")

    result = await ws.bulk.apply_status(AnomalyStatus(args.status))
    if result is None:
        console.print("[yellow]No anomalies selected, nothing to update[/]")
        return 1
    return 0 if result.success else 1


async def cmd_export(ws: Workspace, args) -> int:
    await ws.view.refresh()
    ws.view.set_filter(_filter_from_args(args))

    export = ws.view.export()
    if export is None:
        console.print("[yellow]No anomalies to export[/]")
        return 0

    path = write_export(export, args.output)
    console.print(f"[green]Exported {export.row_count} anomalies to[/] {path}")
    return 0


async def cmd_files(ws: Workspace, args) -> int:
    log_files = await ws.files.list_files()

    table = Table(title="Log Files")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Entries", justify="right")
    table.add_column("Status")
    table.add_column("Uploaded")

    for log_file in log_files:
        table.add_row(
            log_file.id,
            log_file.display_name,
            format_file_size(log_file.file_size),
            str(log_file.total_entries) if log_file.total_entries is not None else "-",
            status_text(log_file.status, log_file.error_message),
            format_time_ago(log_file.uploaded_at),
        )
    console.print(table)
    return 0


async def cmd_upload(ws: Workspace, args) -> int:
    result = await ws.files.upload(Path(args.path))
    if result is None:
        return 1
    console.print(f"Log file id: [bold]{result.log_file.id}[/]")
    return 0


async def cmd_retry(ws: Workspace, args) -> int:
    log_file = await ws.files.get(args.log_file_id)
    if log_file is None:
        console.print(f"[red]Log file {args.log_file_id} not found[/]")
        return 1
    ok = await ws.files.retry(log_file)
    if ok and args.wait:
        return await _wait_for_processing(ws, log_file.id)
    return 0 if ok else 1


async def _wait_for_processing(ws: Workspace, log_file_id: str) -> int:
    with console.status(f"Waiting for {log_file_id} to finish processing..."):
        result = await ws.poller.wait_for(log_file_id)

    if result.timed_out:
        console.print("[yellow]Still processing; check again later with 'logguard files'[/]")
        return 1
    if not result.succeeded:
        reason = result.log_file.error_message if result.log_file else "log file disappeared"
        console.print(f"[red]Processing did not complete:[/] {reason}")
        return 1

    console.print(f"[green]Processing complete[/] ({result.polls} checks)")
    return 0


async def cmd_analyze(ws: Workspace, args) -> int:
    strategy = AnalysisStrategy(args.strategy)
    ai_config = None
    if strategy == AnalysisStrategy.AI:
        ai_config = AIConfig(
            provider=AIProvider(args.provider or settings.default_ai_provider),
            tier=AITier(args.tier or settings.default_ai_tier),
            temperature=args.temperature if args.temperature is not None else settings.ai_temperature,
        )

    summary = await ws.gateway.dispatch(strategy, args.log_file_id, ai_config)
    if summary is None:
        return 1

    console.print(summary_panel(summary))
    if not summary.completed and args.wait:
        return await _wait_for_processing(ws, args.log_file_id)
    return 0


async def cmd_keys(ws: Workspace, args) -> int:
    if args.keys_command == "save":
        api_key = args.key or getpass.getpass(f"{PROVIDER_NAMES[AIProvider(args.provider)]} API key: ")
        return 0 if await ws.keys.save(AIProvider(args.provider), api_key) else 1

    if args.keys_command == "test":
        return 0 if await ws.keys.test(AIProvider(args.provider)) else 1

    status = await ws.keys.status()
    providers = await ws.keys.providers()

    table = Table(title="AI Provider Keys")
    table.add_column("Provider")
    table.add_column("Configured")
    table.add_column("Working")
    table.add_column("Available")
    table.add_column("Error")
    for provider in AIProvider:
        key_status = status.for_provider(provider)
        table.add_row(
            PROVIDER_NAMES[provider],
            "yes" if key_status.configured else "no",
            "yes" if key_status.working else "no",
            "yes" if providers.is_available(provider) else "no",
            key_status.error or "",
        )
    console.print(table)
    return 0


async def cmd_stats(ws: Workspace, args) -> int:
    stats = await ws.client.get_stats()
    table = Table(title="Overview", show_header=False)
    table.add_row("Log entries", str(stats.total_logs))
    table.add_row("Anomalies detected", str(stats.anomalies_detected))
    table.add_row("Average risk score", f"{stats.average_risk_score:.1f}")
    console.print(table)

    if stats.high_risk_anomalies:
        console.print(anomaly_table(stats.high_risk_anomalies, title="High Risk"))
    return 0


async def cmd_jobs(ws: Workspace, args) -> int:
    jobs = await ws.files.processing_jobs(args.log_file)

    table = Table(title="Processing Jobs")
    table.add_column("Job", style="dim", no_wrap=True)
    table.add_column("Log file", no_wrap=True)
    table.add_column("Method")
    table.add_column("Status")
    table.add_column("Entries", justify="right")
    table.add_column("Anomalies", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Started")

    for job in jobs:
        table.add_row(
            job.id,
            job.log_file_id,
            job.detection_method or "-",
            job_progress_text(job),
            str(job.log_entries_processed) if job.log_entries_processed is not None else "-",
            str(job.anomalies_found) if job.anomalies_found is not None else "-",
            format_duration(job.analysis_time_ms),
            format_time_ago(job.started_at) if job.started_at else "-",
        )
    console.print(table)
    if not jobs:
        console.print("[dim]No processing jobs yet[/]")
    return 0


def webhook_table(webhooks: List[Webhook]) -> Table:
    table = Table(title="Webhooks")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Active")
    table.add_column("Triggers on")
    table.add_column("URL", overflow="fold")
    table.add_column("Last triggered")

    for webhook in webhooks:
        table.add_row(
            webhook.id,
            webhook.name,
            webhook.provider.value,
            "[green]yes[/]" if webhook.is_active else "[dim]no[/]",
            webhook.trigger_conditions.describe(),
            webhook.webhook_url,
            format_time_ago(webhook.last_triggered),
        )
    return table


def _split_list(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


async def cmd_webhooks(ws: Workspace, args) -> int:
    command = args.webhooks_command or "list"

    if command == "create":
        webhook = await ws.webhooks.create(
            args.name,
            args.url,
            provider=WebhookProvider(args.provider),
            min_risk_score=args.min_risk,
            priorities=_split_list(args.priorities) if args.priorities else None,
            anomaly_types=_split_list(args.types),
            keywords=_split_list(args.keywords),
            is_active=not args.inactive,
        )
        if webhook is None:
            return 1
        console.print(f"Webhook id: [bold]{webhook.id}[/]")
        return 0

    if command == "update":
        changes = {}
        if args.min_risk is not None:
            changes["min_risk_score"] = args.min_risk
        if args.priorities is not None:
            changes["priorities"] = _split_list(args.priorities)
        if args.types is not None:
            changes["anomaly_types"] = _split_list(args.types)
        if args.keywords is not None:
            changes["keywords"] = _split_list(args.keywords)

        conditions = None
        if changes:
            current = await ws.webhooks.get(args.webhook_id)
            base = current.trigger_conditions.model_dump() if current else {}
            try:
                conditions = TriggerConditions.model_validate({**base, **changes})
            except ValidationError as e:
                ws.notifier.error("Failed to update webhook", first_validation_message(e))
                return 1
        webhook = await ws.webhooks.update(args.webhook_id, name=args.name, webhook_url=args.url,
                                           trigger_conditions=conditions)
        return 0 if webhook is not None else 1

    if command in ("enable", "disable"):
        webhook = await ws.webhooks.set_active(args.webhook_id, command == "enable")
        return 0 if webhook is not None else 1

    if command == "delete":
        return 0 if await ws.webhooks.delete(args.webhook_id) else 1

    if command == "test":
        return 0 if await ws.webhooks.test(args.webhook_id) else 1

    webhooks = await ws.webhooks.list()
    console.print(webhook_table(webhooks))
    if not webhooks:
        console.print("[dim]No webhooks configured; add one with 'logguard webhooks create'[/]")
    return 0


async def cmd_metrics(ws: Workspace, args) -> int:
    time_range = MetricsTimeRange(args.range)
    summary = await ws.metrics.summary(time_range)

    table = Table(title=f"Pipeline Metrics ({TIME_RANGE_LABELS[time_range]})")
    table.add_column("Stage")
    table.add_column("Success", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Health")
    table.add_row("File uploads", format_rate(summary.file_uploads), str(summary.file_uploads.failure),
                  summary.upload_health)
    table.add_row("Analysis views", format_rate(summary.analysis_views), str(summary.analysis_views.failure), "")
    table.add_row("AI analysis", format_rate(summary.ai_analysis), str(summary.ai_analysis.failure),
                  summary.ai_health)
    for provider, counts in provider_rows(summary):
        table.add_row(f"  {provider}", format_rate(counts), str(counts.failure), "")
    table.add_row("Anomaly detection", format_rate(summary.anomaly_detection),
                  str(summary.anomaly_detection.failure),
                  f"Avg: {summary.anomaly_detection.avg_anomalies:.1f} anomalies")
    console.print(table)
    console.print(f"Overall success: [bold]{summary.overall_success_rate:.1f}%[/] "
                  f"across {summary.overall_total} operations")
    return 0


def cmd_dashboard(args) -> int:
    """Launch the Streamlit dashboard"""
    script = Path(__file__).with_name("dashboard.py")
    command = [sys.executable, "-m", "streamlit", "run", str(script), "--server.port", str(args.port)]
    logger.info(f"Starting dashboard: {' '.join(command)}")
    return subprocess.call(command)


COMMANDS = {
    "anomalies": cmd_anomalies,
    "show": cmd_show,
    "review": cmd_review,
    "bulk-update": cmd_bulk_update,
    "export": cmd_export,
    "files": cmd_files,
    "upload": cmd_upload,
    "retry": cmd_retry,
    "analyze": cmd_analyze,
    "keys": cmd_keys,
    "stats": cmd_stats,
    "jobs": cmd_jobs,
    "webhooks": cmd_webhooks,
    "metrics": cmd_metrics,
}


# ===== ARGUMENTS =====

def _add_filter_args(parser: argparse.ArgumentParser):
    parser.add_argument("--risk", choices=[s.value.lower() for s in Severity], help="Risk level")
    parser.add_argument("--status", choices=[s.value for s in AnomalyStatus], help="Review status")
    parser.add_argument("--category", choices=[c.value for c in DetectionCategory], help="Detection category")
    parser.add_argument("--since", choices=[t.value for t in TimeRange], default=TimeRange.ALL.value,
                        help="Time range (default: all)")
    parser.add_argument("--search", help="Text to look for in type and description")
    parser.add_argument("--log-file", help="Only anomalies from this log file id")


def _add_trigger_args(parser: argparse.ArgumentParser, default_min_risk: Optional[float]):
    parser.add_argument("--min-risk", type=float, default=default_min_risk, help="Minimum risk score (0-10)")
    parser.add_argument("--priorities", help="Comma separated, e.g. high,critical")
    parser.add_argument("--types", help="Comma separated anomaly types")
    parser.add_argument("--keywords", help="Comma separated description keywords")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="logguard", description="LogGuard anomaly review and triage")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--api-url", help=f"Backend URL (default: {settings.api_base_url})")
    parser.add_argument("--session", help="Session cookie value")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("anomalies", help="List anomalies")
    _add_filter_args(p)
    p.add_argument("--limit", type=int, default=settings.page_size, help="Rows to show (0 for all)")

    p = sub.add_parser("show", help="Show one anomaly")
    p.add_argument("anomaly_id")

    p = sub.add_parser("review", help="Review one anomaly")
    p.add_argument("anomaly_id")
    p.add_argument("--status", required=True, choices=[s.value for s in AnomalyStatus])
    p.add_argument("--priority", choices=[pr.value for pr in Priority])
    p.add_argument("--notes", help="Analyst notes")

    p = sub.add_parser("bulk-update", help="Set the status of several anomalies")
    p.add_argument("--status", required=True, choices=[s.value for s in AnomalyStatus])
    p.add_argument("anomaly_ids", nargs="+")

    p = sub.add_parser("export", help="Export anomalies to CSV")
    _add_filter_args(p)
    p.add_argument("--output", type=Path, help=f"Directory (default: {settings.export_dir})")

    sub.add_parser("files", help="List uploaded log files")

    p = sub.add_parser("upload", help="Upload a log file")
    p.add_argument("path")

    p = sub.add_parser("retry", help="Reprocess a failed log file")
    p.add_argument("log_file_id")
    p.add_argument("--wait", action="store_true", help="Wait until processing finishes")

    p = sub.add_parser("analyze", help="Run anomaly detection on a log file")
    p.add_argument("log_file_id")
    p.add_argument("--strategy", choices=[s.value for s in AnalysisStrategy],
                   default=AnalysisStrategy.TRADITIONAL.value)
    p.add_argument("--provider", choices=[pr.value for pr in AIProvider])
    p.add_argument("--tier", choices=[t.value for t in AITier])
    p.add_argument("--temperature", type=float)
    p.add_argument("--wait", action="store_true", help="Wait for AI processing to finish")

    p = sub.add_parser("keys", help="Manage AI provider keys")
    keys_sub = p.add_subparsers(dest="keys_command")
    keys_sub.add_parser("status", help="Show key status")
    kp = keys_sub.add_parser("save", help="Store a key")
    kp.add_argument("provider", choices=[pr.value for pr in AIProvider])
    kp.add_argument("--key", help="API key (prompted when omitted)")
    kp = keys_sub.add_parser("test", help="Test a stored key")
    kp.add_argument("provider", choices=[pr.value for pr in AIProvider])

    sub.add_parser("stats", help="Show overview numbers")

    p = sub.add_parser("jobs", help="List processing jobs")
    p.add_argument("--log-file", help="Only jobs for this log file id")

    p = sub.add_parser("webhooks", help="Manage webhook integrations")
    hooks_sub = p.add_subparsers(dest="webhooks_command")
    hooks_sub.add_parser("list", help="List webhooks")
    wp = hooks_sub.add_parser("create", help="Add a webhook")
    wp.add_argument("name")
    wp.add_argument("url")
    wp.add_argument("--provider", choices=[pr.value for pr in WebhookProvider], default=WebhookProvider.ZAPIER.value)
    wp.add_argument("--inactive", action="store_true", help="Create disabled")
    _add_trigger_args(wp, default_min_risk=5.0)
    wp = hooks_sub.add_parser("update", help="Edit a webhook")
    wp.add_argument("webhook_id")
    wp.add_argument("--name")
    wp.add_argument("--url")
    _add_trigger_args(wp, default_min_risk=None)
    for action in ("enable", "disable", "delete", "test"):
        wp = hooks_sub.add_parser(action, help=f"{action.capitalize()} a webhook")
        wp.add_argument("webhook_id")

    p = sub.add_parser("metrics", help="Show pipeline success metrics")
    p.add_argument("--range", choices=[t.value for t in MetricsTimeRange], default=MetricsTimeRange.LAST_24H.value)

    p = sub.add_parser("dashboard", help="Open the Streamlit dashboard")
    p.add_argument("--port", type=int, default=8501)

    return parser


async def run(args, client: Optional[LogGuardClient] = None) -> int:
    client = client or LogGuardClient(base_url=args.api_url, session_cookie=args.session)
    ws = Workspace(client)
    try:
        return await COMMANDS[args.command](ws, args)
    except LogGuardError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        console.print(f"[bold red]Error:[/] {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "dashboard":
        return cmd_dashboard(args)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
