"""
Admin CLI for managing financial records and their analysis.

Usage:
    finaudit-admin upload --file <path> --org <org_id> --user <user_id>
    finaudit-admin analyze --record-id <record_id> [--actor <name>]
    finaudit-admin reset --record-id <record_id> --actor <name> [--reason <text>]
    finaudit-admin show --record-id <record_id> [--json]
    finaudit-admin history --record-id <record_id> [--limit <n>]
    finaudit-admin list --org <org_id> [--status <status>] [--limit <n>]
    finaudit-admin stats [--org <org_id>]
    finaudit-admin flag-status --record-id <id> --flag-id <flag_id> --status Reviewed --org <org_id>
    finaudit-admin delete --record-id <record_id>
    finaudit-admin analyze-file --file <path> [--json]

Database settings come from the --db-* options or the DB_* / DATABASE_URL
environment variables; a .env file is loaded first when present.
"""

import argparse
import json
import mimetypes
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from finaudit.core.errors import FinauditError
from finaudit.core.models import AnalysisResult, FinancialRecord
from finaudit.core.rules import EngineConfig, RuleConfigLoader
from finaudit.observability.logger import get_logger
from finaudit.services.analysis_service import AnalysisService
from finaudit.store.audit import TransitionLog
from finaudit.store.blob_store import LocalBlobStore, create_blob_store_from_env
from finaudit.store.connection import DatabaseConnectionPool
from finaudit.store.record_store import RecordStore

logger = get_logger(__name__)

DEFAULT_RULES_CONFIG = Path("config") / "analysis_rules.yaml"


def format_timestamp(ts: datetime | str | None) -> str:
    """Format timestamp for display."""
    if isinstance(ts, str):
        return ts
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


def load_engine_config(path: str | None) -> EngineConfig:
    """
    Load rule settings from YAML.

    An explicit path must exist; otherwise config/analysis_rules.yaml is used
    when present, and the built-in defaults when not.
    """
    if path:
        return RuleConfigLoader(path).load()
    if DEFAULT_RULES_CONFIG.exists():
        return RuleConfigLoader(DEFAULT_RULES_CONFIG).load()
    return EngineConfig()


def create_pool(args) -> DatabaseConnectionPool:
    return DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )


def build_service(args, pool: DatabaseConnectionPool) -> AnalysisService:
    return AnalysisService.from_config(
        load_engine_config(args.rules_config),
        records=RecordStore(pool),
        blobs=create_blob_store_from_env(),
        transitions=TransitionLog(pool),
    )


def fail(action: str, error: Exception) -> None:
    """Report an error and exit with status 1."""
    if isinstance(error, FinauditError):
        logger.error(f"Error {action}: {error}")
    else:
        logger.error(f"Error {action}: {error}", exc_info=True)
    print(f"\nError: {error}")
    sys.exit(1)


def print_result(result: AnalysisResult) -> None:
    print(f"\nSummary: {result.summary}")
    print(f"Overall risk: {result.overall_risk_level}")

    if not result.anomalies:
        print("\nNo anomalies found.")
        return

    print(f"\n{'Reference':<12} {'Severity':<8} {'Type':<26} {'Description'}")
    print(f"{'-' * 80}")
    for anomaly in result.anomalies:
        status = f" [{anomaly.status}]" if anomaly.status else ""
        print(
            f"{anomaly.record_reference:<12} {anomaly.severity:<8} "
            f"{anomaly.type:<26} {anomaly.description}{status}"
        )


def print_record(record: FinancialRecord) -> None:
    print(f"\n{'=' * 80}")
    print(f"RECORD: {record.record_id}")
    print(f"{'=' * 80}\n")
    print(f"File:         {record.file_name} ({record.file_type}, {record.file_size} bytes)")
    print(f"Stored at:    {record.file_path}")
    print(f"Organization: {record.organization_id}")
    print(f"Uploaded by:  {record.uploaded_by}")
    print(f"Status:       {record.status}")
    print(f"Created:      {format_timestamp(record.created_at)}")

    if record.analysis_results:
        print_result(record.analysis_results)
        flag_ids = record.analysis_results.flag_ids(record.record_id)
        if flag_ids:
            print("\nFlag IDs:")
            for flag_id in flag_ids:
                print(f"  - {flag_id}")
    print(f"\n{'=' * 80}\n")


def upload_command(args):
    """
    Store a local file and register it as a pending record.

    Args:
        args: Command line arguments
    """
    path = Path(args.file)
    pool = create_pool(args)

    try:
        data = path.read_bytes()
        pool.open()
        service = build_service(args, pool)

        content_type = mimetypes.guess_type(path.name)[0]
        record = service.upload_record(args.user, args.org, path.name, data, content_type)

        print(f"\nUploaded {record.file_name} as record {record.record_id}")
        print(f"Type: {record.file_type}  Size: {record.file_size} bytes  Status: {record.status}")

        if args.analyze:
            print_result(service.run_analysis(record.record_id, actor=args.user))

    except Exception as e:
        fail("uploading file", e)

    finally:
        pool.close()


def analyze_command(args):
    """
    Run the anomaly analysis on a pending record.

    Args:
        args: Command line arguments
    """
    logger.info(f"Analyzing record: {args.record_id}")
    pool = create_pool(args)

    try:
        pool.open()
        service = build_service(args, pool)
        print_result(service.run_analysis(args.record_id, actor=args.actor))

    except Exception as e:
        fail("analyzing record", e)

    finally:
        pool.close()


def reset_command(args):
    """
    Send a completed or failed record back to pending.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)

    try:
        pool.open()
        service = build_service(args, pool)
        record = service.reset_record(args.record_id, actor=args.actor, reason=args.reason)
        print(f"\nRecord {record.record_id} reset; status is now {record.status}")

    except Exception as e:
        fail("resetting record", e)

    finally:
        pool.close()


def show_command(args):
    """
    Display a record with its analysis results.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)

    try:
        pool.open()
        record = RecordStore(pool).get_record(args.record_id)

        if record is None:
            print(f"\nNo record found with ID: {args.record_id}")
            sys.exit(1)

        if args.json:
            print(record.model_dump_json(indent=2))
        else:
            print_record(record)

    except Exception as e:
        fail("showing record", e)

    finally:
        pool.close()


def history_command(args):
    """
    Display the status transitions of a record, oldest first.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)

    try:
        pool.open()
        transitions = TransitionLog(pool).query_transitions_by_record(args.record_id, limit=args.limit)

        if not transitions:
            print(f"\nNo history found for record ID: {args.record_id}")
            return

        print(f"\n{'=' * 80}")
        print(f"STATUS HISTORY FOR RECORD: {args.record_id}")
        print(f"{'=' * 80}\n")
        print(f"{'Timestamp':<20} {'From':<12} {'To':<12} {'Actor':<16} {'Reason'}")
        print(f"{'-' * 80}")

        for t in transitions:
            print(
                f"{format_timestamp(t.created_at):<20} {t.from_status:<12} "
                f"{t.to_status:<12} {t.actor:<16} {t.reason or '-'}"
            )
        print(f"\n{'=' * 80}\n")

    except Exception as e:
        fail("reading record history", e)

    finally:
        pool.close()


def list_command(args):
    """
    List an organization's records, newest first.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)

    try:
        pool.open()
        records = RecordStore(pool).list_records(args.org, status=args.status, limit=args.limit)

        if not records:
            print(f"\nNo records found for organization: {args.org}")
            return

        print(f"\n{'Created':<20} {'Status':<11} {'Risk':<7} {'Type':<6} {'Record ID':<38} {'File'}")
        print(f"{'-' * 100}")
        for record in records:
            risk = record.risk_flags.overall if record.risk_flags else "-"
            print(
                f"{format_timestamp(record.created_at):<20} {record.status:<11} {risk:<7} "
                f"{record.file_type:<6} {record.record_id:<38} {record.file_name}"
            )
        print(f"\nTotal: {len(records)} record(s)\n")

    except Exception as e:
        fail("listing records", e)

    finally:
        pool.close()


def stats_command(args):
    """
    Display dashboard statistics.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)

    try:
        pool.open()
        stats = RecordStore(pool).get_record_statistics(args.org)

        print(f"\n{'=' * 80}")
        print(f"RECORD STATISTICS{f' FOR ORGANIZATION: {args.org}' if args.org else ''}")
        print(f"{'=' * 80}\n")
        print(f"Total records:     {stats['total_records']}")
        print(f"Reports generated: {stats['completed']}")
        print(f"In progress:       {stats['in_progress']}")
        print(f"Failed:            {stats['failed']}")
        print(f"High risk:         {stats['high_risk']}")

        if stats["by_status"]:
            print("\nBy status:")
            for status, count in sorted(stats["by_status"].items()):
                print(f"  - {status}: {count}")
        print(f"\n{'=' * 80}\n")

    except Exception as e:
        fail("reading statistics", e)

    finally:
        pool.close()


def flag_status_command(args):
    """
    Mark an anomaly or compliance issue as Reviewed or Resolved.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)

    try:
        pool.open()
        service = build_service(args, pool)
        service.update_flag_status(args.record_id, args.flag_id, args.status, args.org)
        print(f"\nFlag {args.flag_id} marked as {args.status}")

    except Exception as e:
        fail("updating flag status", e)

    finally:
        pool.close()


def delete_command(args):
    """
    Delete a record and its stored file.

    Args:
        args: Command line arguments
    """
    pool = create_pool(args)

    try:
        pool.open()
        service = build_service(args, pool)
        service.delete_record(args.record_id)
        print(f"\nDeleted record {args.record_id}")

    except Exception as e:
        fail("deleting record", e)

    finally:
        pool.close()


def analyze_file_command(args):
    """
    Analyse a local file without touching the database.

    Args:
        args: Command line arguments
    """
    try:
        service = AnalysisService.from_config(
            load_engine_config(args.rules_config),
            records=None,
            blobs=LocalBlobStore(Path(args.file).parent),
        )
        result = service.analyze_file(args.file)

        if args.json:
            print(json.dumps(result.to_document(), indent=2))
        else:
            print_result(result)

    except Exception as e:
        fail("analyzing file", e)


def main(argv: list[str] | None = None):
    """Main entry point for admin CLI."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Admin CLI for financial record analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Global options
    parser.add_argument(
        "--db-host",
        help="Database host (default: $DB_HOST or localhost)"
    )
    parser.add_argument(
        "--db-port",
        type=int,
        help="Database port (default: $DB_PORT or 5432)"
    )
    parser.add_argument(
        "--db-name",
        help="Database name (default: $DB_NAME or finaudit)"
    )
    parser.add_argument(
        "--db-user",
        help="Database user (default: $DB_USER or finaudit)"
    )
    parser.add_argument(
        "--db-password",
        help="Database password (default: $DB_PASSWORD)"
    )
    parser.add_argument(
        "--rules-config",
        help=f"Rule configuration YAML (default: {DEFAULT_RULES_CONFIG} if present)"
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # upload command
    upload_parser = subparsers.add_parser(
        "upload",
        help="Store a file and register a pending record"
    )
    upload_parser.add_argument(
        "--file",
        required=True,
        help="Path to the PDF, Excel or CSV file"
    )
    upload_parser.add_argument(
        "--org",
        required=True,
        help="Owning organization ID"
    )
    upload_parser.add_argument(
        "--user",
        required=True,
        help="Uploading user ID"
    )
    upload_parser.add_argument(
        "--analyze",
        action="store_true",
        help="Run the analysis right after the upload"
    )

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Run the anomaly analysis on a pending record"
    )
    analyze_parser.add_argument(
        "--record-id",
        required=True,
        help="Record ID to analyze"
    )
    analyze_parser.add_argument(
        "--actor",
        default="system",
        help="Who requested the run (default: system)"
    )

    # reset command
    reset_parser = subparsers.add_parser(
        "reset",
        help="Send a completed or failed record back to pending"
    )
    reset_parser.add_argument(
        "--record-id",
        required=True,
        help="Record ID to reset"
    )
    reset_parser.add_argument(
        "--actor",
        required=True,
        help="Who requested the reset"
    )
    reset_parser.add_argument(
        "--reason",
        help="Reason for the reset (optional)"
    )

    # show command
    show_parser = subparsers.add_parser(
        "show",
        help="Display a record and its analysis results"
    )
    show_parser.add_argument(
        "--record-id",
        required=True,
        help="Record ID to display"
    )
    show_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the record as JSON"
    )

    # history command
    history_parser = subparsers.add_parser(
        "history",
        help="Display the status history of a record"
    )
    history_parser.add_argument(
        "--record-id",
        required=True,
        help="Record ID to trace"
    )
    history_parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of transitions to display (default: 100)"
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List an organization's records"
    )
    list_parser.add_argument(
        "--org",
        required=True,
        help="Organization ID"
    )
    list_parser.add_argument(
        "--status",
        choices=["pending", "processing", "analyzing", "completed", "failed"],
        help="Filter by status (optional)"
    )
    list_parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of records to display (default: 50)"
    )

    # stats command
    stats_parser = subparsers.add_parser(
        "stats",
        help="Display dashboard statistics"
    )
    stats_parser.add_argument(
        "--org",
        help="Filter by organization ID (optional)"
    )

    # flag-status command
    flag_parser = subparsers.add_parser(
        "flag-status",
        help="Mark an anomaly or compliance issue as reviewed or resolved"
    )
    flag_parser.add_argument(
        "--record-id",
        required=True,
        help="Record ID"
    )
    flag_parser.add_argument(
        "--flag-id",
        required=True,
        help="Flag ID, e.g. <record_id>-anomaly-0"
    )
    flag_parser.add_argument(
        "--status",
        required=True,
        choices=["Reviewed", "Resolved"],
        help="New review status"
    )
    flag_parser.add_argument(
        "--org",
        required=True,
        help="Organization ID of the requesting user"
    )

    # delete command
    delete_parser = subparsers.add_parser(
        "delete",
        help="Delete a record and its stored file"
    )
    delete_parser.add_argument(
        "--record-id",
        required=True,
        help="Record ID to delete"
    )

    # analyze-file command
    analyze_file_parser = subparsers.add_parser(
        "analyze-file",
        help="Analyse a local file without using the database"
    )
    analyze_file_parser.add_argument(
        "--file",
        required=True,
        help="Path to the PDF, Excel or CSV file"
    )
    analyze_file_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON"
    )

    # Parse arguments
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    handlers = {
        "upload": upload_command,
        "analyze": analyze_command,
        "reset": reset_command,
        "show": show_command,
        "history": history_command,
        "list": list_command,
        "stats": stats_command,
        "flag-status": flag_status_command,
        "delete": delete_command,
        "analyze-file": analyze_file_command,
    }

    # Route to command handler
    try:
        handlers[args.command](args)

    except ValueError as e:
        # Raised before a handler's own error reporting, e.g. missing DB_PASSWORD
        fail("reading configuration", e)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
