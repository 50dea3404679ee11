#!/usr/bin/env python3
"""
Consent logger command line.

    consent-logger serve [--with-scheduler]
    consent-logger scheduler
    consent-logger scan
    consent-logger proof CONSENT_ID [--format pdf|html] [--output PATH]
    consent-logger export [--search TEXT] [--output PATH]
    consent-logger cleanup
    consent-logger migrate
    consent-logger generate-key
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from core.config import init_config
from core.exceptions import ConsentLoggerError
from core.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _build_services(config):
    from services.container import build_services
    return build_services(config)


def cmd_serve(config, args) -> int:
    import uvicorn

    logger.info(f"Starting API server on {config.api.host}:{config.api.port}")
    multi_process = config.api.reload or config.api.workers > 1

    if multi_process:
        if args.with_scheduler:
            logger.warning("--with-scheduler ignored with reload or multiple workers; run 'scheduler' separately")
        uvicorn.run(
            "api.main:create_app",
            factory=True,
            host=config.api.host,
            port=config.api.port,
            reload=config.api.reload,
            workers=1 if config.api.reload else config.api.workers,
            log_level=config.monitoring.log_level.lower()
        )
        return 0

    from api.main import create_app
    app = create_app(config, run_scheduler=args.with_scheduler)
    uvicorn.run(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.monitoring.log_level.lower()
    )
    return 0


def cmd_scheduler(config, args) -> int:
    from services.scheduler import ConsentLoggerScheduler

    services = _build_services(config)
    scheduler = ConsentLoggerScheduler(
        services.scanner,
        services.scanner_settings,
        retention_service=services.retention,
        retention_config=config.retention,
    )
    try:
        scheduler.run_forever()
    finally:
        services.close()
    return 0


def cmd_scan(config, args) -> int:
    services = _build_services(config)
    try:
        outcome = services.scanner.run_scan(trigger="cli")
    finally:
        services.close()

    print(f"Observed {outcome.observed} cookie(s), {outcome.new_count} new")
    for name, cookie in sorted(outcome.new_cookies.items()):
        print(f"  {name:<30} {cookie.category.value:<14} {cookie.source.value}")
    if outcome.fetch_failed:
        print("Warning: the site could not be fetched; response cookies were not checked")
    return 0


def cmd_proof(config, args) -> int:
    services = _build_services(config)
    try:
        artifact = services.proofs.generate_proof(args.consent_id, args.format)
    finally:
        services.close()

    output = Path(args.output) if args.output else Path(artifact.filename)
    output.write_bytes(artifact.content)
    print(f"Wrote {artifact.format} proof to {output} (fingerprint {artifact.digest})")
    return 0


def cmd_export(config, args) -> int:
    services = _build_services(config)
    try:
        chunks = services.queries.export_csv(args.search)
        if args.output:
            with open(args.output, "w", encoding="utf-8", newline="") as f:
                for chunk in chunks:
                    f.write(chunk)
            print(f"Exported consent records to {args.output}")
        else:
            for chunk in chunks:
                sys.stdout.write(chunk)
    finally:
        services.close()
    return 0


def cmd_cleanup(config, args) -> int:
    services = _build_services(config)
    try:
        deleted = services.retention.purge_expired()
    finally:
        services.close()
    print(f"Deleted {deleted} consent record(s) older than {config.retention.consent_days} days")
    return 0


def cmd_migrate(config, args) -> int:
    from database.migrate import run_migrations

    if not config.database.url.startswith(("postgresql://", "postgres://")):
        print("Migrations only apply to a PostgreSQL DATABASE_URL")
        return 1
    applied = run_migrations(config.database.url)
    print(f"Applied {len(applied)} migration(s)")
    return 0


def cmd_generate_key(config, args) -> int:
    from api.auth.api_key import generate_api_key
    print(generate_api_key())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="consent-logger", description="GDPR cookie consent logger")
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--config", help="Path to a YAML config file")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument(
        "--with-scheduler",
        action="store_true",
        help="Also run the daily scan and retention jobs in the API process",
    )
    serve.set_defaults(func=cmd_serve)

    sub.add_parser("scheduler", help="Run the daily scan and retention jobs").set_defaults(func=cmd_scheduler)
    sub.add_parser("scan", help="Run one cookie scan now").set_defaults(func=cmd_scan)

    proof = sub.add_parser("proof", help="Write the proof document for a consent id")
    proof.add_argument("consent_id")
    proof.add_argument("--format", choices=["pdf", "html"], help="Defaults to PROOF_DEFAULT_FORMAT")
    proof.add_argument("--output", help="Output file (defaults to the download file name)")
    proof.set_defaults(func=cmd_proof)

    export = sub.add_parser("export", help="Export consent records as CSV")
    export.add_argument("--search", default="", help="Substring filter")
    export.add_argument("--output", help="Output file (defaults to stdout)")
    export.set_defaults(func=cmd_export)

    sub.add_parser("cleanup", help="Delete records past the retention period").set_defaults(func=cmd_cleanup)
    sub.add_parser("migrate", help="Apply pending database migrations").set_defaults(func=cmd_migrate)
    sub.add_parser("generate-key", help="Print a new random API key").set_defaults(func=cmd_generate_key)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "generate-key":
        return cmd_generate_key(None, args)

    try:
        config = init_config(
            env_file=args.env_file,
            yaml_config_path=Path(args.config) if args.config else None,
        )
    except Exception as e:
        print(f"Failed to initialize configuration: {e}", file=sys.stderr)
        print("\nPlease ensure the following environment variables are set:", file=sys.stderr)
        print("  - PROOF_SECRET_KEY", file=sys.stderr)
        print("  - ADMIN_API_KEY", file=sys.stderr)
        print("\nOr create a .env file with these values.", file=sys.stderr)
        return 1

    configure_logging(config.monitoring, config.environment)

    try:
        return args.func(config, args)
    except ConsentLoggerError as e:
        logger.error(f"{args.command} failed: {e.message}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
