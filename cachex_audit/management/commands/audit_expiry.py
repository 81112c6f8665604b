"""``manage.py audit_expiry``: report keys that have no expiration set."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from django.core.management.base import BaseCommand, CommandError
from django.utils.module_loading import import_string

from cachex_audit.batch import BatchProcessor
from cachex_audit.conf import (
    CONNECTION_ENV_VARS,
    PAGE_SIZE_ENV_VARS,
    PATTERN_ENV_VARS,
    resolve_config,
)
from cachex_audit.exceptions import ArgumentError, ConnectionFailure, OutputError, ServerFailure
from cachex_audit.output import OutputSink
from cachex_audit.scanner import ScanOrchestrator

if TYPE_CHECKING:
    from cachex_audit.conf import AuditConfig

logger = logging.getLogger("cachex_audit")


class Command(BaseCommand):
    help = "Scan a Redis/Valkey deployment and report keys without an expiration (TTL -1). Read-only."

    requires_system_checks: list[str] = []

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument(
            "connection",
            nargs="?",
            help=f"Server URL(s) or host:port,password=... connection string (default: ${CONNECTION_ENV_VARS[0]}).",
        )
        parser.add_argument(
            "-o",
            "--output",
            help="Write key lines to this file (rotated at 2 MiB) instead of stdout.",
        )
        parser.add_argument(
            "--values",
            action="store_true",
            dest="include_values",
            help="Include a bounded preview of each value.",
        )
        parser.add_argument(
            "--cache",
            dest="cache_alias",
            help="Audit the servers of this alias from settings.CACHES instead of a connection string.",
        )
        parser.add_argument(
            "--cluster",
            action="store_true",
            help="Treat the target as a cluster and scan every primary.",
        )
        parser.add_argument(
            "--pattern",
            help=f"Only scan keys matching this glob (default: ${PATTERN_ENV_VARS[0]} or '*').",
        )
        parser.add_argument(
            "--page-size",
            help=f"SCAN COUNT hint and batch size (default: ${PAGE_SIZE_ENV_VARS[0]} or 2048).",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        try:
            config = resolve_config(
                connection=options["connection"],
                cache_alias=options["cache_alias"],
                output=options["output"],
                include_values=options["include_values"],
                page_size=options["page_size"],
                pattern=options["pattern"],
                cluster=options["cluster"],
            )
        except ArgumentError as e:
            raise CommandError(str(e)) from e

        handler = None
        previous_level = logger.level
        if options["verbosity"] >= 2:
            handler = logging.StreamHandler(self.stderr)
            handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
            logger.addHandler(handler)
            logger.setLevel(logging.DEBUG)

        try:
            self._audit(config)
        finally:
            if handler is not None:
                logger.removeHandler(handler)
                logger.setLevel(previous_level)

    def _audit(self, config: AuditConfig) -> None:
        started = time.monotonic()
        try:
            client = import_string(config.target.client_class)(list(config.target.servers), **config.target.options)
        except (ConnectionFailure, ImportError) as e:
            raise CommandError(str(e)) from e

        try:
            with OutputSink(config.output_path, console=self.stdout) as sink:
                nodes = client.get_nodes()
                orchestrator = ScanOrchestrator(BatchProcessor(include_values=config.include_values), sink)
                orchestrator.run(nodes, pattern=config.pattern, page_size=config.page_size)
        except ServerFailure as e:
            raise CommandError(f"Cache server error: {e}") from e
        except ConnectionFailure as e:
            raise CommandError(f"Failed to connect to cache: {e}") from e
        except OutputError as e:
            raise CommandError(f"Failed to write output: {e}") from e
        finally:
            client.close()

        if sink.paths:
            logger.info(
                "Wrote %d partition(s) in %.1fs: %s",
                len(sink.paths),
                time.monotonic() - started,
                ", ".join(str(path) for path in sink.paths),
            )
