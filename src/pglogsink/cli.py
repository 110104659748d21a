"""CLI entrypoint for the Postgres log sink."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import fire  # type: ignore[import-untyped]

from pglogsink.config import ConfigError, build_sink, load_config
from pglogsink.db.table import build_create_table_sql
from pglogsink.errors import SinkError
from pglogsink.logging_setup import configure_logging
from pglogsink.sink import PostgresSink


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for CLI."""
    configure_logging(log_level=level)


async def _create_table(sink: PostgresSink) -> None:
    try:
        await sink.create_table()
    finally:
        await sink.dispose()


class PgLogSink:
    """pglogsink CLI - structured logs into PostgreSQL."""

    def show_ddl(self, config: str) -> None:
        """Print the CREATE TABLE statement for the configured columns.

        Args:
            config: Path to YAML config file
        """
        try:
            sink = build_sink(load_config(Path(config)))
            print(build_create_table_sql(sink.identity, sink.columns))
        except (ConfigError, SinkError, ValueError) as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

    def create_table(self, config: str, log_level: str = "INFO") -> None:
        """Create the configured log table if it does not exist.

        Args:
            config: Path to YAML config file
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        setup_logging(log_level)

        try:
            sink = build_sink(load_config(Path(config)))
        except (ConfigError, SinkError, ValueError) as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)

        try:
            asyncio.run(_create_table(sink))
        except SinkError as e:
            print(f"✗ Table creation failed: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"✓ Table ready: {sink.identity}")

    def validate(self, config: str) -> None:
        """Validate config file and column specs without connecting.

        Args:
            config: Path to YAML config file
        """
        config_path = Path(config)

        try:
            cfg = load_config(config_path)
            sink = build_sink(cfg)

            print(f"✓ Config valid: {config_path}")
            print(f"  Table: {sink.identity}")
            print(f"  Strategy: {'COPY' if sink.use_copy else 'INSERT'}")
            print(f"  Auto-create table: {cfg.options.need_auto_create_table}")
            for name, writer in sink.columns.items():
                print(f"  Column {name}: {writer!r}")
        except (ConfigError, SinkError, ValueError) as e:
            print(f"✗ Config invalid: {e}", file=sys.stderr)
            sys.exit(1)


def main() -> None:
    """Main CLI entrypoint."""
    # Strip --help/-h when it's the only arg so Fire shows its commands list
    if len(sys.argv) == 2 and sys.argv[1] in ("--help", "-h"):
        sys.argv.pop()
    fire.Fire(PgLogSink)


if __name__ == "__main__":
    main()
