"""
cli.py
Command line front end: parse options, build the configuration, open the pool,
run the dispatcher and report the total.
"""
import argparse
import asyncio
import functools
import sys
import time
from typing import List, Optional

import asyncpg

from .database import create_pool_from_config
from .exceptions import ConfigurationError, SourceError
from .loading.dispatcher import SourceDispatcher, discover_sources
from .loading.submitter import WriteSubmitter
from .core.models import RunSummary
from .setup.config import AbortScope, AppConfig, BoolStyle, ConfigLoader
from .setup.logging import configure_logging, get_logger

EXAMPLES = """
Examples:
  delimload -f /path/to/file.csv --schema "test.test3(a int, b int, c int)"
  delimload -f /path/to/directory --host 1.2.3.4 --schema "test.test3(a int, b int, c int)" --delim "\\t" --num-threads 10
  delimload -f stdin --dsn postgresql://user:pw@localhost/db --schema "test.test3(a int, b int, c int)"
"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="delimload",
        description="Bulk-load delimited text files into PostgreSQL",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument('-f', '--file', required=True, help='File, directory, or "stdin"')
    p.add_argument('--schema', help='Table declaration, e.g. "ks.table(a int, b text)"')

    db = p.add_argument_group('connection')
    db.add_argument('--dsn', help='PostgreSQL connection string (overrides host/port/user/password/database)')
    db.add_argument('--host', help='Database host [localhost]')
    db.add_argument('--port', type=int, help='Database port [5432]')
    db.add_argument('--user', help='Database username')
    db.add_argument('--password', '--pw', dest='password', help='Password for user')
    db.add_argument('--database', help='Database name [postgres]')

    fmt = p.add_argument_group('format')
    fmt.add_argument('--delim', help='Delimiter to use [,]')
    fmt.add_argument('--delim-in-quotes', action='store_true', default=None,
                     help='Delimiter can be inside quoted fields')
    fmt.add_argument('--date-format', help='Date format (strptime) [ISO-8601]')
    fmt.add_argument('--null-string', help='String that signifies NULL [none]')
    fmt.add_argument('--decimal-delim', choices=['.', ','], help='Decimal delimiter [.]')
    fmt.add_argument('--bool-style', type=str.upper, choices=[s.value for s in BoolStyle],
                     help='Style for booleans [TRUE_FALSE]')

    run = p.add_argument_group('loading')
    run.add_argument('--skip-rows', type=int, help='Number of rows to skip [0]')
    run.add_argument('--max-rows', type=int, help='Maximum number of rows to read (-1 means all) [-1]')
    run.add_argument('--max-errors', type=int, help='Maximum errors to endure (-1 means unbounded) [10]')
    run.add_argument('--bad-dir', help='Directory for where to place badly parsed rows [none]')
    run.add_argument('--num-futures', type=int, help='Number of writes to keep in flight [1000]')
    run.add_argument('--num-threads', type=int, help='Number of files to load concurrently [5]')
    run.add_argument('--write-timeout', type=float, help='Seconds to wait for outstanding writes [120]')
    run.add_argument('--abort-scope', choices=[s.value for s in AbortScope],
                     help='What an exhausted error budget stops: the source or the whole run [source]')
    run.add_argument('--ignore-write-failures', action='store_true',
                     help='Do not count failed writes against the error budget')
    run.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return p


def load_app_config(args: argparse.Namespace, loader: Optional[ConfigLoader] = None) -> AppConfig:
    """Merge CLI options over environment settings. Raises ConfigurationError."""
    loader = loader or ConfigLoader()
    return loader.load_configuration(
        ingestion_overrides={
            "schema_text": args.schema,
            "delimiter": args.delim,
            "delimiter_in_quotes": args.delim_in_quotes,
            "null_string": args.null_string,
            "date_format": args.date_format,
            "bool_style": args.bool_style,
            "decimal_delimiter": args.decimal_delim,
            "skip_rows": args.skip_rows,
            "max_rows": args.max_rows,
            "max_errors": args.max_errors,
            "bad_dir": args.bad_dir,
            "num_futures": args.num_futures,
            "num_threads": args.num_threads,
            "write_timeout": args.write_timeout,
            "abort_scope": args.abort_scope,
            "count_write_failures": False if args.ignore_write_failures else None,
        },
        database_overrides={
            "dsn": args.dsn,
            "host": args.host,
            "port": args.port,
            "user": args.user,
            "password": args.password,
            "database_name": args.database,
        },
    )


async def run(target: str, config: AppConfig) -> RunSummary:
    ingestion = config.ingestion
    # schema and source errors surface before connecting
    dispatcher = SourceDispatcher(ingestion)
    sources = discover_sources(target)

    pool = await create_pool_from_config(config.database, ingestion.num_threads)
    try:
        return await dispatcher.run_sources(sources, functools.partial(WriteSubmitter, pool))
    finally:
        await pool.close()


def print_summary(summary: RunSummary, elapsed: float) -> None:
    print("\n=== Processing Complete ===", file=sys.stderr)
    for result in summary.results:
        line = (f"{result.source_name}: {result.status.value}, {result.lines_read} lines, "
                f"{result.rows_inserted} inserted, {result.parse_errors} parse errors, "
                f"{result.write_failures} write failures")
        if result.error:
            line += f" ({result.error})"
        print(line, file=sys.stderr)
    print(f"Total time: {elapsed:.1f}s", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_app_config(args)
    except ConfigurationError as e:
        print(f"Bad arguments: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 2

    configure_logging(config.environment.value, config.log_dir, args.verbose)
    logger = get_logger(__name__)

    start = time.time()
    try:
        summary = asyncio.run(run(args.file, config))
    except (ConfigurationError, SourceError) as e:
        logger.error(str(e))
        return 1
    except (OSError, asyncpg.PostgresError) as e:
        logger.error(f"Cannot connect to the database: {e}")
        return 1

    print_summary(summary, time.time() - start)
    return 0 if summary.ok else 1


if __name__ == '__main__':
    sys.exit(main())
