"""CLI entry point for Entrysim."""
import argparse
import logging
import os
import sys
from datetime import datetime

from entrysim import __version__


def _parse_since(value: str) -> datetime:
    """Parse a relative time string like '1h', '30m', '2d' into a UTC datetime."""
    from entrysim.utils import parse_since
    try:
        return parse_since(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid --since value '{value}'. Use e.g. 30m, 2h, 1d, 1w"
        )


def _parse_user_ids(value: str):
    try:
        return [int(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid --user value '{value}'. Use comma-separated ids, e.g. 1,3")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="entrysim",
        description="🔗 Entrysim — find near-duplicate entries in each user's feeds",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", type=str, default="entrysim.db",
                        help="SQLite database path (default: entrysim.db)")
    parser.add_argument("-t", "--threshold", type=float, default=0.5,
                        help="Minimum cosine similarity for an edge (0.0-1.0, default: 0.5)")
    parser.add_argument("-w", "--workers", type=int, default=5,
                        help="Parallel comparison workers (default: 5)")
    parser.add_argument("--buffer", type=int, default=200,
                        help="Task/result queue size (default: 200)")
    parser.add_argument("--tf", choices=["raw", "normalized"], default="raw",
                        help="Term frequency weighting (default: raw)")
    parser.add_argument("--per-feed", action="store_true", dest="per_feed",
                        help="Compare entries within each feed instead of across a user's feeds")
    parser.add_argument("--user", type=str, default=None,
                        help="Only process these user ids (comma-separated)")
    parser.add_argument("--since", type=str, default=None,
                        help="Only consider entries newer than this (e.g. 12h, 1d, 1w, 2026-02-14)")
    parser.add_argument("--timeout", type=float, default=0.0,
                        help="Per-corpus time limit in seconds (default: 0 = none)")
    parser.add_argument("--task-timeout", type=float, default=0.0, dest="task_timeout",
                        help="Per-entry scan time limit in seconds (default: 0 = none)")
    parser.add_argument("--stopwords", type=str, default=None, metavar="FILE",
                        help="Extra stopwords file, one word per line")
    parser.add_argument("--dry-run", action="store_true", dest="dry_run",
                        help="Compute candidate edges without writing them")
    parser.add_argument("-f", "--format", choices=["console", "json"], default="console",
                        help="Report format (default: console)")
    parser.add_argument("-o", "--output", type=str, default=None,
                        help="Write the report to a file instead of stdout")
    parser.add_argument("--import", type=str, default=None, dest="import_file", metavar="FILE",
                        help="Import users/feeds/entries from a YAML or JSON file and exit")
    parser.add_argument("--similar", type=int, default=None, metavar="ENTRY_ID",
                        help="Show stored similar entries for one entry and exit")
    parser.add_argument("--init-config", action="store_true", dest="init_config",
                        help="Write a starter ~/.entrysim.yaml and exit")
    parser.add_argument("--no-config", action="store_true",
                        help="Ignore config files (~/.entrysim.yaml, ./entrysim.yaml) and ENTRYSIM_* vars")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress status messages on stderr")
    return parser


def _formatter(name: str):
    from entrysim.formatters import ConsoleFormatter, JSONFormatter
    if name == "json":
        return JSONFormatter()
    return ConsoleFormatter()


def _emit(text: str, output: str = None, quiet: bool = False) -> None:
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        if not quiet:
            print(f"✅ Wrote report to {output}", file=sys.stderr)
    else:
        print(text)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply config file defaults (CLI args always win)
    if not args.no_config:
        from entrysim.config import apply_config_defaults
        args = apply_config_defaults(parser, args)

    if args.init_config:
        from entrysim.config import generate_starter_config
        path = generate_starter_config()
        print(f"📝 Wrote starter config to {path}")
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if not 0.0 <= args.threshold <= 1.0:
        parser.error(f"--threshold must be within 0.0-1.0, got {args.threshold}")
    if args.workers < 1 or args.buffer < 1:
        parser.error("--workers and --buffer must be >= 1")
    if args.timeout < 0 or args.task_timeout < 0:
        parser.error("--timeout and --task-timeout must be >= 0")

    try:
        since = _parse_since(args.since) if args.since else None
        user_ids = _parse_user_ids(args.user) if args.user else None
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    from entrysim.store import SQLiteStore, StoreError
    try:
        store = SQLiteStore(os.path.expanduser(args.db))
        store.init_schema()
    except StoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    with store:
        if args.import_file:
            from entrysim.importer import import_corpus
            try:
                stats = import_corpus(store, args.import_file)
            except (OSError, ValueError, StoreError) as e:
                print(f"Error importing {args.import_file}: {e}", file=sys.stderr)
                sys.exit(1)
            print(f"📥 Imported {stats.users} user(s), {stats.feeds} feed(s), {stats.entries} entries")
            return

        if args.similar is not None:
            edges = store.list_similar_edges(args.similar)
            _emit(_formatter(args.format).format_edges(args.similar, edges), args.output, args.quiet)
            return

        from entrysim.engine import SimilarityEngine
        from entrysim.runner import run_similarity_pass
        from entrysim.stopwords import DEFAULT_STOPWORDS, load_stopwords_file
        from entrysim.vectorizer import TfidfVectorizer, VectorizerConfig

        stopwords = DEFAULT_STOPWORDS
        if args.stopwords:
            try:
                stopwords = load_stopwords_file(os.path.expanduser(args.stopwords))
            except OSError as e:
                print(f"Error loading stopwords: {e}", file=sys.stderr)
                sys.exit(1)

        engine = SimilarityEngine(
            threshold=args.threshold,
            max_workers=args.workers,
            buffer=args.buffer,
            vectorizer=TfidfVectorizer(VectorizerConfig(stopwords=stopwords, tf_mode=args.tf)),
            timeout=args.timeout or None,
            task_timeout=args.task_timeout or None,
        )
        if not args.quiet:
            print("🔗 Calculating similarity...", file=sys.stderr)

        report = run_similarity_pass(
            store,
            engine=engine,
            user_ids=user_ids,
            per_feed=args.per_feed,
            since=since,
            dry_run=args.dry_run,
        )

    _emit(_formatter(args.format).format(report), args.output, args.quiet)

    if report.error is not None:
        if not args.quiet:
            print(f"❌ {len(report.failed_users)} user(s) failed: {report.error}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
