"""
HAR Replay CLI

Command-line interface for serving recorded HAR traffic.

Commands:
    serve       - Start the replay server
    keys        - List match keys and recorded response counts

Examples:
    # Serve a recording on port 8080
    harreplay serve session.har --port 8080

    # Rewrite absolute URLs in recorded bodies to point at the replay server
    harreplay serve session.har --replace https://api.example.com=http://127.0.0.1:8080

    # Inspect which requests a recording can answer
    harreplay keys session.har --policy policy.yaml
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

from .archive import ArchiveIndexer, IndexStats, ResponseStore, ServerDelegate
from .policies import default_delegate, load_policy_file
from .server import create_archive_server


def parse_replacements(pairs: Optional[List[str]]) -> Optional[Dict[str, str]]:
    """
    Parse OLD=NEW replacement arguments.

    Raises:
        ValueError: If a pair has no '=' or an empty OLD part
    """
    if not pairs:
        return None

    replacements = {}
    for pair in pairs:
        old, sep, new = pair.partition('=')
        if not sep or not old:
            raise ValueError(f"Invalid replacement '{pair}', expected OLD=NEW")
        replacements[old] = new
    return replacements


def build_delegate(args) -> ServerDelegate:
    """Build policies from --policy plus command-line overrides."""
    options = {
        'hosts': getattr(args, 'host_filter', None),
        'include_errors': True if getattr(args, 'include_errors', False) else None,
        'replace': parse_replacements(getattr(args, 'replace', None)),
    }

    if args.policy:
        return load_policy_file(args.policy, **options)
    return default_delegate(**{k: v for k, v in options.items() if v is not None})


def cmd_serve(args):
    """
    Start the replay server.

    Args:
        args: Parsed command-line arguments
    """
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s:     %(name)s - %(message)s")

    print(f"🎭 HAR Replay Server")
    for path in args.archives:
        print(f"   Archive: {path}")

    try:
        delegate = build_delegate(args)
        server = create_archive_server(
            args.archives,
            host=args.host,
            port=args.port,
            repeat_last=args.repeat_last,
            admin_enabled=not args.no_admin,
            log_level=args.log_level,
            delegate=delegate
        )
    except (OSError, ValueError) as e:
        print(f"❌ Failed to create replay server: {e}")
        sys.exit(1)

    stats = server.index_stats
    if stats.failed:
        print(f"⚠️  {stats.failed} malformed entries were skipped")

    # Start server (blocking)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\n\n👋 Replay server stopped")


def cmd_keys(args):
    """
    List match keys and how many responses each will serve.

    Args:
        args: Parsed command-line arguments
    """
    print(f"🔑 HAR Replay Keys")

    try:
        delegate = build_delegate(args)
        store = ResponseStore()
        indexer = ArchiveIndexer(store, delegate)
        stats = IndexStats()
        for path in args.archives:
            stats.merge(indexer.load_archive(path))
    except (OSError, ValueError) as e:
        print(f"❌ Failed to index archives: {e}")
        sys.exit(1)

    print(f"   Entries: {stats.total} (indexed {stats.indexed}, skipped {stats.skipped}, "
          f"dropped {stats.dropped}, failed {stats.failed})")
    print()

    for key, count in store.snapshot().items():
        print(f"  {count:>4}  {key}")

    if not len(store):
        print("⚠️  No servable entries found")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='harreplay',
        description="HAR Replay - serve recorded HTTP traffic from HAR archives",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve a recording
  %(prog)s serve session.har --port 8080

  # Serve two recordings, only for one host, including error responses
  %(prog)s serve login.har browse.har --host-filter api.example.com --include-errors

  # Show keys
  %(prog)s keys session.har
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    def add_policy_arguments(sub):
        sub.add_argument('archives', nargs='+', help='HAR archive files (indexed in order)')
        sub.add_argument('--policy', help='YAML policy file')
        sub.add_argument('--host-filter', nargs='+', help='Only serve entries recorded for these hosts')
        sub.add_argument('--include-errors', action='store_true', help='Also serve non-2xx entries')
        sub.add_argument('--replace', nargs='+', metavar='OLD=NEW', help='Replace text in recorded bodies')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start the replay server')
    add_policy_arguments(serve_parser)
    serve_parser.add_argument('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, default=8080, help='Port to bind (default: 8080)')
    serve_parser.add_argument('--repeat-last', action='store_true',
                              help='Keep serving the last recorded response once a key is exhausted')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')
    serve_parser.add_argument('--log-level', default='info', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')

    # --- KEYS command ---
    keys_parser = subparsers.add_parser('keys', help='List match keys and response counts')
    add_policy_arguments(keys_parser)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'keys':
        cmd_keys(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
