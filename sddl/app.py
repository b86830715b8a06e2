import argparse
import json
import threading
from pathlib import Path

from . import __version__
from .config import ConfigError, Settings
from .logger import get_logger
from .orchestrator import Resolver
from .outcome import Success
from .platform import StaticClipboard, StaticReferrerProvider
from .query import parse
from .referrer import AttributionCache
from .storage import LocalState, open_store
from .validator import is_valid_identifier


def _settings(args: argparse.Namespace) -> Settings:
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    return settings.with_overrides(
        base_url=getattr(args, "base_url", None),
        timeout=getattr(args, "timeout_s", None),
        state_path=Path(args.state) if getattr(args, "state", None) else None,
        strict_json=True if getattr(args, "strict_json", False) else None,
        app_identifier=getattr(args, "app_id", None),
    )


def cmd_resolve(args: argparse.Namespace) -> None:
    settings = _settings(args)
    logger = get_logger(
        level="DEBUG" if args.verbose else settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.log_dir is not None,
        enable_console=args.verbose,
    )

    referrer = None
    if args.referrer:
        referrer = StaticReferrerProvider(args.referrer, args.click_ts, args.install_ts)

    done = threading.Event()
    result = {}

    def on_outcome(outcome):
        result["outcome"] = outcome
        done.set()

    resolver = Resolver(
        settings,
        clipboard=StaticClipboard(args.clipboard or ()),
        referrer_provider=referrer,
        logger=logger,
    )
    try:
        accepted = resolver.submit(args.url, on_outcome, read_clipboard=not args.no_clipboard)
        if not accepted:
            print("Skipped: organic open already handled for this install.")
            return
        if not done.wait(args.wait):
            raise SystemExit(f"Timed out after {args.wait}s waiting for resolution")
    finally:
        resolver.close()
        if args.verbose:
            logger.log_metrics_summary()

    outcome = result["outcome"]
    if isinstance(outcome, Success):
        print(json.dumps(outcome.data, indent=2, ensure_ascii=False))
        return
    print(f"Error: {outcome.message}")
    raise SystemExit(2)


def cmd_validate(args: argparse.Namespace) -> None:
    if is_valid_identifier(args.identifier):
        print("Valid")
        return
    print("Invalid: expected 4-64 characters of A-Z, a-z, 0-9, '_' or '-'")
    raise SystemExit(2)


def cmd_parse_referrer(args: argparse.Namespace) -> None:
    print(json.dumps(parse(args.raw), indent=2, ensure_ascii=False))


def cmd_state(args: argparse.Namespace) -> None:
    settings = _settings(args)
    state = LocalState(open_store(settings.state_path))
    if args.mark_sent:
        state.mark_referrer_sent()

    record = AttributionCache(state, logger=get_logger(enable_console=False)).read_cached()
    print(f"State: {settings.state_path}")
    print(f"  Cold start handled: {state.is_cold_start_handled()}")
    print(f"  Referrer reported: {state.is_referrer_sent()}")
    if record is None:
        print("  Install referrer: (none)")
        return
    print(f"  Install referrer: {record.raw}")
    print(f"  Click timestamp: {record.click_ts_sec}")
    print(f"  Install begin timestamp: {record.install_begin_ts_sec}")
    for key, value in record.params.items():
        print(f"    {key} = {value}")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="sddl", description="Deferred deep link resolver")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    res = subparsers.add_parser("resolve", help="Resolve a deferred deep link and print the details payload")
    res.add_argument("--url", help="Inbound link URI; its first path segment is the preferred identifier")
    res.add_argument("--clipboard", action="append", help="Clipboard text seen by successive polls (repeatable)")
    res.add_argument("--no-clipboard", action="store_true", help="Do not fall back to the clipboard")
    res.add_argument("--referrer", help="Raw install referrer string, e.g. \"utm_source=google&utm_medium=cpc\"")
    res.add_argument("--click-ts", type=int, default=0, help="Referrer click timestamp (seconds)")
    res.add_argument("--install-ts", type=int, default=0, help="Install begin timestamp (seconds)")
    res.add_argument("--state", help="State file (.json, or .db for SQLite). Default: SDDL_STATE_PATH")
    res.add_argument("--base-url", help="Resolution service base URL (or set SDDL_BASE_URL)")
    res.add_argument("--timeout-s", type=float, help="Connect/read timeout in seconds (or set SDDL_TIMEOUT)")
    res.add_argument("--app-id", help="Application identifier sent as X-App-Identifier")
    res.add_argument("--strict-json", action="store_true", help="Fail on a non-JSON response body")
    res.add_argument("--wait", type=float, default=30.0, help="Seconds to wait for the result (default 30)")
    res.add_argument("--verbose", action="store_true", help="Log progress and metrics to stdout")
    res.set_defaults(func=cmd_resolve)

    val = subparsers.add_parser("validate", help="Check whether a string is a well-formed identifier")
    val.add_argument("identifier", help="Candidate identifier")
    val.set_defaults(func=cmd_validate)

    prs = subparsers.add_parser("parse-referrer", help="Decode an install referrer query string")
    prs.add_argument("raw", help="Raw referrer string")
    prs.set_defaults(func=cmd_parse_referrer)

    st = subparsers.add_parser("state", help="Show persisted resolver state")
    st.add_argument("--state", help="State file (.json, or .db for SQLite). Default: SDDL_STATE_PATH")
    st.add_argument("--mark-sent", action="store_true", help="Mark the install referrer as reported")
    st.set_defaults(func=cmd_state)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
