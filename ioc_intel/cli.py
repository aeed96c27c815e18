"""Command line entry point.

    ioc-intel classify 8.8.8.8 example[.]com
    ioc-intel investigate 44d88612fea8a8f36de82e1278abb02f --open
    ioc-intel prefs show
    ioc-intel prefs set-flag ip "Copy IP" "Sanitise IP" --off
    ioc-intel prefs add-url hash "www.hybrid-analysis.com/search?query={hash}"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional, TextIO

from .actions import IOCIntelExecutor
from .config import AppConfig, load_app_config
from .errors import IOCIntelError
from .host import LoggingContextMenus, RecordingTabs, StreamClipboard, SystemBrowserTabs
from .logging_utils import close_logging, get_logger, init_logging_from_config
from .patterns import detect_ioc_type
from .preferences import PreferencesState
from .reconcile import dump_configuration

logger = get_logger()


def _add_toggle(p: argparse.ArgumentParser) -> None:
    g = p.add_mutually_exclusive_group(required=True)
    g.add_argument("--on", dest="value", action="store_true")
    g.add_argument("--off", dest="value", action="store_false")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ioc-intel", description="Classify and investigate IOCs.")
    parser.add_argument("--config", default=None, help="Path to config.yaml (default: <data_dir>/config.yaml)")
    parser.add_argument("--data-dir", default=None, help="Override the data directory")
    parser.add_argument("--log-level", default=None, help="Console log level (default from config: INFO)")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("classify", help="Print the IOC type of each value")
    p.add_argument("values", nargs="+")

    p = sub.add_parser("investigate", help="Copy and open lookups for one IOC")
    p.add_argument("value")
    p.add_argument("--open", action="store_true", help="Open lookup URLs in the system browser")

    prefs = sub.add_parser("prefs", help="Show or edit preferences")
    psub = prefs.add_subparsers(dest="prefs_command", required=True)

    psub.add_parser("show")
    psub.add_parser("reset")

    p = psub.add_parser("set-flag")
    p.add_argument("ioc_type")
    p.add_argument("path", nargs="+", help="Flag names from the top level down")
    _add_toggle(p)

    p = psub.add_parser("set-active")
    p.add_argument("ioc_type")
    _add_toggle(p)

    p = psub.add_parser("add-url")
    p.add_argument("ioc_type")
    p.add_argument("url")

    p = psub.add_parser("remove-url")
    p.add_argument("ioc_type")
    p.add_argument("index", type=int)

    return parser


def _classify(args: argparse.Namespace, cfg: AppConfig, out: TextIO) -> int:
    for value in args.values:
        ioc_type = detect_ioc_type(value, empty_as_none=cfg.treat_empty_as_none)
        out.write(f"{value}\t{ioc_type.value if ioc_type else 'none'}\n")
    return 0


async def _investigate(args: argparse.Namespace, cfg: AppConfig, out: TextIO) -> int:
    prefs = PreferencesState.from_config(cfg)
    await prefs.initialise()

    tabs = SystemBrowserTabs() if (args.open or cfg.open_in_browser) else RecordingTabs()
    executor = IOCIntelExecutor(
        prefs,
        tabs,
        StreamClipboard(out),
        empty_as_none=cfg.treat_empty_as_none,
    )
    if not await executor.investigate(args.value):
        out.write(f"Nothing to do for {args.value!r}\n")
        return 1
    for url, _index, _active in tabs.created:
        out.write(url + "\n")
    return 0


async def _prefs(args: argparse.Namespace, cfg: AppConfig, out: TextIO) -> int:
    prefs = PreferencesState.from_config(cfg, menus=LoggingContextMenus())
    if not await prefs.initialise():
        out.write("Unable to load preferences; see the log for details\n")
        return 2

    cmd = args.prefs_command
    if cmd == "show":
        out.write(json.dumps(dump_configuration(prefs.state), indent=2) + "\n")
        return 0

    prefs.enable_auto_save()
    try:
        if cmd == "reset":
            await prefs.reset_to_defaults()
        elif cmd == "set-flag":
            if not await prefs.set_flag(args.ioc_type, args.path, args.value):
                out.write(f"No flag {' > '.join(args.path)!r} for {args.ioc_type}\n")
                return 1
        elif cmd == "set-active":
            await prefs.set_active(args.ioc_type, args.value)
        elif cmd == "add-url":
            if not await prefs.add_url(args.ioc_type, args.url):
                out.write(f"Not a valid URL template: {args.url!r}\n")
                return 1
        elif cmd == "remove-url":
            removed = await prefs.remove_url(args.ioc_type, args.index)
            out.write(f"Removed {removed}\n")
    except (KeyError, IndexError) as e:
        out.write(f"{e}\n")
        return 1
    finally:
        await prefs.flush()

    if prefs.state_manager.last_save_error is not None:
        out.write("Saving preferences failed; see the log for details\n")
        return 2
    return 0


async def _dispatch(args: argparse.Namespace, cfg: AppConfig, out: TextIO) -> int:
    if args.command == "classify":
        return _classify(args, cfg, out)
    if args.command == "investigate":
        return await _investigate(args, cfg, out)
    return await _prefs(args, cfg, out)


def main(argv: Optional[List[str]] = None, out: Optional[TextIO] = None) -> int:
    args = build_parser().parse_args(argv)
    out = out or sys.stdout

    try:
        cfg = load_app_config(args.config)
        if args.data_dir:
            cfg.data_dir = args.data_dir
        if args.log_level:
            cfg.log_level = args.log_level
        init_logging_from_config(cfg)
    except IOCIntelError as e:
        sys.stderr.write(f"{e}\n")
        return 2

    try:
        logger.debug("Command %s (data_dir=%s)", args.command, cfg.data_dir)
        return asyncio.run(_dispatch(args, cfg, out))
    finally:
        close_logging()


if __name__ == "__main__":
    raise SystemExit(main())
