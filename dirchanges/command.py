# Copyright Red Hat
#
# dirchanges/command.py - Directory change tracker command interface
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``dirchanges.command`` module provides both the dirchanges command
line interface infrastructure, and a simple procedural interface to the
``dirchanges`` library modules.

The command line tool keeps a ``Watcher`` in a state file between runs:
paths are registered with ``add`` and later runs of ``diff`` report the
changes made since the stored snapshot was taken.
"""
from argparse import ArgumentParser
from typing import Iterable, List, Optional
from os.path import basename
from json import dumps
import logging
import sys

from dirchanges import (
    DIRCHANGES_DEBUG_WATCHER,
    DIRCHANGES_DEBUG_DIFF,
    DIRCHANGES_DEBUG_STATE,
    DIRCHANGES_DEBUG_COMMAND,
    DIRCHANGES_DEBUG_ALL,
    DIRCHANGES_SUBSYSTEM_COMMAND,
    DirchangesNotFoundError,
    DirchangesWatchedPathDeletedError,
    SubsystemFilter,
    set_debug_mask,
    __version__,
)
from .watch import DiffResults, Op, Watcher, WatchOptions
from .watch.state import delete_state, load_state, save_state

DIFF_FORMATS = ["paths", "short", "full", "json", "summary"]

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DIRCHANGES_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None


def _with_options(watcher: Watcher, options: WatchOptions) -> Watcher:
    """
    Return a ``Watcher`` configured with ``options`` that carries over the
    registry, ignore set and stored snapshot of ``watcher``.
    """
    if options == watcher.options:
        return watcher
    _log_debug_command("Applying new watch options:\n%s", options)
    new_watcher = Watcher(options)
    new_watcher.restore(
        watcher.roots(),
        watcher.ignored() | set(new_watcher.ignored()),
        watcher.watched_files(),
    )
    return new_watcher


def add_paths(watcher: Watcher, paths: Iterable[str], recursive: bool = False):
    """
    Add ``paths`` to the watch list of ``watcher``.
    """
    for path in paths:
        if recursive:
            watcher.add_recursive(path)
        else:
            watcher.add(path)


def remove_paths(watcher: Watcher, paths: Iterable[str], recursive: bool = False):
    """
    Remove ``paths`` from the watch list of ``watcher``.
    """
    for path in paths:
        if recursive:
            watcher.remove_recursive(path)
        else:
            watcher.remove(path)


def show_watched(watcher: Watcher, roots: bool = False, json: bool = False):
    """
    Show the registered roots or the stored snapshot of ``watcher``.
    """
    if roots:
        registered = watcher.roots()
        if json:
            print(dumps(registered, indent=4))
            return
        for path in sorted(registered):
            print(f"{path}{' (recursive)' if registered[path] else ''}")
        return

    files = watcher.watched_files()
    if json:
        print(dumps({path: files[path].to_dict() for path in sorted(files)}, indent=4))
        return

    first = True
    for path in sorted(files):
        wspace = "" if first else "\n"
        print(f"{wspace}Path: {path}\n{files[path]}")
        first = False


def diff_watched(
    watcher: Watcher, ops: Optional[Iterable[str]] = None, update: bool = False
) -> DiffResults:
    """
    Compute the changes to the paths watched by ``watcher``.

    :param watcher: The watcher to diff.
    :param ops: Optional operation names overriding the configured filter.
    :param update: Replace the stored snapshot after computing the diff.
    :returns: The detected events.
    """
    if ops:
        watcher.filter_ops(*ops)
    return watcher.diff(update=update)


def print_events(
    results: DiffResults,
    output_formats: List[str],
    pretty: bool = False,
    color: str = "auto",
):
    """
    Print ``results`` in each of ``output_formats``.
    """
    spacer = ""
    for output_format in output_formats:
        print(spacer, end="")
        if output_format == "paths":
            print("\n".join(results.paths()))
        elif output_format == "short":
            print(results.short(color=color))
        elif output_format == "full":
            print(results.full())
        elif output_format == "json":
            print(results.json(pretty=pretty))
        elif output_format == "summary":
            print(results.summary(color=color))
        spacer = "\n"


def _load_watcher(cmd_args, create: bool = False) -> Watcher:
    """
    Load the saved watcher state named by ``cmd_args``, or start a new
    ``Watcher`` if ``create`` is ``True`` and there is no saved state.
    """
    try:
        return load_state(cmd_args.state)
    except DirchangesNotFoundError:
        if not create:
            raise
    _log_debug_command("No saved state: starting a new watcher")
    return Watcher()


def _add_cmd(cmd_args):
    """
    Add paths command handler.

    Register paths with the saved watcher, creating the state if needed.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    watcher = _load_watcher(cmd_args, create=True)
    options = WatchOptions.from_cmd_args(cmd_args, base=watcher.options)
    watcher = _with_options(watcher, options)
    add_paths(watcher, cmd_args.paths, recursive=cmd_args.recursive)
    save_state(watcher, cmd_args.state)
    return 0


def _remove_cmd(cmd_args):
    """
    Remove paths command handler.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    watcher = _load_watcher(cmd_args)
    remove_paths(watcher, cmd_args.paths, recursive=cmd_args.recursive)
    save_state(watcher, cmd_args.state)
    return 0


def _ignore_cmd(cmd_args):
    """
    Ignore paths command handler.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    watcher = _load_watcher(cmd_args, create=True)
    watcher.ignore(*cmd_args.paths)
    save_state(watcher, cmd_args.state)
    return 0


def _unignore_cmd(cmd_args):
    """
    Unignore paths command handler.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    watcher = _load_watcher(cmd_args)
    watcher.unignore(*cmd_args.paths)
    save_state(watcher, cmd_args.state)
    return 0


def _list_cmd(cmd_args):
    """
    List watched paths command handler.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    watcher = _load_watcher(cmd_args)
    show_watched(watcher, roots=cmd_args.roots, json=cmd_args.json)
    return 0


def _diff_cmd(cmd_args):
    """
    Diff watched paths command handler.

    Compare the stored snapshot with the current state of the watched
    paths and print the detected events.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    output_formats = cmd_args.output_format or ["short"]
    ops = [op for op in (cmd_args.ops or "").split(",") if op]

    if cmd_args.pretty and "json" not in output_formats:
        _log_error("Option --pretty only supported with --output-format=json")
        return 1

    # Validate operation names before touching the state.
    for op in ops:
        Op.from_str(op)

    watcher = _load_watcher(cmd_args)
    try:
        results = diff_watched(watcher, ops=ops, update=cmd_args.update)
    except DirchangesWatchedPathDeletedError:
        # Persist the deregistration of the deleted roots.
        save_state(watcher, cmd_args.state)
        raise

    print_events(
        results,
        output_formats,
        pretty=cmd_args.pretty,
        color=cmd_args.color,
    )

    if cmd_args.update:
        save_state(watcher, cmd_args.state)
    return 0


def _reset_cmd(cmd_args):
    """
    Reset command handler: delete the saved state.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    state_path = delete_state(cmd_args.state)
    print(f"Deleted {state_path}")
    return 0


def setup_logging(cmd_args):
    """
    Set up dirchanges logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    dirchanges_log = logging.getLogger("dirchanges")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    dirchanges_log.setLevel(level)
    if dirchanges_log.hasHandlers():
        dirchanges_log.handlers.clear()

    # Subsystem log filtering
    _dirchanges_subsystem_filter = SubsystemFilter("dirchanges")

    # Main console handler
    _CONSOLE_HANDLER = logging.StreamHandler()

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_dirchanges_subsystem_filter)

    dirchanges_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down dirchanges logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "watcher": DIRCHANGES_DEBUG_WATCHER,
        "diff": DIRCHANGES_DEBUG_DIFF,
        "state": DIRCHANGES_DEBUG_STATE,
        "command": DIRCHANGES_DEBUG_COMMAND,
        "all": DIRCHANGES_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_paths_arg(parser, help_text):
    parser.add_argument(
        "paths",
        metavar="PATH",
        type=str,
        nargs="+",
        help=help_text,
    )


def _add_recursive_arg(parser, help_text):
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help=help_text,
    )


def _add_watch_option_args(parser):
    """
    Add arguments that set ``WatchOptions`` values. Unset arguments default
    to ``None`` so that saved options are kept.
    """
    parser.add_argument(
        "-H",
        "--ignore-hidden",
        action="store_true",
        default=None,
        help="Ignore files and directories whose name starts with a dot",
    )
    parser.add_argument(
        "-f",
        "--filter",
        type=str,
        action="append",
        metavar="REGEX",
        dest="filter_patterns",
        default=None,
        help="Only watch entries whose name matches REGEX",
    )
    parser.add_argument(
        "--full-path",
        action="store_true",
        dest="filter_full_path",
        default=None,
        help="Match --filter patterns against the full path",
    )
    parser.add_argument(
        "-x",
        "--exclude-pattern",
        type=str,
        action="append",
        metavar="PATTERN",
        dest="exclude_patterns",
        default=None,
        help="Paths to exclude (glob notation)",
    )
    parser.add_argument(
        "-O",
        "--ops",
        type=str,
        metavar="OPS",
        default=None,
        help=f"Default event types to report ({','.join(op.value for op in Op)})",
    )


def _add_diff_args(parser):
    parser.add_argument(
        "-O",
        "--ops",
        type=str,
        metavar="OPS",
        default=None,
        help="Report only these event types (comma separated)",
    )
    parser.add_argument(
        "-u",
        "--update",
        action="store_true",
        help="Save the current state as the new stored snapshot",
    )
    parser.add_argument(
        "-o",
        "--output-format",
        type=str,
        action="append",
        choices=DIFF_FORMATS,
        help=f"Output format ({', '.join(DIFF_FORMATS)})",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Format JSON output for readability",
    )
    colors = ["auto", "never", "always"]
    parser.add_argument(
        "--color",
        type=str,
        choices=colors,
        default=colors[0],
        help=f"Enable colored output ({', '.join(colors)})",
    )


def _add_json_arg(parser):
    parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Display output in JSON notation",
    )


ADD_CMD = "add"
REMOVE_CMD = "remove"
IGNORE_CMD = "ignore"
UNIGNORE_CMD = "unignore"
LIST_CMD = "list"
DIFF_CMD = "diff"
RESET_CMD = "reset"


def _add_command_subparsers(parser):
    """
    Add subparsers for dirchanges commands.

    :param parser: The top-level ``ArgumentParser``
    """
    command_subparser = parser.add_subparsers(dest="command", help="Command")

    # add subcommand
    add_parser = command_subparser.add_parser(ADD_CMD, help="Add watched paths")
    add_parser.set_defaults(func=_add_cmd)
    _add_recursive_arg(add_parser, "Watch directories recursively")
    _add_watch_option_args(add_parser)
    _add_paths_arg(add_parser, "Files or directories to watch")

    # remove subcommand
    remove_parser = command_subparser.add_parser(
        REMOVE_CMD, help="Remove watched paths"
    )
    remove_parser.set_defaults(func=_remove_cmd)
    _add_recursive_arg(remove_parser, "Remove everything below each path")
    _add_paths_arg(remove_parser, "Files or directories to stop watching")

    # ignore subcommand
    ignore_parser = command_subparser.add_parser(IGNORE_CMD, help="Ignore paths")
    ignore_parser.set_defaults(func=_ignore_cmd)
    _add_paths_arg(ignore_parser, "Files or directories to ignore")

    # unignore subcommand
    unignore_parser = command_subparser.add_parser(
        UNIGNORE_CMD, help="Stop ignoring paths"
    )
    unignore_parser.set_defaults(func=_unignore_cmd)
    _add_paths_arg(unignore_parser, "Files or directories to stop ignoring")

    # list subcommand
    list_parser = command_subparser.add_parser(LIST_CMD, help="List watched paths")
    list_parser.set_defaults(func=_list_cmd)
    list_parser.add_argument(
        "--roots",
        action="store_true",
        help="List registered roots instead of every watched path",
    )
    _add_json_arg(list_parser)

    # diff subcommand
    diff_parser = command_subparser.add_parser(
        DIFF_CMD, help="Report changes to watched paths"
    )
    diff_parser.set_defaults(func=_diff_cmd)
    _add_diff_args(diff_parser)

    # reset subcommand
    reset_parser = command_subparser.add_parser(RESET_CMD, help="Delete saved state")
    reset_parser.set_defaults(func=_reset_cmd)


def main(args):
    """
    Main entry point for dirchanges.
    """
    parser = ArgumentParser(
        description="Directory change tracker", prog=basename(args[0])
    )

    # Global arguments
    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of dirchanges",
        version=__version__,
    )
    parser.add_argument(
        "-s",
        "--state",
        metavar="STATE",
        type=str,
        default=None,
        help="Path to the state file (default: $XDG_STATE_HOME/dirchanges/state)",
    )

    _add_command_subparsers(parser)

    cmd_args = parser.parse_args(args[1:])

    status = 1

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    if "func" not in cmd_args:
        parser.print_help()
        return status

    if cmd_args.debug:
        status = cmd_args.func(cmd_args)
    else:
        try:
            status = cmd_args.func(cmd_args)
        # pylint: disable=broad-except
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
        except Exception as err:
            _log_error("Command failed: %s", err)

    shutdown_logging()
    return status


def console_main():
    """
    Console script entry point.
    """
    sys.exit(main(sys.argv))


__all__ = [
    "DIFF_FORMATS",
    "add_paths",
    "diff_watched",
    "main",
    "print_events",
    "remove_paths",
    "show_watched",
]


# vim: set et ts=4 sw=4 :
