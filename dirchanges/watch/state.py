# Copyright Red Hat
#
# dirchanges/watch/state.py - Directory change tracker saved state
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Watcher state persistence.

The registered roots, ignore set, options and stored snapshot of a
``Watcher`` are written to a compressed pickle stream so that a later
process can compute a diff against them.
"""
from typing import Dict, Optional, Tuple
from stat import S_ISDIR, S_ISLNK
from datetime import datetime
from io import RawIOBase
from math import floor
import logging
import pickle
import lzma
import os

try:
    import zstandard as zstd

    _HAVE_ZSTD = True
except ModuleNotFoundError:
    _HAVE_ZSTD = False

from dirchanges import (
    DIRCHANGES_SUBSYSTEM_STATE,
    DirchangesNotFoundError,
    DirchangesStateError,
    DirchangesSystemError,
)

from .options import WatchOptions
from .watcher import Watcher

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_state(msg, *args, **kwargs):
    """A wrapper for state subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DIRCHANGES_SUBSYSTEM_STATE}, **kwargs)


#: State file format version
STATE_VERSION: int = 1

#: State directory file mode
_STATE_DIR_MODE: int = 0o700

#: Base name of the default state file
_STATE_NAME: str = "state"

#: Compression types
_COMPRESSION_EXTENSIONS: Dict[str, str] = {
    "zstd": "zst",
    "lzma": "xz",
}


class WatcherState:
    """
    Header record for a saved watcher state. The snapshot entries follow the
    header in the stream as ``(path, FileInfo)`` pairs.
    """

    def __init__(
        self,
        options: WatchOptions,
        roots: Dict[str, bool],
        ignored: Tuple[str, ...],
        count: int,
        timestamp: Optional[int] = None,
    ):
        self.version = STATE_VERSION
        self.options = options
        self.roots = roots
        self.ignored = ignored
        self.count = count
        self.timestamp = (
            timestamp if timestamp is not None else floor(datetime.now().timestamp())
        )

    def __repr__(self):
        return (
            f"WatcherState(version={self.version}, roots={self.roots!r}, "
            f"ignored={self.ignored!r}, count={self.count}, "
            f"timestamp={self.timestamp})"
        )


def default_state_dir() -> str:
    """
    Return the default directory for dirchanges state files.

    :returns: ``$XDG_STATE_HOME/dirchanges`` or ``~/.local/state/dirchanges``.
    :rtype: ``str``
    """
    state_home = os.environ.get("XDG_STATE_HOME") or os.path.join(
        os.path.expanduser("~"), ".local", "state"
    )
    return os.path.join(state_home, "dirchanges")


def _check_state_dir(dirpath: str, mode: int, name: str) -> str:
    """
    Check for the presence of a dirchanges state directory and create it if
    necessary.

    :param dirpath: Path to the directory
    :param mode: Permissions mode for the directory
    :param name: Human-readable name for error messages
    :returns: The directory path
    """
    existed = os.path.exists(dirpath)
    if existed:
        try:
            st = os.lstat(dirpath)
        except OSError as err:
            raise DirchangesSystemError(
                f"Failed to stat {name} {dirpath}: {err}"
            ) from err
        if S_ISLNK(st.st_mode):
            raise DirchangesSystemError(f"{name} {dirpath} is a symlink (not secure)")
        if not S_ISDIR(st.st_mode):
            raise DirchangesSystemError(
                f"{name} {dirpath} exists but is not a directory"
            )
        if (st.st_mode & 0o777) != mode:
            try:
                os.chmod(dirpath, mode)
            except OSError as err:
                raise DirchangesSystemError(
                    f"Failed to set permissions on {name} {dirpath}: {err}"
                ) from err
    else:
        try:
            os.makedirs(dirpath, mode=mode, exist_ok=True)
        except OSError as err:
            raise DirchangesSystemError(
                f"Failed to create {name} {dirpath}: {err}"
            ) from err

    # The umask may have narrowed the mode passed to makedirs().
    try:
        st = os.stat(dirpath)
        if (st.st_mode & 0o777) != mode:
            os.chmod(dirpath, mode)
            st = os.stat(dirpath)
    except OSError as err:
        raise DirchangesSystemError(f"Failed to verify {name} {dirpath}: {err}") from err
    if (st.st_mode & 0o777) != mode:
        raise DirchangesSystemError(
            f"{name} {dirpath} has incorrect permissions: "
            f"{st.st_mode & 0o777:04o} (expected {mode:04o})"
        )
    return dirpath


def _state_base(path: Optional[str]) -> str:
    """
    Return the state file path without compression extension, creating the
    default state directory if ``path`` is not given.
    """
    if path is None:
        state_dir = _check_state_dir(default_state_dir(), _STATE_DIR_MODE, "state dir")
        return os.path.join(state_dir, _STATE_NAME)
    for ext in _COMPRESSION_EXTENSIONS.values():
        if path.endswith("." + ext):
            return path.removesuffix("." + ext)
    return path


def _compress_type() -> Tuple[str, Tuple[type, ...]]:
    """
    Determine the compression type to use when writing the state file.

    :returns: A 2-tuple containing a string describing the chosen
              compression format and a tuple of exception types for the
              chosen format.
    :rtype: ``Tuple[str, Tuple[type, ...]]``
    """
    if _HAVE_ZSTD:
        return ("zstd", (zstd.ZstdError,))
    return ("lzma", (lzma.LZMAError,))


def find_state(path: Optional[str] = None) -> str:
    """
    Return the path of an existing state file.

    :param path: The state file path, with or without a compression
                 extension, or ``None`` for the default location.
    :type path: ``Optional[str]``
    :returns: The path of the state file found.
    :rtype: ``str``
    :raises: ``DirchangesNotFoundError`` if no state file exists.
    """
    base = _state_base(path)
    for compress, ext in _COMPRESSION_EXTENSIONS.items():
        candidate = f"{base}.{ext}"
        if os.path.exists(candidate):
            if compress == "zstd" and not _HAVE_ZSTD:
                _log_warn("Ignoring zstd compressed state %s: zstd not available", candidate)
                continue
            return candidate
    raise DirchangesNotFoundError(f"No saved state found at {base}")


def save_state(watcher: Watcher, path: Optional[str] = None) -> str:
    """
    Save the state of ``watcher``.

    :param watcher: The watcher to save.
    :type watcher: ``Watcher``
    :param path: The state file path (without compression extension), or
                 ``None`` for the default location.
    :type path: ``Optional[str]``
    :returns: The path of the file written.
    :rtype: ``str``
    """
    base = _state_base(path)
    compress, compress_errors = _compress_type()
    state_path = f"{base}.{_COMPRESSION_EXTENSIONS[compress]}"
    tmp_path = state_path + ".tmp"

    files = watcher.watched_files()
    header = WatcherState(
        watcher.options,
        watcher.roots(),
        tuple(sorted(watcher.ignored())),
        len(files),
    )

    def _write_state(writer: RawIOBase):
        pickle.dump(header, writer)
        for item in files.items():
            pickle.dump(item, writer)

    start_time = datetime.now()
    try:
        if compress == "zstd":
            cctx = zstd.ZstdCompressor()
            with open(tmp_path, "wb") as fc:
                with cctx.stream_writer(fc) as compressor:
                    _write_state(compressor)
        else:
            with lzma.LZMAFile(filename=tmp_path, mode="wb") as compressor:
                _write_state(compressor)
        os.replace(tmp_path, state_path)
    except (OSError, pickle.PicklingError, *compress_errors) as err:
        _log_error("Error saving state: %s", err)
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise DirchangesStateError(f"Failed to save state to {state_path}: {err}") from err

    # Remove state left behind with another compression type.
    for ext in _COMPRESSION_EXTENSIONS.values():
        stale = f"{base}.{ext}"
        if stale != state_path and os.path.exists(stale):
            _log_debug_state("Removing stale state file %s", stale)
            os.unlink(stale)

    end_time = datetime.now()
    _log_debug_state(
        "Saved %d entries to %s in %s", len(files), state_path, end_time - start_time
    )
    return state_path


def load_state(path: Optional[str] = None) -> Watcher:
    """
    Load a saved watcher state.

    :param path: The state file path, with or without a compression
                 extension, or ``None`` for the default location.
    :type path: ``Optional[str]``
    :returns: A new ``Watcher`` with the saved options, roots, ignore set
              and stored snapshot.
    :rtype: ``Watcher``
    :raises: ``DirchangesNotFoundError`` if there is no saved state, or
             ``DirchangesStateError`` if the state cannot be read.
    """
    state_path = find_state(path)
    if state_path.endswith(".zst"):
        uncompress_errors = (zstd.ZstdError,)
    else:
        uncompress_errors = (lzma.LZMAError,)

    def _read_state(reader: RawIOBase) -> Watcher:
        # State files are written by the invoking user into a private
        # (0700) directory or a path of their choosing.
        header = pickle.load(reader)
        if not isinstance(header, WatcherState):
            raise DirchangesStateError(f"Not a dirchanges state file: {state_path}")
        if header.version != STATE_VERSION:
            raise DirchangesStateError(
                f"Unsupported state version {header.version} in {state_path}"
            )
        _log_debug_state("Loaded state header from %s: %r", state_path, header)
        files = {}
        for _ in range(header.count):
            path_name, info = pickle.load(reader)
            files[path_name] = info
        watcher = Watcher(header.options)
        watcher.restore(header.roots, header.ignored, files)
        return watcher

    try:
        if state_path.endswith(".zst"):
            dctx = zstd.ZstdDecompressor()
            with open(state_path, mode="rb") as fp:
                with dctx.stream_reader(fp) as reader:
                    return _read_state(reader)
        with lzma.LZMAFile(filename=state_path, mode="rb") as reader:
            return _read_state(reader)
    except (
        OSError,
        EOFError,
        ValueError,
        pickle.UnpicklingError,
        *uncompress_errors,
    ) as err:
        raise DirchangesStateError(f"Failed to load state from {state_path}: {err}") from err


def delete_state(path: Optional[str] = None) -> str:
    """
    Delete a saved watcher state.

    :param path: The state file path, with or without a compression
                 extension, or ``None`` for the default location.
    :type path: ``Optional[str]``
    :returns: The path of the deleted file.
    :rtype: ``str``
    :raises: ``DirchangesNotFoundError`` if there is no saved state.
    """
    state_path = find_state(path)
    try:
        os.unlink(state_path)
    except OSError as err:
        raise DirchangesSystemError(f"Failed to delete {state_path}: {err}") from err
    _log_info("Deleted state file %s", state_path)
    return state_path


__all__ = [
    "STATE_VERSION",
    "WatcherState",
    "default_state_dir",
    "delete_state",
    "find_state",
    "load_state",
    "save_state",
]
