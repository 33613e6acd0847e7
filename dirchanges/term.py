# Copyright Red Hat
#
# dirchanges/term.py - Directory change tracker terminal control
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Terminal control for colored output
"""
from typing import List, Optional, TextIO
import curses
import sys
import re


class TermControl:
    """
    A class for portable terminal color output.

    Uses the curses package to look up the control sequences for the
    current terminal. Adapted from Edward Loper's terminfo recipe
    (PSF license):

      https://code.activestate.com/recipes/475116-using-terminfo-for-portable-color-output-cursor-co/

    Control sequences are exposed as instance attributes and can be
    included directly in output:

        >>> term = TermControl()
        >>> print('This is ' + term.GREEN + 'green' + term.NORMAL)

    or substituted into a template with ``render()``:

        >>> print(term.render('This is ${GREEN}green${NORMAL}'))

    Capabilities that the terminal does not support are set to ''.
    """

    # Output modes:
    BOLD: str = ""  #: Turn on bold mode
    DIM: str = ""  #: Turn on half-bright mode
    NORMAL: str = ""  #: Turn off all modes

    # Foreground colors:
    BLACK: str = ""  #: Black foreground color
    BLUE: str = ""  #: Blue foreground color
    GREEN: str = ""  #: Green foreground color
    CYAN: str = ""  #: Cyan foreground color
    RED: str = ""  #: Red foreground color
    MAGENTA: str = ""  #: Magenta foreground color
    YELLOW: str = ""  #: Yellow foreground color
    WHITE: str = ""  #: White foreground color

    # Terminal size:
    columns: Optional[int] = None  #: Terminal width
    lines: Optional[int] = None  #: Terminal height

    _STRING_CAPABILITIES: List[str] = "BOLD:bold DIM:dim NORMAL:sgr0".split()
    _LEGACY_COLORS: List[str] = (
        """BLACK BLUE GREEN CYAN RED MAGENTA YELLOW WHITE""".split()
    )
    _ANSI_COLORS: List[str] = "BLACK RED GREEN YELLOW BLUE MAGENTA CYAN WHITE".split()

    def _force_ansi(self):
        ansi_codes = {
            "BLACK": "\033[0;30m",
            "RED": "\033[0;31m",
            "GREEN": "\033[0;32m",
            "YELLOW": "\033[0;33m",
            "BLUE": "\033[0;34m",
            "MAGENTA": "\033[0;35m",
            "CYAN": "\033[0;36m",
            "WHITE": "\033[0;37m",
        }
        for color, code in ansi_codes.items():
            setattr(self, color, code)

        # Work around `less -R` not liking "\033[0m" (ANSI reset)
        setattr(self, "NORMAL", ansi_codes["WHITE"])

    def _init_colors(self):
        """
        Initialize terminal color codes.
        """
        set_fg = self._tigetstr("setf")
        if set_fg:
            set_fg = set_fg.encode("utf8")
            for i, color in enumerate(self._LEGACY_COLORS):
                setattr(self, color, curses.tparm(set_fg, i).decode("utf8") or "")
        set_fg_ansi = self._tigetstr("setaf")
        if set_fg_ansi:
            set_fg_ansi = set_fg_ansi.encode("utf8")
            for i, color in enumerate(self._ANSI_COLORS):
                setattr(self, color, curses.tparm(set_fg_ansi, i).decode("utf8") or "")

    def __init__(self, term_stream: Optional[TextIO] = None, color: str = "auto"):
        """
        Initialize terminal capabilities and size information.

        If the output stream is not a tty or terminal setup fails, the
        instance has no capabilities unless ``color`` is "always", in which
        case plain ANSI color codes are used.

        :param term_stream: Output stream to probe for capabilities.
        :type term_stream: ``Optional[TextIO]``
        :param color: A string to control color rendering: "auto", "always", or
                      "never".
        :type color: ``str``
        """
        if term_stream is None:
            term_stream = sys.stdout

        self.term_stream = term_stream

        if color == "never":
            return

        if color != "always":
            if not hasattr(term_stream, "isatty") or not term_stream.isatty():
                return

        try:
            curses.setupterm()
        # curses.error cannot be named in an except clause on all builds.
        except BaseException as err:  # pylint: disable=broad-exception-caught
            if isinstance(err, (KeyboardInterrupt, SystemExit)):  # pragma: no cover
                raise
            if color == "always":
                self._force_ansi()
            return  # pragma: no cover

        self.columns = curses.tigetnum("cols")
        self.lines = curses.tigetnum("lines")

        for capability in self._STRING_CAPABILITIES:
            (attr, cap_name) = capability.split(":")
            setattr(self, attr, self._tigetstr(cap_name) or "")

        self._init_colors()

    def _tigetstr(self, cap_name):
        # Strip terminfo "delays" of the form "$<2>".
        cap = curses.tigetstr(cap_name)
        cap = cap.decode(encoding="utf8") if cap else ""
        return cap.split("$", maxsplit=1)[0]

    def render(self, template):
        """
        Replace each ${NAME} substitution in ``template`` with the matching
        terminal control string, or '' if it is not defined.

        :param template: Template string containing ${NAME} patterns.
        :type template: ``str``
        :returns: Rendered string with substitutions applied.
        :rtype: ``str``
        """
        return re.sub(r"\$\$|\${\w+}", self._render_sub, template)

    def _render_sub(self, match):
        s = match.group()
        if s == "$$":
            return "$"
        return getattr(self, s[2:-1], "")


__all__ = [
    "TermControl",
]
