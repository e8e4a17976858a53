#!/usr/bin/env -S uv run
# /// script
# dependencies = ["rich", "pygame", "numpy"]
# ///

"""
countdown.py – full-screen terminal countdown with a chime at zero

Usage:
    countdown 90          # or: uv run countdown.py 90

Keys: ``q`` quit, ``r`` reset to the configured duration, ``a`` toggle
auto-repeat (restart automatically after the chime, handy for intervals).
"""

from __future__ import annotations

import argparse
import logging
import os
import re
import select
import sys
import termios
import time
import tty
from collections import deque
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, NoReturn

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import numpy as np
import pygame
from rich.console import Console, RenderableType
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

TICK_INTERVAL = 1.0  # seconds between countdown steps

SAMPLE_RATE = 44100
CHIME_DURATION = 1.2
CHIME_VOLUME = 0.2  # keep it low, this goes straight into headphones
CHIME_POLL_INTERVAL = 0.01
CHIME_GRACE = 0.5

MOUSE_CAPTURE_ON = "\x1b[?1000h\x1b[?1006h"
MOUSE_CAPTURE_OFF = "\x1b[?1006l\x1b[?1000l"

KEY_HINTS = "[dim]q quit · r reset · a auto[/dim]"

LOG_LEVEL_ENV = "COUNTDOWN_LOG_LEVEL"

console = Console()
logger = logging.getLogger(__name__)


# ── timer state ──────────────────────────────────────────────────────────
def _no_chime() -> None:
    pass


@dataclass
class Countdown:
    """Countdown state, advanced once per tick by :func:`run`."""

    configured_seconds: int
    chime: Callable[[], None] = field(default=_no_chime, repr=False)
    remaining_seconds: int = field(init=False)
    reset_requested: bool = field(default=False, init=False)
    auto_repeat: bool = False
    chime_played: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.configured_seconds <= 0:
            raise ValueError("configured_seconds must be positive")
        self.remaining_seconds = self.configured_seconds

    def advance_tick(self) -> None:
        """Move the countdown one tick forward.

        Zero is held for one full tick: the chime and the auto-repeat check
        look at the value the previous tick left behind, and a pending reset
        restores the full duration without also counting it down.
        """
        if self.remaining_seconds == 0 and not self.chime_played:
            logger.info("Countdown reached zero")
            self.chime()
            self.chime_played = True

        if self.remaining_seconds == 0 and self.auto_repeat:
            self.reset_requested = True

        if self.reset_requested:
            logger.debug("Resetting to %d seconds", self.configured_seconds)
            self.remaining_seconds = self.configured_seconds
            self.chime_played = False
            self.reset_requested = False
        elif self.remaining_seconds > 0:
            self.remaining_seconds -= 1

    def request_reset(self) -> None:
        self.reset_requested = True

    def toggle_auto_repeat(self) -> None:
        self.auto_repeat = not self.auto_repeat
        logger.debug("Auto-repeat %s", "on" if self.auto_repeat else "off")

    def format_display(self) -> str:
        hours, rest = divmod(self.remaining_seconds, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d} ({self.remaining_seconds})"

    def format_auto_mode(self) -> str:
        return f"Auto mode: {str(self.auto_repeat).lower()}"


# ── rendering ────────────────────────────────────────────────────────────
def render(countdown: Countdown, height: int | None = None) -> Panel:
    """Return the bordered panel showing *countdown*.

    With *height* the panel stretches to fill that many rows (the whole
    screen, when called from the loop).
    """
    body = Text(justify="center", overflow="fold")
    body.append(countdown.format_display(), style="bold")
    body.append("\n")
    body.append(
        countdown.format_auto_mode(),
        style="magenta" if countdown.auto_repeat else "dim",
    )
    return Panel(body, border_style="magenta", subtitle=KEY_HINTS, height=height)


# ── chime ────────────────────────────────────────────────────────────────
def chime_samples(
    sample_rate: int, channels: int, duration: float = CHIME_DURATION
) -> np.ndarray:
    """Synthesize a short bell: two decaying partials, 16-bit signed."""
    n = int(sample_rate * duration)
    t = np.linspace(0, duration, n, endpoint=False)
    wave = 0.6 * np.sin(2 * np.pi * 880 * t) + 0.4 * np.sin(2 * np.pi * 1320 * t)
    wave *= np.exp(-6.0 * t)

    # 5 ms attack so the start doesn't click
    fade = min(n, int(sample_rate * 0.005))
    wave[:fade] *= np.linspace(0, 1, fade)

    audio = (wave * 0.9 * 32767).astype(np.int16)
    if channels == 1:
        return audio
    return np.repeat(audio.reshape(n, 1), channels, axis=1)


class Chime:
    """The end-of-countdown sound, held in memory for the whole run.

    Use as a context manager: the mixer is opened on entry and closed on
    exit. When no audio device can be opened the chime is disabled and
    :meth:`play` does nothing.
    """

    def __init__(self, volume: float = CHIME_VOLUME) -> None:
        self.volume = volume
        self._sound: pygame.mixer.Sound | None = None

    @property
    def available(self) -> bool:
        return self._sound is not None

    def __enter__(self) -> Chime:
        try:
            pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=2, buffer=512)
        except pygame.error as exc:
            logger.warning("Audio unavailable, chime disabled: %s", exc)
            return self

        try:
            frequency, _, channels = pygame.mixer.get_init()
            self._sound = pygame.sndarray.make_sound(chime_samples(frequency, channels))
            self._sound.set_volume(self.volume)
        except BaseException:
            self._sound = None
            pygame.mixer.quit()
            raise
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._sound = None
        if pygame.mixer.get_init():
            pygame.mixer.quit()

    def play(self) -> None:
        """Play the chime and block until it has finished."""
        if self._sound is None:
            return

        self._sound.play()
        deadline = time.monotonic() + self._sound.get_length() + CHIME_GRACE
        while pygame.mixer.get_busy() and time.monotonic() < deadline:
            time.sleep(CHIME_POLL_INTERVAL)


# ── terminal ─────────────────────────────────────────────────────────────
class ErrorKind(Enum):
    RAW_MODE = "raw mode"
    COMMAND = "terminal command"
    TERMINAL = "terminal"


class TerminalError(Exception):
    def __init__(self, kind: ErrorKind, cause: BaseException | None = None) -> None:
        self.kind = kind
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{kind.value} failure{detail}")


# CSI / SS3 / Alt-key sequences, plus the legacy X10 mouse report whose three
# payload bytes can be anything.
_ESCAPE_SEQUENCE = re.compile(r"\x1b\[M[\s\S]{3}|\x1b(?:\[[0-9;<=>?]*[ -/]*[@-~]|O.|.)?")


def parse_keys(data: str) -> list[str]:
    """Return the plain key presses in *data*, dropping escape sequences."""
    # An Esc immediately followed by a key in the same read is indistinguishable
    # from Alt+key and is dropped with it, e.g. "\x1bq" does not quit.
    return list(_ESCAPE_SEQUENCE.sub("", data))


class Terminal:
    """Full-screen terminal session for the countdown.

    On entry stdin stops echoing and delivers keys immediately, the screen
    switches to the alternate buffer with the cursor hidden, and mouse
    capture is on. Everything is undone on exit, whatever happened inside.
    """

    def __init__(self, console: Console | None = None, fd: int | None = None) -> None:
        self.console = console or Console()
        self._fd = sys.stdin.fileno() if fd is None else fd
        self._saved_mode: list | None = None
        self._live: Live | None = None
        self._pending: deque[str] = deque()
        self._stack = ExitStack()

    @property
    def height(self) -> int:
        return self.console.size.height

    def __enter__(self) -> Terminal:
        with ExitStack() as stack:
            self._enter_cbreak()
            stack.callback(self._restore_mode)
            self._start_display()
            stack.callback(self._stop_display)
            self._emit(MOUSE_CAPTURE_ON)
            stack.callback(self._emit, MOUSE_CAPTURE_OFF)
            self._stack = stack.pop_all()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self._stack.close()
        except TerminalError:
            if exc_type is None:
                raise
            # keep the in-flight exception as the one reported
            logger.error("Terminal restore failed", exc_info=True)

    def draw(self, renderable: RenderableType) -> None:
        self._live.update(renderable, refresh=True)

    def poll(self, timeout: float) -> str | None:
        """Wait up to *timeout* seconds for a key; ``None`` if none came."""
        if not self._pending:
            ready, _, _ = select.select([self._fd], [], [], max(0.0, timeout))
            if ready:
                data = os.read(self._fd, 1024).decode(errors="ignore")
                self._pending.extend(parse_keys(data))
        return self._pending.popleft() if self._pending else None

    def _enter_cbreak(self) -> None:
        try:
            self._saved_mode = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        except termios.error as exc:
            raise TerminalError(ErrorKind.RAW_MODE, exc) from exc

    def _restore_mode(self) -> None:
        try:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_mode)
        except termios.error as exc:
            raise TerminalError(ErrorKind.RAW_MODE, exc) from exc

    def _start_display(self) -> None:
        try:
            self._live = Live(
                console=self.console,
                screen=True,
                auto_refresh=False,
                transient=True,
                redirect_stdout=False,
                redirect_stderr=False,
            )
            self._live.start()
        except OSError as exc:
            raise TerminalError(ErrorKind.TERMINAL, exc) from exc

    def _stop_display(self) -> None:
        try:
            self._live.stop()
            self.console.show_cursor(True)
        except OSError as exc:
            raise TerminalError(ErrorKind.TERMINAL, exc) from exc

    def _emit(self, sequence: str) -> None:
        try:
            self.console.file.write(sequence)
            self.console.file.flush()
        except OSError as exc:
            raise TerminalError(ErrorKind.COMMAND, exc) from exc


# ── main loop ────────────────────────────────────────────────────────────
KEY_ACTIONS: dict[str, Callable[[Countdown], None]] = {
    "r": Countdown.request_reset,
    "a": Countdown.toggle_auto_repeat,
}


def run(
    countdown: Countdown,
    terminal: Terminal,
    *,
    tick_interval: float = TICK_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Drive *countdown* until ``q`` is pressed.

    The screen is redrawn on every wake-up, but the countdown only moves
    once *tick_interval* has passed since the previous tick.
    """
    last_tick = clock()
    while True:
        terminal.draw(render(countdown, terminal.height))

        timeout = max(0.0, tick_interval - (clock() - last_tick))
        key = terminal.poll(timeout)
        if key is not None:
            logger.debug("Key %r", key)
        if key == "q":
            return
        action = KEY_ACTIONS.get(key)
        if action is not None:
            action(countdown)

        if clock() - last_tick >= tick_interval:
            countdown.advance_tick()
            last_tick = clock()
            logger.debug("Tick -> %s", countdown.format_display())


# ── CLI ──────────────────────────────────────────────────────────────────
_INTEGER = re.compile(r"[+-]?[0-9]+")


class _ArgumentParser(argparse.ArgumentParser):
    """Reports bad arguments on stdout and exits with status 1."""

    def error(self, message: str) -> NoReturn:
        console.print(self.format_usage().rstrip(), markup=False, highlight=False)
        console.print(f"[bold red]error:[/bold red] {escape(message)}", highlight=False)
        raise SystemExit(1)


def _positive_seconds(value: str) -> int:
    # plain ASCII digits only; int() alone would also take " 5" or "1_000"
    if not _INTEGER.fullmatch(value):
        raise argparse.ArgumentTypeError(f"{value!r} is not a number of seconds")
    seconds = int(value)
    if seconds <= 0:
        raise argparse.ArgumentTypeError("the duration must be at least 1 second")
    return seconds


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        prog="countdown",
        description="Full-screen countdown timer with a chime at zero.",
        add_help=False,
    )
    parser.add_argument(
        "seconds",
        type=_positive_seconds,
        help="Length of the countdown in seconds",
    )
    return parser.parse_args(argv)


def _configure_logging() -> None:
    name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, name, None)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging()

    try:
        with Chime() as chime, Terminal() as terminal:
            run(Countdown(args.seconds, chime=chime.play), terminal)
    except TerminalError as exc:
        console.print(f"[bold red]Terminal error:[/bold red] {escape(str(exc))}")
        return 1
    except OSError as exc:
        console.print(f"[bold red]I/O error:[/bold red] {escape(str(exc))}")
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
