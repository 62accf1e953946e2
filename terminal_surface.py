"""Full-screen terminal display surface built on rich."""
from __future__ import annotations

import sys
from typing import Callable, Optional, Tuple

from rich.align import Align
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.progress_bar import ProgressBar
from rich.text import Text

try:
    from .presenter import DisplaySurface, PresentationController
except Exception:
    from presenter import DisplaySurface, PresentationController

# Nominal terminal cell size used to express the screen in px.
CELL_WIDTH = 8
CELL_HEIGHT = 16

KEY_ALIASES = {
    "": "ArrowRight",
    "n": "ArrowRight",
    "l": "ArrowRight",
    ">": "ArrowRight",
    "p": "ArrowLeft",
    "h": "ArrowLeft",
    "<": "ArrowLeft",
    "q": "Escape",
    "exit": "Escape",
    "escape": "Escape",
}


class TerminalSurface(DisplaySurface):
    def __init__(self, console: Optional[Console] = None, read_key: Optional[Callable[[], str]] = None) -> None:
        super().__init__()
        self.console = console or Console()
        self.read_key = read_key or sys.stdin.readline
        self._live: Optional[Live] = None

    def _measure(self) -> Tuple[int, int]:
        cols, rows = self.console.size
        # Two rows are reserved for the footer.
        return cols * CELL_WIDTH, max(0, rows - 2) * CELL_HEIGHT

    def request_fullscreen(self) -> None:
        if self._live is None:
            self._live = Live(console=self.console, screen=True, auto_refresh=False, transient=True)
            self._live.start()
        self.size = self._measure()
        super().request_fullscreen()

    def exit_fullscreen(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None
        super().exit_fullscreen()

    @staticmethod
    def translate(token: str) -> Optional[str]:
        return KEY_ALIASES.get(token.strip().lower())

    @staticmethod
    def render(controller: PresentationController) -> Layout:
        slide = controller.current_slide
        body = Align.center(
            Text(slide.text if slide else "", style="bold white", justify="center"),
            vertical="middle",
        )
        size = f" · {controller.font_size}px" if controller.font_size else ""
        footer = Group(
            ProgressBar(total=100, completed=controller.progress, complete_style="white"),
            Text(f"{controller.current_index + 1}/{controller.deck_length}{size}", style="dim", justify="right"),
        )
        layout = Layout()
        layout.split_column(Layout(body, name="body"), Layout(footer, name="footer", size=2))
        return layout

    def refresh(self, controller: PresentationController) -> None:
        if self._live is not None:
            self._live.update(self.render(controller), refresh=True)

    def _sync_size(self) -> None:
        size = self._measure()
        if size != self.size:
            self.emit("resize", *size)

    def run(self, controller: PresentationController) -> None:
        """Present until the user quits or the terminal session ends."""
        with controller.present(self):
            unsubscribe = controller.subscribe(self.refresh)
            try:
                self.refresh(controller)
                while controller.presenting:
                    self._sync_size()
                    try:
                        raw = self.read_key()
                    except (EOFError, KeyboardInterrupt):
                        self.exit_fullscreen()
                        break
                    if raw == "":
                        # EOF: the terminal went away underneath us.
                        self.exit_fullscreen()
                        break
                    key = self.translate(raw)
                    if key == "Escape":
                        self.exit_fullscreen()
                        break
                    if key:
                        self.emit("key", key)
                    else:
                        self.refresh(controller)
            finally:
                unsubscribe()
