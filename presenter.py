"""Slide navigation, input mapping and font fitting for presentation mode."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

try:
    from .font_fit import FontFitter, heuristic_font_size
    from .models import FitResult, NavigationState, Slide
except Exception:
    from font_fit import FontFitter, heuristic_font_size
    from models import FitResult, NavigationState, Slide

logger = logging.getLogger("takahashi")

ADVANCE_KEYS = frozenset({"ArrowRight", "ArrowDown", "PageDown", " ", "Enter", "n", "l"})
RETREAT_KEYS = frozenset({"ArrowLeft", "ArrowUp", "PageUp", "Backspace", "p", "h"})

SURFACE_EVENTS = ("key", "pointer", "resize", "fullscreenchange")


class DisplaySurface:
    """Base class for whatever shows slides: a terminal, a window, a test double.

    Subclasses emit ``key(name)``, ``pointer(x, width)``, ``resize(width, height)``
    and ``fullscreenchange(is_fullscreen)`` through :meth:`emit`.
    """

    def __init__(self, width: int = 0, height: int = 0) -> None:
        self._listeners: Dict[str, List[Callable]] = {name: [] for name in SURFACE_EVENTS}
        self.size: Tuple[int, int] = (width, height)
        self.is_fullscreen = False

    def on(self, event: str, callback: Callable) -> Callable[[], None]:
        if event not in self._listeners:
            raise ValueError(f"Unknown surface event: {event}")
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        return unsubscribe

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(v) for v in self._listeners.values())

    def emit(self, event: str, *args) -> None:
        if event == "resize" and len(args) == 2:
            self.size = (int(args[0]), int(args[1]))
        if event == "fullscreenchange" and args:
            self.is_fullscreen = bool(args[0])
        for cb in list(self._listeners.get(event, [])):
            cb(*args)

    def request_fullscreen(self) -> None:
        if not self.is_fullscreen:
            self.emit("fullscreenchange", True)

    def exit_fullscreen(self) -> None:
        if self.is_fullscreen:
            self.emit("fullscreenchange", False)


class PresentationController:
    def __init__(
        self,
        slides: Iterable[Slide] = (),
        fitter: Optional[FontFitter] = None,
        font_strategy: str = "measured",
        on_exit: Optional[Callable[[], None]] = None,
        advance_keys: Iterable[str] = ADVANCE_KEYS,
        retreat_keys: Iterable[str] = RETREAT_KEYS,
    ) -> None:
        """Initialize.

        Args:
            slides (Iterable[Slide]): deck to walk
            fitter (FontFitter): used when ``font_strategy == "measured"``
            font_strategy (str): ``"measured"`` or ``"heuristic"``
            on_exit (Callable): called once when presentation mode ends
            advance_keys (Iterable[str]): key names mapped to :meth:`next`
            retreat_keys (Iterable[str]): key names mapped to :meth:`prev`

        Returns:
            None:
        """
        if font_strategy not in {"measured", "heuristic"}:
            raise ValueError(f"Unknown font strategy: {font_strategy}")
        self.fitter = fitter if fitter is not None else FontFitter()
        self.font_strategy = font_strategy
        self.on_exit = on_exit
        self.advance_keys = frozenset(advance_keys)
        self.retreat_keys = frozenset(retreat_keys)
        self.presenting = False

        self._slides: Tuple[Slide, ...] = ()
        self._index = 0
        self._container: Tuple[int, int] = (0, 0)
        self._fit: Optional[FitResult] = None
        self._font_size: Optional[int] = None
        self._listeners: List[Callable[["PresentationController"], None]] = []
        self.load(slides)

    # ---- deck and state ----

    def load(self, slides: Iterable[Slide]) -> None:
        self._slides = tuple(slides)
        self._index = 0
        self._refresh()

    @property
    def slides(self) -> Sequence[Slide]:
        return self._slides

    @property
    def deck_length(self) -> int:
        return len(self._slides)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_slide(self) -> Optional[Slide]:
        if not self._slides:
            return None
        return self._slides[self._index]

    @property
    def state(self) -> NavigationState:
        return NavigationState(current_index=self._index, deck_length=self.deck_length)

    @property
    def progress(self) -> float:
        if not self._slides:
            return 0.0
        return (self._index + 1) / len(self._slides) * 100.0

    @property
    def font_size(self) -> Optional[int]:
        return self._font_size

    @property
    def fit_result(self) -> Optional[FitResult]:
        return self._fit

    @property
    def container(self) -> Tuple[int, int]:
        return self._container

    def subscribe(self, callback: Callable[["PresentationController"], None]) -> Callable[[], None]:
        """Register a render callback, invoked after index or font size change."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # ---- navigation ----

    def _last_index(self) -> int:
        return max(0, len(self._slides) - 1)

    def _set_index(self, index: int) -> None:
        index = min(max(index, 0), self._last_index())
        if index == self._index:
            return
        self._index = index
        self._refresh()

    def next(self) -> None:
        self._set_index(self._index + 1)

    def prev(self) -> None:
        self._set_index(self._index - 1)

    def go_to(self, index) -> None:
        try:
            index = int(index)
        except (TypeError, ValueError, OverflowError):
            logger.debug("Ignoring non-integer slide index %r", index)
            return
        self._set_index(index)

    def handle_key(self, key: str) -> bool:
        if key in self.advance_keys:
            self.next()
            return True
        if key in self.retreat_keys:
            self.prev()
            return True
        return False

    def handle_pointer(self, x: float, surface_width: float) -> bool:
        """Right half of the surface advances, left half retreats."""
        if surface_width <= 0:
            return False
        if x > surface_width / 2:
            self.next()
        else:
            self.prev()
        return True

    # ---- font fitting ----

    def resize(self, width: int, height: int) -> None:
        self._container = (max(0, int(width)), max(0, int(height)))
        self._refresh()

    def _compute_font(self) -> None:
        width, height = self._container
        slide = self.current_slide
        text = slide.text if slide else ""
        if width <= 0 or height <= 0:
            # Not laid out yet; keep the previous value until a real size arrives.
            return
        if self.font_strategy == "heuristic":
            self._fit = None
            self._font_size = heuristic_font_size(text, width)
            return
        self._fit = self.fitter.fit(text, width, height)
        self._font_size = self._fit.font_size if self._fit else None

    def _refresh(self) -> None:
        self._compute_font()
        for cb in list(self._listeners):
            cb(self)

    # ---- presentation mode ----

    def _on_fullscreen_change(self, is_fullscreen: bool) -> None:
        if is_fullscreen or not self.presenting:
            return
        logger.debug("Full screen relinquished; leaving presentation mode.")
        self.presenting = False
        if self.on_exit:
            self.on_exit()

    @contextmanager
    def present(self, surface: DisplaySurface) -> Iterator["PresentationController"]:
        """Hold full screen and input subscriptions on ``surface`` for the block.

        Every subscription is released on the way out, whether the block ends
        normally, raises, or the surface left full screen on its own.
        """
        if not self._slides:
            raise ValueError("Cannot present an empty deck")

        releases: List[Callable[[], None]] = []
        try:
            releases.append(surface.on("fullscreenchange", self._on_fullscreen_change))
            releases.append(surface.on("key", self.handle_key))
            releases.append(surface.on("pointer", self.handle_pointer))
            releases.append(surface.on("resize", self.resize))
            self.presenting = True
            surface.request_fullscreen()
            width, height = surface.size
            self.resize(width, height)
            yield self
        finally:
            if surface.is_fullscreen:
                surface.exit_fullscreen()
            for release in reversed(releases):
                release()
            if self.presenting:
                self.presenting = False
                if self.on_exit:
                    self.on_exit()
