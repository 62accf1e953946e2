"""
Tests for the rich-based terminal presentation surface
"""

import io

import pytest
from rich.console import Console

from font_fit import FontFitter
from models import Slide
from presenter import PresentationController
from terminal_surface import CELL_HEIGHT, CELL_WIDTH, TerminalSurface


def make_console(width=80, height=24):
    return Console(file=io.StringIO(), width=width, height=height, force_terminal=False)


def scripted(keys):
    it = iter(keys)
    return lambda: next(it, "")


@pytest.fixture
def controller(fake_measurer):
    exits = []
    ctrl = PresentationController(
        [Slide(text="One"), Slide(text="Two"), Slide(text="Three")],
        fitter=FontFitter(fake_measurer),
        on_exit=lambda: exits.append(True),
    )
    ctrl.exits = exits
    return ctrl


class TestTranslate:
    @pytest.mark.parametrize("token", ["\n", "n\n", "l", ">"])
    def test_advance(self, token):
        assert TerminalSurface.translate(token) == "ArrowRight"

    @pytest.mark.parametrize("token", ["p\n", "H", "<"])
    def test_retreat(self, token):
        assert TerminalSurface.translate(token) == "ArrowLeft"

    @pytest.mark.parametrize("token", ["q\n", "exit", "Escape"])
    def test_quit(self, token):
        assert TerminalSurface.translate(token) == "Escape"

    def test_unknown(self):
        assert TerminalSurface.translate("zz") is None


class TestRun:
    def test_navigation_and_quit(self, controller):
        seen = []
        keys = iter(["n\n", "n\n", "n\n", "p\n", "q\n"])

        def read_key():
            key = next(keys)
            seen.append(controller.current_index)
            return key

        surface = TerminalSurface(console=make_console(), read_key=read_key)
        surface.run(controller)
        assert seen == [0, 1, 2, 2, 1]
        assert controller.current_index == 1
        assert not controller.presenting
        assert controller.exits == [True]
        assert surface.listener_count() == 0
        assert not surface.is_fullscreen

    def test_size_in_px(self, controller):
        surface = TerminalSurface(console=make_console(80, 24), read_key=scripted(["q\n"]))
        surface.run(controller)
        assert controller.container == (80 * CELL_WIDTH, 22 * CELL_HEIGHT)
        assert controller.font_size is not None

    def test_end_of_input_leaves_presentation(self, controller):
        surface = TerminalSurface(console=make_console(), read_key=scripted([]))
        surface.run(controller)
        assert controller.exits == [True]
        assert surface.listener_count() == 0

    def test_keyboard_interrupt_leaves_presentation(self, controller):
        def read_key():
            raise KeyboardInterrupt

        surface = TerminalSurface(console=make_console(), read_key=read_key)
        surface.run(controller)
        assert controller.exits == [True]
        assert not surface.is_fullscreen

    def test_terminal_resize_refits(self, controller):
        console = make_console(80, 24)

        def read_key():
            if console.size == (80, 24):
                console.size = (40, 12)
                return "?"
            return "q"

        surface = TerminalSurface(console=console, read_key=read_key)
        surface.run(controller)
        assert controller.container == (40 * CELL_WIDTH, 10 * CELL_HEIGHT)


class TestRender:
    def test_footer_shows_position(self, controller):
        controller.resize(640, 352)
        controller.next()
        console = make_console()
        console.print(TerminalSurface.render(controller))
        out = console.file.getvalue()
        assert "Two" in out
        assert f"2/3 · {controller.font_size}px" in out
