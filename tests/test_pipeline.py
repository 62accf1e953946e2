"""
Tests for the end-to-end pipeline and renderer
"""

import io
import logging

import pytest
from PIL import Image
from rich.console import Console

from conftest import FakeChatClient, make_ready_session
from models import Slide
from pipeline import Pipeline
from pipeline_common import RunConfig
from pipeline_outline import TransformError
from pipeline_render import Renderer
from presenter import DisplaySurface

RESPONSE = "<reasoning>why</reasoning>\n<answer>\n- 高橋メソッド\n- 巨大な文字\n</answer>"


def quiet_console():
    return Console(file=io.StringIO(), width=100, height=30)


class RecordingSurface(DisplaySurface):
    instances = []

    def __init__(self, console=None):
        super().__init__(1280, 720)
        self.seen = []
        RecordingSurface.instances.append(self)

    def run(self, controller):
        with controller.present(self):
            self.emit("key", "ArrowRight")
            self.seen.append(controller.current_index)


class TestRenderer:
    def test_slugify(self):
        assert Renderer.slugify_filename("Hello, World!") == "Hello_World"
        assert Renderer.slugify_filename("高橋 メソッド") == "高橋_メソッド"
        assert Renderer.slugify_filename("!!!") == "presentation"

    def test_render_writes_images_and_outline(self, temp_dir):
        renderer = Renderer(size=(320, 180))
        slides = [Slide(text="Huge"), Slide(text="letters here")]
        paths = renderer.render(slides, temp_dir, title="Demo deck")
        assert [p.name for p in paths] == ["slide-001.png", "slide-002.png"]
        with Image.open(paths[0]) as img:
            assert img.size == (320, 180)
            assert img.getpixel((0, 0)) == (0, 0, 0)
        outline = (temp_dir / "Demo_deck" / "outline.txt").read_text(encoding="utf-8")
        assert outline == "- Huge\n- letters here\n"

    def test_long_text_is_wrapped_inside_the_slide(self, temp_dir):
        renderer = Renderer(size=(320, 180))
        slide = Slide(text="This slide line is definitely a bit too long")
        path = renderer.render_slide(slide, temp_dir / "long.png")
        with Image.open(path) as img:
            gray = img.convert("L")
            edges = [gray.getpixel((x, y)) for y in range(180) for x in (0, 1, 318, 319)]
            assert max(edges) == 0
            assert gray.getbbox() is not None

    def test_warns_about_glyphs_missing_from_builtin_font(self, temp_dir, caplog):
        caplog.set_level(logging.WARNING, logger="takahashi")
        renderer = Renderer(size=(320, 180))
        assert renderer.check_glyph_coverage([Slide(text="Huge"), Slide(text="Ünïcode")])
        assert not caplog.records
        assert not renderer.check_glyph_coverage([Slide(text="Huge"), Slide(text="高橋メソッド")])
        assert "--font" in caplog.text

    def test_render_empty_deck(self, temp_dir):
        with pytest.raises(ValueError):
            Renderer().render([], temp_dir)


class TestPipeline:
    def make_cfg(self, temp_dir, **kw):
        defaults = dict(raw_text="Talk about the Takahashi method", out_dir=temp_dir / "out", approve=False)
        defaults.update(kw)
        return RunConfig(slide_width=320, slide_height=180, **defaults)

    def test_run_from_outline_file(self, temp_dir):
        outline = temp_dir / "outline.txt"
        outline.write_text("- One\n  - memo\n- Two\n", encoding="utf-8")
        cfg = self.make_cfg(temp_dir, raw_text="", outline_path=outline, grammar="nested")
        slides, paths = Pipeline(cfg, console=quiet_console()).run()
        assert slides == [Slide(text="One", memos=["memo"]), Slide(text="Two")]
        assert len(paths) == 2
        assert all(p.exists() for p in paths)

    def test_run_with_llm(self, temp_dir):
        session = make_ready_session(FakeChatClient(chunks=[RESPONSE[:20], RESPONSE[20:]]))
        cfg = self.make_cfg(temp_dir)
        slides, paths = Pipeline(cfg, session, console=quiet_console()).run()
        assert [s.text for s in slides] == ["高橋メソッド", "巨大な文字"]
        assert len(paths) == 2

    def test_approval_with_feedback_regenerates(self, temp_dir):
        client = FakeChatClient(chunks=[RESPONSE])
        session = make_ready_session(client)
        answers = iter(["make it shorter", "y"])
        cfg = self.make_cfg(temp_dir, approve=True)
        pipeline = Pipeline(cfg, session, console=quiet_console(), input_fn=lambda prompt: next(answers))
        slides, _ = pipeline.run()
        assert len(client.streams) == 2
        assert "make it shorter" in client.streams[1][1]["content"]
        assert len(slides) == 2

    def test_edit_replaces_outline(self, temp_dir):
        session = make_ready_session(FakeChatClient(chunks=[RESPONSE]))
        answers = iter(["e", "y"])
        cfg = self.make_cfg(temp_dir, approve=True)
        pipeline = Pipeline(cfg, session, console=quiet_console(), input_fn=lambda prompt: next(answers))
        pipeline._edit_in_editor = lambda text: "- Edited slide\n"
        slides, _ = pipeline.run()
        assert slides == [Slide(text="Edited slide")]

    def test_transform_failure_propagates(self, temp_dir):
        session = make_ready_session(FakeChatClient(chunks=["I refuse."]))
        pipeline = Pipeline(self.make_cfg(temp_dir), session, console=quiet_console())
        with pytest.raises(TransformError):
            pipeline.run()

    def test_blank_slide_lines_are_a_transform_failure(self, temp_dir):
        session = make_ready_session(FakeChatClient(chunks=["<answer>\n-   \n</answer>"]))
        pipeline = Pipeline(self.make_cfg(temp_dir), session, console=quiet_console())
        with pytest.raises(TransformError):
            pipeline.run()

    def test_empty_text_rejected(self, temp_dir):
        session = make_ready_session(FakeChatClient(chunks=[RESPONSE]))
        pipeline = Pipeline(self.make_cfg(temp_dir, raw_text="  "), session, console=quiet_console())
        with pytest.raises(ValueError):
            pipeline.run()

    def test_present_uses_surface(self, temp_dir):
        RecordingSurface.instances.clear()
        outline = temp_dir / "outline.txt"
        outline.write_text("- One\n- Two\n- Three\n", encoding="utf-8")
        cfg = self.make_cfg(temp_dir, raw_text="", outline_path=outline, present=True)
        Pipeline(cfg, console=quiet_console(), surface_factory=RecordingSurface).run()
        surface = RecordingSurface.instances[0]
        assert surface.seen == [1]
        assert surface.listener_count() == 0
        assert not surface.is_fullscreen
