from __future__ import annotations

"""Interactive pipeline: free text -> outline -> slides -> images / presentation."""
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from tqdm import tqdm

try:
    from .font_fit import FontFitter, PillowTextMeasurer
    from .llm import LLMSession
    from .models import ReasoningAnswer, SessionState, Slide
    from .outline_utils import has_slide_marker, parse_outline
    from .pipeline_common import RunConfig, TQDM_NCOLS, logger
    from .pipeline_outline import OutlineBuilder, TransformError
    from .pipeline_render import Renderer
    from .presenter import PresentationController
    from .tag_utils import extract_reasoning_answer, iter_extractions
    from .terminal_surface import TerminalSurface
except Exception:
    from font_fit import FontFitter, PillowTextMeasurer
    from llm import LLMSession
    from models import ReasoningAnswer, SessionState, Slide
    from outline_utils import has_slide_marker, parse_outline
    from pipeline_common import RunConfig, TQDM_NCOLS, logger
    from pipeline_outline import OutlineBuilder, TransformError
    from pipeline_render import Renderer
    from presenter import PresentationController
    from tag_utils import extract_reasoning_answer, iter_extractions
    from terminal_surface import TerminalSurface


class Pipeline:
    def __init__(
        self,
        cfg: RunConfig,
        session: Optional[LLMSession] = None,
        console: Optional[Console] = None,
        input_fn: Callable[[str], str] = input,
        surface_factory: Callable[..., TerminalSurface] = TerminalSurface,
    ) -> None:
        """Initialize.

        Args:
            cfg (RunConfig):
            session (LLMSession): not needed when ``cfg.outline_path`` is set
            console (Console):
            input_fn (Callable[[str], str]): prompt reader for the approval loop
            surface_factory (Callable): builds the presentation surface

        Returns:
            None:
        """
        self.cfg = cfg
        self.session = session
        self.console = console or Console()
        self.input_fn = input_fn
        self.surface_factory = surface_factory
        self.fitter = FontFitter(PillowTextMeasurer(cfg.font_path))
        self.renderer = Renderer(self.fitter, size=(cfg.slide_width, cfg.slide_height))
        self.outline_builder = OutlineBuilder(session) if session is not None else None

    def sanity_checks(self) -> None:
        """Function sanity checks.

        Returns:
            None:
        """
        logger.info("Running sanity checks...")
        if self.cfg.outline_path:
            if not self.cfg.outline_path.exists():
                raise FileNotFoundError(f"Outline not found: {self.cfg.outline_path}")
        else:
            if not self.cfg.raw_text.strip():
                raise ValueError("Input text is empty.")
            if self.session is None:
                raise ValueError("An LLM session is required to transform free text.")
        self.cfg.out_dir.mkdir(parents=True, exist_ok=True)

    def ensure_llm_ready(self) -> None:
        session = self.session
        if session.state == SessionState.READY:
            return
        bar = tqdm(total=100, desc="LLM", unit="%", ncols=TQDM_NCOLS, dynamic_ncols=False)

        def _on_progress(fraction: float, label: str) -> None:
            bar.set_postfix_str(label)
            bar.update(max(0, int(fraction * 100) - bar.n))

        unsubscribe = session.add_progress_listener(_on_progress)
        try:
            if session.state in (SessionState.UNINITIALIZED, SessionState.FAILED):
                session.start()
            if not session.wait_until_ready(self.cfg.init_timeout):
                raise TransformError(f"LLM session not ready after {self.cfg.init_timeout:.0f}s.")
        finally:
            unsubscribe()
            bar.close()

    @staticmethod
    def _stream_view(parts: ReasoningAnswer) -> Group:
        panels = []
        if parts.reasoning:
            panels.append(Panel(parts.reasoning, title="Reasoning", border_style="cyan"))
        panels.append(Panel(parts.answer or "...", title="Outline", border_style="green"))
        return Group(*panels)

    def transform_live(self, feedback: str = "", previous: str = "") -> str:
        """Stream one transform round while showing reasoning and outline live."""
        latest = {"raw": ""}

        def _snapshots():
            for snap in self.outline_builder.stream(self.cfg.raw_text, feedback=feedback, previous=previous):
                latest["raw"] = snap
                yield snap

        with Live(console=self.console, auto_refresh=False, transient=True) as live:
            for parts in iter_extractions(_snapshots()):
                live.update(self._stream_view(parts), refresh=True)
        return self.outline_builder.validate(latest["raw"])

    def print_outline(self, response: str) -> None:
        parts = extract_reasoning_answer(response)
        if parts.reasoning:
            self.console.print(Panel(parts.reasoning, title="Reasoning", border_style="cyan", expand=False))
        self.console.print(Panel(parts.answer or "(empty)", title="Outline", border_style="green", expand=False))

    def _edit_in_editor(self, text: str) -> str:
        editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False, encoding="utf-8") as f:
            f.write(text)
            tmp_path = Path(f.name)
        try:
            r = subprocess.run(shlex.split(editor) + [str(tmp_path)])
            if r.returncode != 0:
                logger.warning("Editor exited with %s; keeping the previous outline.", r.returncode)
                return text
            return tmp_path.read_text(encoding="utf-8")
        finally:
            tmp_path.unlink(missing_ok=True)

    def build_outline_with_approval(self, max_rounds: int = 3) -> str:
        """Transform the input and let the user approve, edit or regenerate it.

        Args:
            max_rounds (int): regeneration rounds before the latest outline is used

        Returns:
            str: approved outline text (answer portion only)
        """
        self.ensure_llm_ready()
        logger.info("Converting text to Takahashi outline...")
        outline = extract_reasoning_answer(self.transform_live()).answer

        if not self.cfg.approve:
            return outline

        for _round_no in range(1, max_rounds + 1):
            self.print_outline(outline)
            ans = self.input_fn(
                "\nApprove outline? Type 'y' to approve, 'e' to edit, or type feedback to regenerate: "
            ).strip()
            if ans.lower() in {"y", "yes"}:
                if has_slide_marker(outline):
                    self.console.print("Approved.")
                    return outline
                self.console.print("[red]The outline has no '- text' lines; edit it or give feedback.[/red]")
                continue
            if ans.lower() in {"e", "edit"}:
                outline = self._edit_in_editor(outline)
                continue
            if not ans:
                continue
            self.console.print("\nRegenerating outline based on feedback...\n")
            response = self.transform_live(feedback=ans, previous=outline)
            outline = extract_reasoning_answer(response).answer

        self.console.print("Max rounds reached; proceeding with latest outline.")
        return outline

    def preview(self, slides: List[Slide]) -> None:
        table = Table(title=f"SLIDES ({len(slides)})", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Text", style="bold")
        table.add_column("Memos")
        for i, sl in enumerate(slides, 1):
            table.add_row(f"{i:02d}", sl.text, "\n".join(sl.memos))
        self.console.print(table)

    def present(self, slides: List[Slide]) -> None:
        controller = PresentationController(slides, fitter=self.fitter)
        surface = self.surface_factory(console=self.console)
        logger.info("Presentation mode: Enter/n next, p previous, q quit.")
        surface.run(controller)

    def run(self) -> Tuple[List[Slide], List[Path]]:
        self.sanity_checks()
        if self.cfg.outline_path:
            outline = self.cfg.outline_path.read_text(encoding="utf-8")
        else:
            outline = self.build_outline_with_approval(max_rounds=3)

        slides = parse_outline(outline, grammar=self.cfg.grammar)
        if not slides:
            raise ValueError("The outline contains no slides ('- text' lines).")
        self.preview(slides)

        paths = self.renderer.render(slides, self.cfg.out_dir)
        logger.info("Saved %s slide images to %s", len(paths), paths[0].parent)

        if self.cfg.present:
            self.present(slides)
        return slides, paths
