from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw
from tqdm import tqdm

try:
    from .font_fit import FontFitter, PillowTextMeasurer
    from .models import Slide
    from .outline_utils import serialize_outline
    from .pipeline_common import TQDM_NCOLS, logger
except Exception:
    from font_fit import FontFitter, PillowTextMeasurer
    from models import Slide
    from outline_utils import serialize_outline
    from pipeline_common import TQDM_NCOLS, logger

BACKGROUND = (0, 0, 0)
FOREGROUND = (255, 255, 255)
# Pillow's built-in font only carries Latin glyphs.
DEFAULT_FONT_MAX_CODEPOINT = 0x24F


class Renderer:
    def __init__(self, fitter: Optional[FontFitter] = None, size: Tuple[int, int] = (1920, 1080)) -> None:
        """Initialize.

        Args:
            fitter (FontFitter): must measure with a :class:`PillowTextMeasurer`
            size (Tuple[int, int]): slide size in px

        Returns:
            None:
        """
        self.fitter = fitter or FontFitter(PillowTextMeasurer())
        if not isinstance(self.fitter.measurer, PillowTextMeasurer):
            raise TypeError("Renderer needs a FontFitter backed by PillowTextMeasurer")
        self.size = size

    @staticmethod
    def slugify_filename(s: str, max_len: int = 80) -> str:
        """Slugify filename.

        Args:
            s (str):
            max_len (int):

        Returns:
            str:
        """
        s = (s or "").strip()
        s = re.sub(r"[^\w]+", "_", s)
        s = s.strip("_")
        if not s:
            return "presentation"
        return s[:max_len]

    def check_glyph_coverage(self, slides: Sequence[Slide]) -> bool:
        """Warn when the built-in font is asked to draw non-Latin text."""
        if self.fitter.measurer.font_path:
            return True
        for sl in slides:
            if any(ord(ch) > DEFAULT_FONT_MAX_CODEPOINT for ch in sl.text):
                logger.warning(
                    "Slide %r has characters the built-in font cannot draw; "
                    "pass --font with a TrueType font that covers them (e.g. a CJK font).",
                    sl.text[:40],
                )
                return False
        return True

    def render_slide(self, slide: Slide, path: Path) -> Path:
        width, height = self.size
        measurer: PillowTextMeasurer = self.fitter.measurer
        fit = self.fitter.fit(slide.text, width, height)
        font_size = fit.font_size if fit else 1
        text = fit.text if fit else slide.text
        if fit is not None and not fit.fits:
            logger.warning("Slide text overflows even at %spx: %r", font_size, slide.text[:40])
        font = measurer.load_font(font_size)
        with Image.new("RGB", (width, height), color=BACKGROUND) as img:
            draw = ImageDraw.Draw(img)
            draw.multiline_text(
                (width / 2, height / 2),
                text,
                font=font,
                fill=FOREGROUND,
                anchor="mm",
                align="center",
                spacing=measurer.spacing(font_size),
            )
            img.save(path)
        return path

    def render(self, slides: Sequence[Slide], out_dir: Path, title: str = "") -> List[Path]:
        """Render.

        Args:
            slides (Sequence[Slide]):
            out_dir (Path):
            title (str): used for the deck folder name

        Returns:
            List[Path]: slide images, in deck order
        """
        if not slides:
            raise ValueError("No slides to render")
        deck_dir = Path(out_dir) / self.slugify_filename(title or slides[0].text)
        deck_dir.mkdir(parents=True, exist_ok=True)
        self.check_glyph_coverage(slides)

        outline_path = deck_dir / "outline.txt"
        outline_path.write_text(serialize_outline(slides), encoding="utf-8")
        logger.info("Saved outline: %s", outline_path)

        logger.info("Rendering %s slides...", len(slides))
        paths: List[Path] = []
        for idx, slide in tqdm(
            list(enumerate(slides, 1)),
            desc="Slides",
            unit="slide",
            ncols=TQDM_NCOLS,
            dynamic_ncols=False,
        ):
            paths.append(self.render_slide(slide, deck_dir / f"slide-{idx:03d}.png"))
        return paths
