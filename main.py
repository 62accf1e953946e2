"""CLI entrypoint for turning free text into a Takahashi-method deck."""
from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from pathlib import Path

from dotenv import load_dotenv

try:
    from .llm import LLMConfig, LLMSession, SessionFailedError, init_llm
    from .logging_utils import setup_logging
    from .outline_utils import GRAMMARS
    from .pipeline import Pipeline
    from .pipeline_common import RunConfig
    from .pipeline_outline import TransformError
except Exception:
    sys.path.append(str(Path(__file__).resolve().parent))
    from llm import LLMConfig, LLMSession, SessionFailedError, init_llm
    from logging_utils import setup_logging
    from outline_utils import GRAMMARS
    from pipeline import Pipeline
    from pipeline_common import RunConfig
    from pipeline_outline import TransformError

logger = logging.getLogger("takahashi")
VERSION = "0.1.0"

DEFAULT_MODEL = "meta/llama-3.1-8b-instruct"
DEFAULT_BASE_URL = "https://integrate.api.nvidia.com/v1"


def print_helper() -> None:
    print("Takahashi help")
    print("")
    print("Quick start:")
    print('  takahashi --text "Short talk about why tests matter" --present')
    print("  takahashi --file notes.txt")
    print("  cat notes.txt | takahashi --no-approve")
    print("  takahashi --outline outline.txt --present")
    print("")
    print("Outline format (one slide per line):")
    print("  - Huge letters")
    print("  - One message")
    print("")
    print("Defaults:")
    print("  Root runs dir: ~/takahashi_runs or $TAKAHASHI_ROOT_DIR")
    print("  Per-run structure: <root>/<text_slug>/outputs")
    print("")
    print("Presentation keys: Enter/n/l next, p/h previous, q quit")
    print("")
    print("Full options:")
    print("  takahashi --help")


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Turn free text into a Takahashi-method slide deck.")
    p.add_argument("--version", action="version", version=f"takahashi {VERSION}")
    src = p.add_mutually_exclusive_group()
    src.add_argument("--text", default=None, help="Free text to convert")
    src.add_argument("--file", default=None, help="Read free text from a UTF-8 file")
    src.add_argument("--outline", default=None, help="Use an existing outline file and skip the LLM")
    p.add_argument("--grammar", choices=GRAMMARS, default="flat", help="Outline grammar (nested keeps indented memos)")
    p.add_argument(
        "--root-dir",
        default=None,
        help="Root directory for all runs (default: $TAKAHASHI_ROOT_DIR or ~/takahashi_runs)",
    )
    p.add_argument("--out-dir", default=None, help="Output directory (overrides --root-dir)")
    p.add_argument("--model", default=None, help=f"Chat model name (default: $TAKAHASHI_MODEL or {DEFAULT_MODEL})")
    p.add_argument("--base-url", default=None, help="OpenAI-compatible endpoint (default: $TAKAHASHI_BASE_URL or NVIDIA NIM)")
    p.add_argument("--font", default=None, help="TrueType font for rendered slides (use a CJK font for Japanese)")
    p.add_argument("--no-approve", action="store_true", help="Skip outline approval loop")
    p.add_argument("--present", action="store_true", help="Start full-screen presentation mode after rendering")
    p.add_argument("--skip-llm-sanity", action="store_true", help="Skip LLM sanity check")
    p.add_argument("--init-timeout", type=float, default=60.0, help="Seconds to wait for the LLM session")
    p.add_argument("--retries", type=int, default=3, help="Retry count for the LLM sanity check")
    p.add_argument("--verbose", action="store_true", help="Verbose logging")
    return p.parse_args(argv)


def _slugify(s: str, max_len: int = 40) -> str:
    s = (s or "").strip()
    s = re.sub(r"[^\w]+", "_", s)
    s = s.strip("_")
    return (s or "deck")[:max_len]


def _read_input(args: argparse.Namespace) -> str:
    if args.text:
        return args.text
    if args.file:
        return Path(args.file).expanduser().read_text(encoding="utf-8")
    if args.outline or sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read()


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if argv and argv[0] == "help":
        print_helper()
        return 0

    env_path = Path(__file__).parent / ".env"
    load_dotenv(env_path, override=False)
    args = parse_args(argv)

    from_stdin = not (args.text or args.file or args.outline)
    raw_text = _read_input(args)
    outline_path = Path(args.outline).expanduser().resolve() if args.outline else None
    if not raw_text.strip() and outline_path is None:
        setup_logging(args.verbose)
        logger.error("Provide input via --text, --file, --outline, or stdin.")
        return 2

    api_key = os.environ.get("NVIDIA_API_KEY", "")
    model = args.model or os.environ.get("TAKAHASHI_MODEL", DEFAULT_MODEL)
    base_url = args.base_url or os.environ.get("TAKAHASHI_BASE_URL", DEFAULT_BASE_URL)

    root_dir = args.root_dir or os.environ.get("TAKAHASHI_ROOT_DIR", "~/takahashi_runs")
    run_name = _slugify(outline_path.stem if outline_path else raw_text.strip().splitlines()[0])
    out_dir = (
        Path(args.out_dir).expanduser().resolve()
        if args.out_dir
        else Path(root_dir).expanduser().resolve() / run_name / "outputs"
    )

    cfg = RunConfig(
        raw_text=raw_text,
        out_dir=out_dir,
        outline_path=outline_path,
        grammar=args.grammar,
        approve=not args.no_approve and not from_stdin,
        present=args.present,
        verbose=args.verbose,
        skip_llm_sanity=args.skip_llm_sanity,
        llm_model=model,
        llm_api_key=api_key,
        llm_base_url=base_url,
        init_timeout=args.init_timeout,
        retries=max(1, args.retries),
        font_path=args.font,
    )

    cfg.out_dir.mkdir(parents=True, exist_ok=True)
    log_file = setup_logging(args.verbose, log_path=cfg.out_dir / "run.log")
    if log_file is not None:
        logger.debug("Run log: %s", log_file)

    session = None
    if outline_path is None:
        if not api_key:
            logger.warning("NVIDIA_API_KEY is not set; proceeding without a key.")
        session = LLMSession(
            LLMConfig(model=cfg.llm_model, api_key=cfg.llm_api_key, base_url=cfg.llm_base_url),
            client_factory=init_llm,
            skip_sanity=cfg.skip_llm_sanity,
            sanity_retries=cfg.retries,
        )

    try:
        pipeline = Pipeline(cfg, session)
        slides, paths = pipeline.run()

        print("\nOutput directory:", paths[0].parent)
        print("Slides:", len(slides))
        return 0
    except (TransformError, SessionFailedError) as exc:
        logger.error("%s", exc)
        logger.error("Conversion failed. Check the API key/model and run the same command again to retry.")
        return 1
    except Exception:
        logger.exception("Unhandled error in pipeline run")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
