from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("takahashi")
TQDM_NCOLS = 100


@dataclass
class RunConfig:
    raw_text: str
    out_dir: Path
    outline_path: Optional[Path] = None
    grammar: str = "flat"
    approve: bool = True
    present: bool = False
    verbose: bool = False
    skip_llm_sanity: bool = False
    llm_model: str = "meta/llama-3.1-8b-instruct"
    llm_api_key: str = ""
    llm_base_url: str = "https://integrate.api.nvidia.com/v1"
    init_timeout: float = 60.0
    retries: int = 3
    font_path: Optional[str] = None
    slide_width: int = 1920
    slide_height: int = 1080
