"""Debug service: per-stage image dump and pipeline logging.

When ``RTD_DEBUG=1`` is set (or a directory is passed on the command line),
DebugService creates a session directory and records every intermediate
grid of the detection pipeline. Without an explicit directory sessions go
under the current working directory::

    .tests/debug/session_YYYYMMDD_HHMMSS/
        pipeline.log
        out_grey.png
        out_mser_mask.png
        out_canny_edges.png
        out_edge_mser_intersection.png
        out_gradient_grown.png
        out_edge_enhanced_mser.png
        out_stroke_width.png
        out_filtered_stroke_width.png
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

_DEBUG_SUBDIR = os.path.join(".tests", "debug")


def is_debug_enabled() -> bool:
    return os.environ.get("RTD_DEBUG", "0") == "1"


def to_displayable(grid: np.ndarray) -> np.ndarray:
    """Convert a grid to uint8 for saving, stretching non-byte ranges to 0..255."""
    if grid.dtype == np.uint8:
        return grid
    arr = grid.astype(np.float64)
    top = float(arr.max()) if arr.size else 0.0
    if top <= 0:
        return np.zeros(grid.shape, dtype=np.uint8)
    return np.clip(arr * (255.0 / top), 0, 255).astype(np.uint8)


class DebugService:
    def __init__(self, root: str | None = None) -> None:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        root = root or os.path.join(os.getcwd(), _DEBUG_SUBDIR)
        self._session_dir = os.path.join(root, f"session_{ts}")
        os.makedirs(self._session_dir, exist_ok=True)

        log_path = os.path.join(self._session_dir, "pipeline.log")
        self._log_file = open(log_path, "w", encoding="utf-8")  # noqa: SIM115
        self._stage_count = 0

        self.log("SESSION", f"started at {ts}")
        logger.info("Debug session dir: %s", self._session_dir)

    @property
    def session_dir(self) -> str:
        return self._session_dir

    # ------------------------------------------------------------------
    # Pipeline logging
    # ------------------------------------------------------------------

    def log(self, tag: str, text: str) -> None:
        ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        self._log_file.write(f"{ts}  [{tag}]  {text}\n")
        self._log_file.flush()

    # ------------------------------------------------------------------
    # Stage saving
    # ------------------------------------------------------------------

    def save_stage(self, name: str, grid: np.ndarray) -> str:
        """Write one pipeline stage as ``out_<name>.png`` and return its path."""
        self._stage_count += 1
        path = os.path.join(self._session_dir, f"out_{name}.png")
        Image.fromarray(to_displayable(grid)).save(path)
        self.log("STAGE", f"{self._stage_count:02d} {name} {grid.shape[1]}x{grid.shape[0]}")
        return path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        self.log("SESSION", "ended")
        self._log_file.close()
