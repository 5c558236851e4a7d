"""File storage helpers."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from modules.utils.image_utils import open_data_uri

logger = logging.getLogger(__name__)


def download_filename(prefix: str = "archi-render", now: Optional[datetime] = None) -> str:
    """File name of the form ``<prefix>-YYYY-MM-DD-HH-MM-SS.png``."""
    stamp = (now or datetime.now()).strftime("%Y-%m-%d-%H-%M-%S")
    return f"{prefix}-{stamp}.png"


class StorageService:
    """Handle saving generated renders for download."""

    def __init__(self, output_dir: Path, max_items: int = 100) -> None:
        self.output_dir = Path(output_dir)
        self.max_items = max_items

    def save_image(self, data_uri: str, prefix: str = "archi-render", now: Optional[datetime] = None) -> Path:
        """Persist a data-URI image as PNG and return the file path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        image = open_data_uri(data_uri)
        target = self.output_dir / download_filename(prefix, now)
        suffix = 1
        while target.exists():
            target = self.output_dir / f"{target.stem.rsplit('_', 1)[0]}_{suffix}.png"
            suffix += 1
        image.save(target, format="PNG")
        logger.info("Saved render to %s", target)
        self.cleanup()
        return target

    def cleanup(self, max_items: Optional[int] = None) -> list[Path]:
        """Keep only the newest ``max_items`` PNG files, returning the removed ones."""
        limit = self.max_items if max_items is None else max_items
        if not self.output_dir.exists():
            return []
        files = sorted(
            self.output_dir.glob("*.png"),
            key=lambda path: path.stat().st_mtime,
            reverse=True,
        )
        removed = files[limit:]
        for path in removed:
            path.unlink(missing_ok=True)
        if removed:
            logger.info("Removed %d old renders from %s", len(removed), self.output_dir)
        return removed
