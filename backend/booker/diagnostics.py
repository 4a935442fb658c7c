"""Optional debug hooks for discovery and booking runs."""
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SearchObserver:
    """No-op observer; subclass to capture snapshots or events."""

    async def on_snapshot(self, page: Any, label: str):
        pass

    def on_event(self, message: str, data: Optional[Dict] = None):
        pass


class DebugSnapshotObserver(SearchObserver):
    """Writes a screenshot and an HTML dump per snapshot label."""

    def __init__(self, directory: str = "./debug"):
        self.directory = Path(directory)
        self.events = []

    async def on_snapshot(self, page: Any, label: str):
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            if hasattr(page, "screenshot"):
                path = self.directory / f"debug-{label}.png"
                await page.screenshot(str(path))
                logger.info(f"Screenshot saved: {path}")
            if hasattr(page, "content"):
                path = self.directory / f"debug-{label}.html"
                path.write_text(await page.content(), encoding="utf-8")
                logger.info(f"HTML saved: {path}")
        except Exception as e:
            logger.warning(f"Could not save debug snapshot '{label}': {e}")

    def on_event(self, message: str, data: Optional[Dict] = None):
        self.events.append((message, data or {}))
        logger.debug(f"[debug] {message} {data or ''}")
