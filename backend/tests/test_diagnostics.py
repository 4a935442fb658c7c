"""Tests for debug snapshots."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from booker.diagnostics import DebugSnapshotObserver


def snapshot_page():
    page = MagicMock()
    page.screenshot = AsyncMock()
    page.content = AsyncMock(return_value="<html>calendar</html>")
    return page


@pytest.mark.asyncio
async def test_writes_html_and_screenshot(tmp_path):
    observer = DebugSnapshotObserver(str(tmp_path / "debug"))
    page = snapshot_page()

    await observer.on_snapshot(page, "loaded")

    page.screenshot.assert_awaited_once_with(str(tmp_path / "debug" / "debug-loaded.png"))
    assert (tmp_path / "debug" / "debug-loaded.html").read_text(encoding="utf-8") == "<html>calendar</html>"


@pytest.mark.asyncio
async def test_unusable_directory_does_not_raise(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    observer = DebugSnapshotObserver(str(blocker / "debug"))
    page = snapshot_page()

    await observer.on_snapshot(page, "initial")

    page.screenshot.assert_not_awaited()


def test_events_are_kept():
    observer = DebugSnapshotObserver()

    observer.on_event("view_unavailable", {"step": 1})

    assert observer.events == [("view_unavailable", {"step": 1})]
