"""Page capability consumed by discovery and booking.

The search and booking code only talks to :class:`BookingPage` and
:class:`PageElement`, so it runs equally against Playwright or a scripted
fake. :class:`PlaywrightPage` is the production adapter.
"""
import logging
from typing import Any, List, Optional, Protocol

from playwright.async_api import ElementHandle, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

logger = logging.getLogger(__name__)

_ANCESTOR_TEXTS_JS = '''
(el, levels) => {
    const texts = [];
    let parent = el.parentElement;
    for (let i = 0; i < levels && parent; i++) {
        texts.push(parent.textContent || '');
        parent = parent.parentElement;
    }
    return texts;
}
'''

_FIND_IN_ANCESTORS_JS = '''
(el, [selector, levels]) => {
    let parent = el.parentElement;
    for (let i = 0; i < levels && parent; i++) {
        const found = parent.querySelector(selector);
        if (found) return (found.textContent || '').trim();
        parent = parent.parentElement;
    }
    return null;
}
'''


class PageElement(Protocol):
    """A handle to one element on the page."""

    async def get_attribute(self, name: str) -> Optional[str]: ...

    async def text(self) -> str: ...

    async def is_visible(self) -> bool: ...

    async def ancestor_texts(self, levels: int) -> List[str]: ...

    async def find_in_ancestors(self, selector: str, levels: int) -> Optional[str]: ...

    async def query_all(self, selector: str) -> List["PageElement"]: ...


class BookingPage(Protocol):
    """The small set of page operations the core needs."""

    async def navigate(self, url: str) -> None: ...

    async def current_text(self) -> str: ...

    async def query_all(self, selector: str) -> List[PageElement]: ...

    async def click(self, element: PageElement) -> None: ...

    async def wait_for(self, selector: str, timeout_ms: int) -> bool: ...

    async def wait_for_idle(self, timeout_ms: int) -> bool: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def set_input_value(self, element: PageElement, value: str) -> None: ...

    async def pause(self, ms: int) -> None: ...


class PlaywrightElement:
    """PageElement backed by a Playwright ElementHandle."""

    def __init__(self, handle: ElementHandle):
        self.handle = handle

    async def get_attribute(self, name: str) -> Optional[str]:
        return await self.handle.get_attribute(name)

    async def text(self) -> str:
        return (await self.handle.text_content() or '').strip()

    async def is_visible(self) -> bool:
        return await self.handle.is_visible()

    async def ancestor_texts(self, levels: int) -> List[str]:
        return await self.handle.evaluate(_ANCESTOR_TEXTS_JS, levels)

    async def find_in_ancestors(self, selector: str, levels: int) -> Optional[str]:
        return await self.handle.evaluate(_FIND_IN_ANCESTORS_JS, [selector, levels])

    async def query_all(self, selector: str) -> List["PlaywrightElement"]:
        handles = await self.handle.query_selector_all(selector)
        return [PlaywrightElement(h) for h in handles]


class PlaywrightPage:
    """BookingPage backed by a Playwright Page."""

    def __init__(self, page: Page, navigation_timeout: int = 30000):
        self.page = page
        self.navigation_timeout = navigation_timeout

    async def navigate(self, url: str) -> None:
        await self.page.goto(url, wait_until='networkidle', timeout=self.navigation_timeout)

    async def current_text(self) -> str:
        return await self.page.inner_text('body')

    async def query_all(self, selector: str) -> List[PlaywrightElement]:
        handles = await self.page.query_selector_all(selector)
        return [PlaywrightElement(h) for h in handles]

    async def click(self, element: PlaywrightElement) -> None:
        await element.handle.scroll_into_view_if_needed()
        await element.handle.click()

    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self.page.wait_for_selector(selector, state='attached', timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            logger.debug(f"Timed out after {timeout_ms}ms waiting for '{selector}' - continuing anyway")
            return False

    async def wait_for_idle(self, timeout_ms: int) -> bool:
        try:
            await self.page.wait_for_load_state('networkidle', timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            logger.debug("Network idle timeout - continuing anyway")
            return False

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def set_input_value(self, element: PlaywrightElement, value: str) -> None:
        await element.handle.fill(value)

    async def pause(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)

    async def screenshot(self, path: str) -> None:
        await self.page.screenshot(path=path, full_page=True)

    async def content(self) -> str:
        return await self.page.content()
