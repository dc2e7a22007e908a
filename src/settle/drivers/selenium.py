"""Selenium adapter: RemoteElement handles over a WebDriver.

A SeleniumElementHandle is a locator plus the WebElement it resolved to.
Queries (is_displayed, rect, text, ...) act on that bound element, so a
re-rendered DOM surfaces as StaleElementReferenceException, which the
signature policy classifies as INVALIDATED.

The generation token is the id of whatever element the locator resolves to
*now*. When the page swaps the element out, the generation changes and the
StalenessTracker marks the handle STALE; reacquire() returns a fresh handle
for the same locator.

Page-level waits run on a SeleniumPageHandle:

    page_loaded()    document.readyState == "complete"
    ajax_complete()  no jQuery requests in flight (pages without jQuery
                     count as idle)

List waits run on a SeleniumElementHandle and count its locator's matches:
element_count_is(n) and element_count_at_least(n).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from settle.contracts.handles import Rect
from settle.contracts.results import ConditionResult
from settle.contracts.specs import Condition
from settle.engine.conditions import convert_driver_error

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement

Locator = tuple[str, str]

logger = structlog.get_logger(__name__)


class SeleniumElementHandle:
    """Handle to a DOM element located by (By.*, value).

    Example:
        from selenium.webdriver.common.by import By

        submit = SeleniumElementHandle(driver, (By.ID, "submit"))
        sync.perform(submit, lambda h: h.click(), wait_spec=..., retry_spec=...,
                     reacquire=submit.reacquire)
    """

    def __init__(self, driver: WebDriver, locator: Locator, element: WebElement | None = None) -> None:
        """
        Args:
            driver: Selenium WebDriver instance
            locator: Tuple of (By.TYPE, value)
            element: Already-resolved element to bind to (resolved lazily if None)
        """
        self._driver = driver
        self._locator = locator
        self._element = element

    @classmethod
    def by_id(cls, driver: WebDriver, element_id: str) -> SeleniumElementHandle:
        return cls(driver, (By.ID, element_id))

    @classmethod
    def by_css(cls, driver: WebDriver, selector: str) -> SeleniumElementHandle:
        return cls(driver, (By.CSS_SELECTOR, selector))

    @property
    def locator(self) -> Locator:
        return self._locator

    @property
    def description(self) -> str:
        by, value = self._locator
        return f"element {by}={value!r}"

    def element(self) -> WebElement:
        """Return the bound WebElement, resolving the locator on first use.

        Raises:
            NoSuchElementException: If the locator matches nothing
        """
        if self._element is None:
            self._element = self._driver.find_element(*self._locator)
        return self._element

    def generation(self) -> str:
        """Id of the element the locator currently resolves to."""
        current: WebElement = self._driver.find_element(*self._locator)
        return current.id

    def reacquire(self) -> SeleniumElementHandle:
        """Return a new, unbound handle for the same locator."""
        logger.debug("reacquiring_element", locator=self.description)
        return SeleniumElementHandle(self._driver, self._locator)

    # RemoteElement queries

    def count(self) -> int:
        """Number of elements the locator matches right now."""
        return len(self._driver.find_elements(*self._locator))

    def is_present(self) -> bool:
        return self.count() > 0

    def is_displayed(self) -> bool:
        return bool(self.element().is_displayed())

    def is_enabled(self) -> bool:
        return bool(self.element().is_enabled())

    def is_selected(self) -> bool:
        return bool(self.element().is_selected())

    def rect(self) -> Rect:
        raw = self.element().rect
        return Rect(x=raw["x"], y=raw["y"], width=raw["width"], height=raw["height"])

    def text(self) -> str:
        return str(self.element().text)

    def attribute(self, name: str) -> str | None:
        value = self.element().get_attribute(name)
        return None if value is None else str(value)

    # Interactions

    def click(self) -> None:
        self.element().click()

    def clear(self) -> None:
        self.element().clear()

    def send_keys(self, text: str) -> None:
        self.element().send_keys(text)

    def __repr__(self) -> str:
        return f"SeleniumElementHandle({self.description})"


READY_STATE_SCRIPT = "return document.readyState"
AJAX_IDLE_SCRIPT = "return (typeof jQuery === 'undefined') || jQuery.active === 0"


class SeleniumPageHandle:
    """Handle to the document loaded in the driver's current window.

    The generation is (window handle, URL): navigating away or switching
    windows makes the handle stale.
    """

    def __init__(self, driver: WebDriver) -> None:
        self._driver = driver

    @property
    def description(self) -> str:
        return "current page"

    def generation(self) -> tuple[str, str]:
        return (self._driver.current_window_handle, self._driver.current_url)

    def execute_script(self, script: str) -> Any:
        return self._driver.execute_script(script)

    def __repr__(self) -> str:
        return "SeleniumPageHandle()"


def page_loaded(name: str = "page_loaded") -> Condition:
    """The document has finished loading (readyState "complete")."""

    def evaluate(page: SeleniumPageHandle) -> ConditionResult:
        try:
            state = page.execute_script(READY_STATE_SCRIPT)
        except WebDriverException as e:
            return convert_driver_error(e)
        if state == "complete":
            return ConditionResult.satisfied(state)
        return ConditionResult.pending()

    return Condition(name=name, evaluate=evaluate)


def ajax_complete(name: str = "ajax_complete") -> Condition:
    """No jQuery AJAX requests are in flight."""

    def evaluate(page: SeleniumPageHandle) -> ConditionResult:
        try:
            idle = page.execute_script(AJAX_IDLE_SCRIPT)
        except WebDriverException as e:
            return convert_driver_error(e)
        return ConditionResult.satisfied() if idle is True else ConditionResult.pending()

    return Condition(name=name, evaluate=evaluate)


def page_ready_conditions() -> tuple[Condition, ...]:
    """Document loaded, then AJAX settled."""
    return (page_loaded(), ajax_complete())


def _count_condition(name: str, accept: Callable[[int], bool]) -> Condition:
    def evaluate(handle: SeleniumElementHandle) -> ConditionResult:
        try:
            count = handle.count()
        except WebDriverException as e:
            return convert_driver_error(e)
        if accept(count):
            return ConditionResult.satisfied(count)
        return ConditionResult.pending()

    return Condition(name=name, evaluate=evaluate)


def element_count_is(expected: int, name: str | None = None) -> Condition:
    """The handle's locator matches exactly expected elements."""
    if expected < 0:
        raise ValueError(f"expected must be >= 0, got {expected}")
    return _count_condition(name or f"element_count_is[{expected}]", lambda count: count == expected)


def element_count_at_least(minimum: int, name: str | None = None) -> Condition:
    """The handle's locator matches minimum elements or more."""
    if minimum < 0:
        raise ValueError(f"minimum must be >= 0, got {minimum}")
    return _count_condition(name or f"element_count_at_least[{minimum}]", lambda count: count >= minimum)
