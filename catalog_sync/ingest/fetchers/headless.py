"""Headless-browser extraction for retailers without a usable API."""

import asyncio
import logging
from typing import Any, List, Optional, Tuple
from urllib.parse import urljoin

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
    TimeoutError as PlaywrightTimeoutError,
    Error as PlaywrightError,
)

from catalog_sync.config import settings
from catalog_sync.ingest.brand_config import BrowserSelectors
from catalog_sync.ingest.schemas import BrowserColor, BrowserProductDetail, ProductExtraDetail

logger = logging.getLogger(__name__)


class PageLoadError(Exception):
    """Page failed to load properly."""
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to load {url}: {reason}")


def split_color_reference(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """'Siyah | 0526/314' -> ('Siyah', '0526/314')."""
    if not text:
        return None, None
    if "|" in text:
        name, _, code = text.partition("|")
        return name.strip() or None, code.strip() or None
    return text.strip() or None, None


def build_extra_detail(
    composition_texts: List[str], care_texts: List[str]
) -> Optional[ProductExtraDetail]:
    """Join composition paragraphs and bulleted care lines; None if the panel was empty."""
    composition = "\n\n".join(t.strip() for t in composition_texts if t and t.strip())
    care = "\n".join(f"\u2022 {t.strip()}" for t in care_texts if t and t.strip())
    if not composition and not care:
        return None
    return ProductExtraDetail(composition=composition or None, care_instructions=care or None)


class BrowserCatalogScraper:
    """Drives Chromium to read category and product pages.

    Every field is read through an ordered list of candidate selectors; the
    first one that matches wins.
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        navigation_timeout: Optional[int] = None,
        page_settle_seconds: Optional[float] = None,
        color_settle_seconds: Optional[float] = None,
        max_colors: Optional[int] = None,
        per_selector_timeout: int = 2000,
    ):
        self.headless = settings.headless_browser if headless is None else headless
        self.navigation_timeout = (navigation_timeout or settings.browser_navigation_timeout_seconds) * 1000
        self.page_settle_seconds = (
            settings.worker_page_settle_seconds if page_settle_seconds is None else page_settle_seconds
        )
        self.color_settle_seconds = (
            settings.worker_color_settle_seconds if color_settle_seconds is None else color_settle_seconds
        )
        self.max_colors = max_colors or settings.worker_max_colors_per_product
        self.per_selector_timeout = per_selector_timeout

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._init_lock = asyncio.Lock()

    async def __aenter__(self) -> "BrowserCatalogScraper":
        await self._ensure_browser()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _ensure_browser(self) -> BrowserContext:
        async with self._init_lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()

            if self._browser is None:
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=[
                        "--disable-blink-features=AutomationControlled",
                        "--disable-dev-shm-usage",
                        "--no-sandbox",
                        "--disable-setuid-sandbox",
                    ],
                )

            if self._context is None:
                self._context = await self._browser.new_context(
                    user_agent=settings.browser_user_agent,
                    viewport={"width": 1366, "height": 900},
                    locale="tr-TR",
                )
            return self._context

    async def close(self):
        """Close browser and cleanup."""
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    # ------------------------------------------------------------------
    # Page helpers
    # ------------------------------------------------------------------

    async def _open(self, url: str) -> Page:
        context = await self._ensure_browser()
        page = await context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout)
        except PlaywrightTimeoutError:
            await page.close()
            raise PageLoadError(url, "Navigation timeout")
        except PlaywrightError as e:
            await page.close()
            raise PageLoadError(url, str(e))
        await asyncio.sleep(self.page_settle_seconds)
        return page

    async def _try_selectors(
        self,
        page: Page,
        selectors: List[str],
        timeout_per_selector: Optional[int] = None,
    ) -> Tuple[Optional[str], Optional[Any]]:
        """
        Try multiple selectors and return the first one that matches.

        Returns:
            Tuple of (successful_selector, element) or (None, None)
        """
        timeout = timeout_per_selector or self.per_selector_timeout
        for i, selector in enumerate(selectors):
            try:
                element = await page.query_selector(selector)
                if element is None:
                    await page.wait_for_selector(selector, timeout=timeout)
                    element = await page.query_selector(selector)
                if element:
                    logger.debug(f"Selector {i+1}/{len(selectors)} matched: {selector[:50]}")
                    return selector, element
            except PlaywrightTimeoutError:
                logger.debug(f"Selector {i+1}/{len(selectors)} timed out: {selector[:50]}")
            except PlaywrightError as e:
                logger.debug(f"Selector {i+1}/{len(selectors)} error: {selector[:50]} - {e}")
        return None, None

    async def _first_text(self, page: Page, selectors: List[str]) -> Optional[str]:
        _, element = await self._try_selectors(page, selectors)
        if element is None:
            return None
        text = await element.inner_text()
        text = " ".join(text.split()) if text else ""
        return text or None

    async def _all_matching(self, page: Page, selectors: List[str]) -> list:
        """Elements of the first selector that matches anything."""
        for selector in selectors:
            elements = await page.query_selector_all(selector)
            if elements:
                return elements
        return []

    async def _dismiss_overlays(self, page: Page, selectors: List[str]) -> None:
        for selector in selectors:
            try:
                button = await page.query_selector(selector)
                if button and await button.is_visible():
                    await button.click(timeout=self.per_selector_timeout)
                    await asyncio.sleep(0.5)
                    logger.debug(f"Dismissed overlay via {selector}")
                    return
            except PlaywrightError as e:
                logger.debug(f"Overlay selector {selector} failed: {e}")

    async def _scroll(self, page: Page, steps: int = 4) -> None:
        """Scroll down in steps so lazy-loaded content renders."""
        for _ in range(steps):
            await page.evaluate("window.scrollBy(0, document.body.scrollHeight / 4)")
            await asyncio.sleep(0.5)
        await page.evaluate("window.scrollTo(0, 0)")

    async def _image_urls(self, page: Page, selectors: List[str]) -> list[str]:
        urls = []
        for element in await self._all_matching(page, selectors):
            src = await element.get_attribute("src") or await element.get_attribute("data-src")
            srcset = await element.get_attribute("srcset")
            if srcset:
                # Largest candidate is listed last
                src = srcset.split(",")[-1].strip().split(" ")[0] or src
            if src and not src.startswith("data:") and src not in urls:
                urls.append(urljoin(page.url, src))
        return urls

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def discover_product_urls(
        self,
        category_url: str,
        selectors: BrowserSelectors,
        limit: Optional[int] = None,
    ) -> list[str]:
        """
        Collect product page URLs from a category page.

        Args:
            category_url: Category listing page
            selectors: Brand selector set
            limit: Maximum URLs to return

        Returns:
            Absolute product URLs in page order
        """
        page = await self._open(category_url)
        try:
            await self._dismiss_overlays(page, selectors.cookie_accept)
            await self._scroll(page, steps=6)

            urls: list[str] = []
            for link in await self._all_matching(page, selectors.product_links):
                href = await link.get_attribute("href")
                if not href:
                    continue
                absolute = urljoin(category_url, href)
                if absolute not in urls:
                    urls.append(absolute)
                if limit and len(urls) >= limit:
                    break

            logger.info(f"Found {len(urls)} product links on {category_url}")
            return urls
        finally:
            await page.close()

    async def scrape_product(self, url: str, selectors: BrowserSelectors) -> BrowserProductDetail:
        """
        Read a product page, switching through its color controls.

        Args:
            url: Product page
            selectors: Brand selector set

        Returns:
            BrowserProductDetail for the normalizer

        Raises:
            PageLoadError: If navigation fails
        """
        page = await self._open(url)
        try:
            await self._dismiss_overlays(page, selectors.cookie_accept)
            await self._scroll(page)

            name = await self._first_text(page, selectors.name)
            price_text = await self._first_text(page, selectors.price)
            color_name, product_code = split_color_reference(
                await self._first_text(page, selectors.product_code)
            )
            description = await self._first_text(page, selectors.description)
            images = await self._image_urls(page, selectors.images)
            sizes = []
            for element in await self._all_matching(page, selectors.sizes):
                label = " ".join((await element.inner_text() or "").split())
                if label and label not in sizes:
                    sizes.append(label)

            extra = await self._scrape_extra_detail(page, selectors)
            colors = await self._scrape_colors(page, selectors)
            if not colors and color_name:
                colors = [BrowserColor(name=color_name, code=product_code, price_text=price_text, images=images)]

            logger.info(
                f"Scraped {url}: name={name!r}, {len(colors)} colors, "
                f"{len(sizes)} sizes, {len(images)} images"
            )
            return BrowserProductDetail(
                url=url,
                name=name,
                price_text=price_text,
                product_code=product_code,
                description=description,
                images=images,
                sizes=sizes,
                colors=colors,
                extra=extra,
            )
        finally:
            await page.close()

    async def _scrape_extra_detail(
        self, page: Page, selectors: BrowserSelectors
    ) -> Optional[ProductExtraDetail]:
        """Open the materials/care panel and read its composition and care lines."""
        _, button = await self._try_selectors(page, selectors.extra_detail_button)
        if button is None:
            return None
        try:
            await button.click(timeout=self.per_selector_timeout)
        except PlaywrightError as e:
            logger.debug(f"Extra detail panel not clickable: {e}")
            return None
        await asyncio.sleep(self.color_settle_seconds)

        composition = [await el.inner_text() for el in await self._all_matching(page, selectors.composition)]
        care = [await el.inner_text() for el in await self._all_matching(page, selectors.care)]
        try:
            await page.keyboard.press("Escape")
        except PlaywrightError as e:
            logger.debug(f"Could not close extra detail panel: {e}")
        return build_extra_detail(composition, care)

    async def _scrape_colors(self, page: Page, selectors: BrowserSelectors) -> list[BrowserColor]:
        """Click each color control (capped) and re-read price, code and images."""
        buttons = (await self._all_matching(page, selectors.color_buttons))[: self.max_colors]
        colors: list[BrowserColor] = []
        for index, button in enumerate(buttons):
            try:
                await button.click(timeout=self.per_selector_timeout)
            except PlaywrightError as e:
                logger.debug(f"Color control {index} not clickable: {e}")
                continue
            await asyncio.sleep(self.color_settle_seconds)

            label = await button.get_attribute("aria-label")
            reference_name, code = split_color_reference(
                await self._first_text(page, selectors.product_code)
            )
            name = (
                reference_name
                or (label.strip() if label else None)
                or await self._first_text(page, selectors.color_name)
            )
            if not name or any(c.name == name for c in colors):
                continue
            colors.append(BrowserColor(
                name=name,
                code=code,
                price_text=await self._first_text(page, selectors.price),
                images=await self._image_urls(page, selectors.images),
            ))
        return colors
