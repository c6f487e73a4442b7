"""
Driver — ブラウザ操作プリミティブの境界

コア（ロケータ・画面・ポーラ）が利用するブラウザ操作を Protocol として定義し、
Playwright（async API）による実装とシナリオ単位のブラウザセッションを提供する。

主な構成:
  - Driver Protocol: navigate / query / click / fill / text_of / wait_for_url 等
  - PlaywrightDriver: Playwright Page を用いた Driver 実装
  - BrowserSession: ブラウザ・Context・Page のライフサイクル管理
"""

from __future__ import annotations

import enum
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from .locators import (
    ConfigurationError,
    CssLocator,
    LabelLocator,
    LocatorSpec,
    PlaceholderLocator,
    RoleLocator,
    TestIdLocator,
    TextLocator,
)

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Locator, Page

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Driver Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class Driver(Protocol):
    """ブラウザ操作の共通インターフェース。

    query / nth / filter は要素集合を遅延的に表す値を返すだけで、
    ドキュメントへのアクセスは count / click / text_of などの await 時に行われる。
    """

    async def navigate(self, url: str) -> None:
        """URL へ遷移し、DOMContentLoaded まで待機する。"""
        ...

    def query(self, spec: LocatorSpec) -> Any:
        """ロケータ仕様に一致する要素集合を返す。"""
        ...

    def nth(self, elements: Any, index: int) -> Any:
        """要素集合の index 番目（0始まり）を返す。"""
        ...

    def filter(self, elements: Any, has_text: str) -> Any:
        """テキストを含む要素に絞り込んだ要素集合を返す。"""
        ...

    async def count(self, elements: Any) -> int:
        """一致する要素数を返す。"""
        ...

    async def click(self, elements: Any) -> None:
        """要素をクリックする。"""
        ...

    async def fill(self, elements: Any, text: str) -> None:
        """入力欄にテキストを入力する。"""
        ...

    async def text_of(self, elements: Any) -> Optional[str]:
        """要素の描画テキストを返す。要素が無い場合は None。"""
        ...

    async def is_visible(self, elements: Any) -> bool:
        """要素が可視かどうかを返す。"""
        ...

    async def wait_for_url(self, pattern: str, timeout: int) -> None:
        """URL が正規表現に一致するまで待機する。

        Raises:
            TimeoutError: timeout ミリ秒以内に一致しなかった場合
        """
        ...

    async def reload(self) -> None:
        """現在のドキュメントを再読み込みする。"""
        ...

    async def screenshot(self, path: Path) -> None:
        """ページ全体のスクリーンショットを保存する。"""
        ...


# ---------------------------------------------------------------------------
# Playwright 実装
# ---------------------------------------------------------------------------

class PlaywrightDriver:
    """Playwright の Page を用いた Driver 実装。

    要素集合には Playwright の Locator をそのまま使用する。
    """

    def __init__(self, page: Page, base_url: str = "") -> None:
        """PlaywrightDriver を初期化する。

        Args:
            page: Playwright の Page オブジェクト
            base_url: 相対 URL を解決するベース URL
        """
        self._page = page
        self._base_url = base_url.rstrip("/")

    @property
    def page(self) -> Page:
        """操作対象の Page を返す。"""
        return self._page

    async def navigate(self, url: str) -> None:
        if url.startswith("/") and self._base_url:
            url = f"{self._base_url}{url}"
        logger.info("navigate: %s", url)
        await self._page.goto(url)
        await self._page.wait_for_load_state("domcontentloaded")

    def query(self, spec: LocatorSpec) -> Locator:
        """ロケータ仕様を Playwright Locator に変換する。

        Raises:
            ConfigurationError: 未知のロケータ種別の場合
        """
        page = self._page

        if isinstance(spec, TestIdLocator):
            return page.get_by_test_id(spec.testId)

        if isinstance(spec, RoleLocator):
            kwargs: dict = {}
            if spec.name is not None:
                kwargs["name"] = spec.name
            if spec.exact is not None:
                kwargs["exact"] = spec.exact
            return page.get_by_role(spec.role, **kwargs)

        if isinstance(spec, LabelLocator):
            return page.get_by_label(spec.label)

        if isinstance(spec, PlaceholderLocator):
            return page.get_by_placeholder(spec.placeholder)

        if isinstance(spec, CssLocator):
            if spec.text is not None:
                return page.locator(spec.css, has_text=spec.text)
            return page.locator(spec.css)

        if isinstance(spec, TextLocator):
            if spec.exact is not None:
                return page.get_by_text(spec.text, exact=spec.exact)
            return page.get_by_text(spec.text)

        raise ConfigurationError(
            f"未知のロケータ種別です: {type(spec).__name__}"
        )

    def nth(self, elements: Locator, index: int) -> Locator:
        return elements.nth(index)

    def filter(self, elements: Locator, has_text: str) -> Locator:
        return elements.filter(has_text=has_text)

    async def count(self, elements: Locator) -> int:
        return await elements.count()

    async def click(self, elements: Locator) -> None:
        await elements.click()

    async def fill(self, elements: Locator, text: str) -> None:
        await elements.fill(text)

    async def text_of(self, elements: Locator) -> Optional[str]:
        # 0 件の Locator に text_content() を呼ぶと auto-wait でブロックする
        if await elements.count() == 0:
            return None
        return await elements.first.text_content()

    async def is_visible(self, elements: Locator) -> bool:
        return await elements.first.is_visible()

    async def wait_for_url(self, pattern: str, timeout: int) -> None:
        try:
            await self._page.wait_for_url(re.compile(pattern), timeout=timeout)
        except Exception as exc:
            raise TimeoutError(
                f"URL が {timeout}ms 以内に /{pattern}/ に一致しませんでした"
                f"（現在: {self._page.url}）"
            ) from exc

    async def reload(self) -> None:
        logger.info("reload: %s", self._page.url)
        await self._page.reload()
        await self._page.wait_for_load_state("domcontentloaded")

    async def screenshot(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        await self._page.screenshot(path=str(path), full_page=True)


# ---------------------------------------------------------------------------
# ブラウザセッション
# ---------------------------------------------------------------------------

class SessionState(enum.Enum):
    """ブラウザセッションの状態。"""

    IDLE = "idle"
    LAUNCHING = "launching"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class BrowserSession:
    """シナリオ 1 件分の Playwright ブラウザセッション。

    シナリオ間で状態を共有しないよう、シナリオごとに新しい
    Browser / Context / Page を起動する。async with で使用する。

    使用例::

        async with BrowserSession(base_url="http://localhost:3000") as driver:
            await driver.navigate("/")
    """

    def __init__(
        self,
        base_url: str = "",
        headed: bool = False,
        slow_mo: int = 0,
        viewport_width: int = 1280,
        viewport_height: int = 720,
    ) -> None:
        self._base_url = base_url
        self._headed = headed
        self._slow_mo = slow_mo
        self._viewport = {"width": viewport_width, "height": viewport_height}
        self._state: SessionState = SessionState.IDLE
        self._pw_instance: Optional[Any] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._driver: Optional[PlaywrightDriver] = None

    @property
    def state(self) -> SessionState:
        """現在のセッション状態を返す。"""
        return self._state

    @property
    def driver(self) -> Optional[PlaywrightDriver]:
        """アクティブな Driver を返す。非アクティブ時は None。"""
        if self._state != SessionState.ACTIVE:
            return None
        return self._driver

    async def launch(self) -> PlaywrightDriver:
        """ブラウザを起動し、Driver を返す。

        Raises:
            RuntimeError: 既にアクティブなセッションがある場合
        """
        if self._state == SessionState.ACTIVE:
            raise RuntimeError(
                "既にアクティブなセッションがあります。"
                "先に close() を呼んでください。"
            )

        self._state = SessionState.LAUNCHING
        logger.info("ブラウザを起動しています... (headed=%s)", self._headed)

        try:
            from playwright.async_api import async_playwright

            pw = await async_playwright().start()
            self._pw_instance = pw

            self._browser = await pw.chromium.launch(
                headless=not self._headed,
                slow_mo=self._slow_mo,
            )
            self._context = await self._browser.new_context(
                viewport=self._viewport,
                base_url=self._base_url or None,
            )
            page = await self._context.new_page()
            self._driver = PlaywrightDriver(page, base_url=self._base_url)
            self._state = SessionState.ACTIVE
            logger.info("ブラウザを起動しました")
            return self._driver

        except Exception:
            self._state = SessionState.IDLE
            logger.exception("ブラウザの起動に失敗しました")
            await self._shutdown()
            raise

    async def close(self) -> None:
        """ブラウザを終了し、リソースをクリーンアップする。"""
        if self._state in (SessionState.CLOSED, SessionState.CLOSING):
            return

        self._state = SessionState.CLOSING
        logger.info("ブラウザを終了しています...")
        try:
            await self._shutdown()
        finally:
            self._state = SessionState.CLOSED
            logger.info("ブラウザを終了しました")

    async def _shutdown(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
            if self._pw_instance is not None:
                await self._pw_instance.stop()
        except Exception:
            logger.exception("ブラウザの終了中にエラーが発生しました")
        finally:
            self._browser = None
            self._context = None
            self._driver = None
            self._pw_instance = None

    async def __aenter__(self) -> PlaywrightDriver:
        return await self.launch()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
