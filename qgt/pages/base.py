"""
画面抽象の基底クラス

各画面は LOCATORS（概念名 → ロケータ仕様）をクラス属性として宣言し、
生成時に自身専用の LocatorRegistry を構築する。
画面インスタンスはシナリオごとに生成し、シナリオ間で共有しない。
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, ClassVar, Mapping, Optional

from ..core.locators import LocatorRegistry
from ..core.waits import wait_for_text, wait_for_visible

if TYPE_CHECKING:
    from ..config import HarnessConfig
    from ..core.driver import Driver

logger = logging.getLogger(__name__)


class Screen:
    """画面抽象の基底クラス。

    サブクラスは NAME と LOCATORS を定義する。
    """

    NAME: ClassVar[str] = "screen"
    LOCATORS: ClassVar[Mapping[str, Any]] = {}

    def __init__(
        self,
        driver: Driver,
        config: Optional[HarnessConfig] = None,
        abort: Optional[asyncio.Event] = None,
    ) -> None:
        """画面を初期化する。

        Args:
            driver: ブラウザ操作の Driver
            config: ハーネス設定（省略時はデフォルト値）
            abort: セットされると画面内のすべての待機を中断するイベント
        """
        if config is None:
            from ..config import HarnessConfig

            config = HarnessConfig()
        self._driver = driver
        self._config = config
        self._abort = abort
        self._locators = LocatorRegistry(self.NAME, driver, self.LOCATORS)

    @property
    def locators(self) -> LocatorRegistry:
        """この画面のロケータレジストリを返す。"""
        return self._locators

    # -------------------------------------------------------------------
    # 単一操作
    # -------------------------------------------------------------------

    async def _click(self, concept: str) -> None:
        logger.info("click: %s", self._locators.describe(concept))
        await self._driver.click(self._locators.resolve(concept))

    async def _fill(self, concept: str, text: str) -> None:
        logger.info("fill: %s ← %r", self._locators.describe(concept), text)
        await self._driver.fill(self._locators.resolve(concept), text)

    # -------------------------------------------------------------------
    # 単一読み取り
    # -------------------------------------------------------------------

    async def _text(self, concept: str) -> Optional[str]:
        """概念の描画テキストを 1 回読み取る。要素が無い場合は None。"""
        return await self._driver.text_of(self._locators.resolve(concept))

    async def _count(self, concept: str) -> int:
        return await self._driver.count(self._locators.resolve(concept))

    async def _is_visible(self, concept: str) -> bool:
        elements = self._locators.resolve(concept)
        if await self._driver.count(elements) == 0:
            return False
        return await self._driver.is_visible(elements)

    # -------------------------------------------------------------------
    # 待機付き検証
    # -------------------------------------------------------------------

    async def _expect_visible(self, concept: str, timeout: Optional[int] = None) -> None:
        await wait_for_visible(
            self._driver,
            self._locators.resolve(concept),
            timeout=self._config.timeout_ms if timeout is None else timeout,
            description=self._locators.describe(concept),
            abort=self._abort,
        )

    async def _expect_text(
        self,
        concept: str,
        text: str,
        *,
        exact: bool = False,
        timeout: Optional[int] = None,
    ) -> str:
        return await wait_for_text(
            self._driver,
            self._locators.resolve(concept),
            text,
            exact=exact,
            timeout=self._config.timeout_ms if timeout is None else timeout,
            description=self._locators.describe(concept),
            abort=self._abort,
        )

    async def _wait_for_url(self, pattern: str) -> None:
        await self._driver.wait_for_url(pattern, self._config.navigation_timeout_ms)
