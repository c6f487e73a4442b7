"""
ランディング画面 — QA Guild のトップページ
"""

from __future__ import annotations

import logging
from typing import Optional

from .base import Screen

logger = logging.getLogger(__name__)

PAGE_TITLE = "Legion QA Guild Signup"


class LandingScreen(Screen):
    """トップページ（"Start your testing quest" ボタンのある画面）。"""

    NAME = "landing"
    LOCATORS = {
        "start_quest_button": {"css": "button", "text": "Start your testing quest"},
        "improve_skill_button": {"css": "button", "text": "Improve your skill"},
        "page_title": {"css": "h1"},
        "page_description": {"css": ".description"},
        "hero_image": {"css": ".hero-image"},
        "footer": {"css": "footer"},
    }

    # -------------------------------------------------------------------
    # ナビゲーション
    # -------------------------------------------------------------------

    async def open(self) -> None:
        """トップページへ遷移する。"""
        await self._driver.navigate("/")

    async def click_start_quest(self) -> None:
        """"Start your testing quest" ボタンをクリックする。"""
        await self._click("start_quest_button")

    async def click_improve_skill(self) -> None:
        await self._click("improve_skill_button")

    # -------------------------------------------------------------------
    # 読み取り
    # -------------------------------------------------------------------

    async def page_title(self) -> str:
        return (await self._text("page_title") or "").strip()

    async def page_description(self) -> str:
        return (await self._text("page_description") or "").strip()

    async def is_hero_image_visible(self) -> bool:
        return await self._is_visible("hero_image")

    # -------------------------------------------------------------------
    # 検証
    # -------------------------------------------------------------------

    async def verify_loaded(self) -> None:
        """トップページが表示されていることを検証する。

        Raises:
            ConditionTimeoutError: タイトル・ボタンが期限内に表示されなかった場合
        """
        await self._expect_visible("page_title")
        await self._expect_text("page_title", PAGE_TITLE, exact=True)
        await self._expect_visible("start_quest_button")
        await self._expect_visible("improve_skill_button")
        logger.info("ランディング画面を確認しました")

    async def verify_footer(self, expected_text: Optional[str] = None) -> None:
        """フッターが表示され、expected_text を含むことを検証する。"""
        await self._expect_visible("footer")
        if expected_text:
            await self._expect_text("footer", expected_text)
