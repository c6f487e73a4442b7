"""
設定画面 — クエスト名・説明の入力と冒険開始

"Initiate QA Adventure" で設定を確定し、"Embark on Testing" でクエスト画面へ遷移する。
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.waits import wait_for_visible
from .base import Screen

logger = logging.getLogger(__name__)

PAGE_TITLE = "QA Adventure Configuration"

# 設定画面の URL（確定後も同じ画面に留まる）
CONFIG_URL_PATTERN = r"quest-config"
# クエスト画面の URL（"quest-config" には一致しない）
QUEST_URL_PATTERN = r"/quest(?!-config)"


class ConfigurationScreen(Screen):
    """クエスト設定画面。"""

    NAME = "configuration"
    LOCATORS = {
        "quest_name_input": {"role": "textbox", "name": "Test Quest Name:"},
        "quest_description_input": {"role": "textbox", "name": "Test Quest Description:"},
        "initiate_button": {"css": "button", "text": "Initiate QA Adventure"},
        "embark_button": {"css": "button", "text": "Embark on Testing"},
        "page_title": {"role": "heading", "name": PAGE_TITLE},
        "config_form": {"css": "form.quest-config"},
        "error_message": {"css": ".error-message"},
        "warrior_selection": {"css": ".warrior-selection"},
        "warrior_options": {"css": ".warrior-option"},
        "selected_warrior": {"css": ".selected-warrior"},
    }

    # -------------------------------------------------------------------
    # 操作
    # -------------------------------------------------------------------

    async def configure_quest(self, name: str, description: str) -> None:
        """クエスト名と説明を入力する。"""
        await self._fill("quest_name_input", name)
        await self._fill("quest_description_input", description)

    async def initiate_adventure(self) -> None:
        """"Initiate QA Adventure" をクリックし、設定画面の URL を確認する。"""
        await self._click("initiate_button")
        await self._wait_for_url(CONFIG_URL_PATTERN)

    async def embark_on_test(self) -> None:
        """"Embark on Testing" をクリックし、クエスト画面への遷移を待機する。"""
        await self._click("embark_button")
        await self._wait_for_url(QUEST_URL_PATTERN)
        logger.info("クエスト画面へ遷移しました")

    async def select_warrior(self, warrior_name: str) -> None:
        """名前でウォリアーを選択する。"""
        option = self._driver.filter(self._locators.resolve("warrior_options"), warrior_name)
        await wait_for_visible(
            self._driver,
            option,
            timeout=self._config.timeout_ms,
            description=f"ウォリアー '{warrior_name}'",
            abort=self._abort,
        )
        logger.info("select warrior: %s", warrior_name)
        await self._driver.click(option)

    async def complete_configuration(
        self,
        name: str,
        description: str,
        warrior_name: Optional[str] = None,
    ) -> None:
        """設定を入力してクエスト画面まで進む。"""
        await self.configure_quest(name, description)
        if warrior_name:
            await self.select_warrior(warrior_name)
        await self.initiate_adventure()
        await self.embark_on_test()

    # -------------------------------------------------------------------
    # 読み取り
    # -------------------------------------------------------------------

    async def selected_warrior(self) -> str:
        return (await self._text("selected_warrior") or "").strip()

    async def warrior_options_count(self) -> int:
        return await self._count("warrior_options")

    async def is_form_valid(self) -> bool:
        """エラーメッセージが表示されていなければ True。"""
        return not await self._is_visible("error_message")

    async def error_message(self) -> str:
        """表示中のエラーメッセージを返す。表示されていなければ空文字列。"""
        if not await self._is_visible("error_message"):
            return ""
        return (await self._text("error_message") or "").strip()

    # -------------------------------------------------------------------
    # 検証
    # -------------------------------------------------------------------

    async def verify_loaded(self) -> None:
        """設定画面が表示されていることを検証する。"""
        await self._expect_visible("page_title")
        await self._expect_text("page_title", PAGE_TITLE, exact=True)
        await self._expect_visible("quest_name_input")
        await self._expect_visible("quest_description_input")
        logger.info("設定画面を確認しました")
