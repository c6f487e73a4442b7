"""
クエスト画面 — 進捗・報酬・アラートが非同期に変化する画面

操作（Fix Bug 等）は 1 回のクリックを発行して即座に戻る。
状態の読み取りは 1 回の読み取りと解析のみを行い、
反映待ちは waits モジュールのポーラに任せる。

進捗テキストの例: "Progress: 40% Defect-Free"
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..core.snapshot import QuestSnapshot, RewardCounts, parse_count, parse_percentage
from ..core.waits import (
    Action,
    DeltaResult,
    Predicate,
    await_condition,
    drive_until,
    hold_condition,
    wait_for_delta,
    wait_for_value,
    wait_for_visible,
)
from .base import Screen

logger = logging.getLogger(__name__)

# 設定直後の進捗率
DEFAULT_PROGRESS = 30

VICTORY_TEXT = "Victory! All defects vanquished!"
FAILURE_TEXT = "💀 Quest Failed! The bugs have taken over. 💀"
INVALID_ACTION_TEXT = "Please enter a valid action"

# 各操作による変化量
FIX_BUG_DELTA = 10
FIND_BUG_DELTA = -10
BONUS_GOLD = 10
ARTIFACT_REWARD = 1
DAYS_OFF_REWARD = 5


class QuestScreen(Screen):
    """クエスト画面。"""

    NAME = "quest"
    LOCATORS = {
        # クエスト詳細
        "quest_name": {"role": "heading", "name": "QA Quest:"},
        "quest_description": {"css": "p"},
        # 進捗
        "progress_bar": {"css": "#progressBarFill"},
        "progress_text": {"text": "% Defect-Free"},
        "progress_container": {"css": ".progress-container"},
        # 通知
        "notification": {"css": "#customAlertMessage"},
        "victory_alert": {"text": "🎉 Victory! All defects"},
        "failure_alert": {"text": "💀 Quest Failed! The bugs"},
        # 報酬
        "gold_coins": {"css": "#goldCount"},
        "artifacts": {"css": "#artifactCount"},
        "days_off": {"css": "#honorCount"},
        # 操作ボタン
        "fix_bug_button": {"role": "button", "name": "Fix Bug"},
        "find_bug_button": {"role": "button", "name": "Find Bug"},
        "claim_bonus_button": {"role": "button", "name": "Claim Bonus"},
        "obtain_artifact_button": {"role": "button", "name": "Obtain QA Artifact"},
        "earn_days_off_button": {"role": "button", "name": "Earn Days Off"},
        # カスタムアクション
        "custom_action_input": {"role": "textbox", "name": "Enter custom QA action"},
        "submit_custom_action": {"role": "button", "name": "Submit Action"},
        # QA ウォリアー
        "warriors_list": {"css": ".warriors-list"},
        "warrior_items": {"css": ".warriors-list .warrior-item"},
        "warrior_names": {"css": ".warrior-item .warrior-name"},
        "warrior_descriptions": {"css": ".warrior-item .warrior-description"},
        "warrior_details": {"css": ".warrior-details"},
    }

    # -------------------------------------------------------------------
    # 操作（1 回のインタラクションのみ）
    # -------------------------------------------------------------------

    async def fix_bug(self) -> None:
        await self._click("fix_bug_button")

    async def find_bug(self) -> None:
        await self._click("find_bug_button")

    async def claim_bonus(self) -> None:
        await self._click("claim_bonus_button")

    async def obtain_artifact(self) -> None:
        await self._click("obtain_artifact_button")

    async def earn_days_off(self) -> None:
        await self._click("earn_days_off_button")

    async def submit_custom_action(self, text: str) -> None:
        """カスタムアクションを入力して送信する。空文字列もそのまま送信する。"""
        await self._fill("custom_action_input", text)
        await self._click("submit_custom_action")

    # -------------------------------------------------------------------
    # 読み取り（1 回の読み取りと解析）
    # -------------------------------------------------------------------

    async def progress_text(self) -> str:
        return (await self._text("progress_text") or "").strip()

    async def current_progress(self) -> int:
        """進捗率を読み取る。

        Raises:
            MalformedStateError: 進捗テキストが "N%" を含まない場合
        """
        value = parse_percentage(await self._text("progress_text"), "progress")
        logger.debug("progress: %d", value)
        return value

    async def gold_coins(self) -> int:
        return parse_count(await self._text("gold_coins"), "gold")

    async def artifacts(self) -> int:
        return parse_count(await self._text("artifacts"), "artifacts")

    async def days_off(self) -> int:
        return parse_count(await self._text("days_off"), "days_off")

    async def reward_counts(self) -> RewardCounts:
        return RewardCounts(
            gold=await self.gold_coins(),
            artifacts=await self.artifacts(),
            days_off=await self.days_off(),
        )

    async def last_alert_text(self) -> Optional[str]:
        """通知欄のテキストを返す。通知が無い・空の場合は None。"""
        text = await self._text("notification")
        if text is None or not text.strip():
            return None
        return text.strip()

    async def snapshot(self) -> QuestSnapshot:
        """進捗・報酬・通知をまとめて読み取る。"""
        return QuestSnapshot(
            progress=await self.current_progress(),
            rewards=await self.reward_counts(),
            alert_text=await self.last_alert_text(),
        )

    async def quest_name(self) -> str:
        return (await self._text("quest_name") or "").strip()

    async def quest_description(self) -> str:
        return (await self._text("quest_description") or "").strip()

    async def warriors_count(self) -> int:
        return await self._count("warrior_items")

    async def warrior_name(self, index: int) -> str:
        names = self._driver.nth(self._locators.resolve("warrior_names"), index)
        return (await self._driver.text_of(names) or "").strip()

    async def warrior_description(self, index: int) -> str:
        descriptions = self._driver.nth(self._locators.resolve("warrior_descriptions"), index)
        return (await self._driver.text_of(descriptions) or "").strip()

    # -------------------------------------------------------------------
    # 状態待機
    # -------------------------------------------------------------------

    async def wait_for_progress(self, expected: int, timeout: Optional[int] = None) -> int:
        """進捗率が expected になるまで待機する。"""
        return await wait_for_value(
            self.current_progress,
            expected,
            timeout=self._config.timeout_ms if timeout is None else timeout,
            interval=self._config.interval_ms,
            description=f"進捗率 == {expected}%",
            abort=self._abort,
        )

    async def change_progress(
        self,
        action: Action,
        delta: int,
        *,
        verify_text: bool = False,
    ) -> DeltaResult:
        """操作を行い、進捗率が baseline + delta（0〜100 にクランプ）になるまで待機する。

        期待値がクランプされた場合は操作前の値と区別できないため、
        続けて settle_ms の間、進捗率がクランプ後の値から動かないことを確認する。

        Args:
            action: 進捗を変化させる操作（fix_bug / find_bug 等）
            delta: 期待変化量
            verify_text: True なら進捗テキストに "N%" が含まれることも検証する
        """
        result = await wait_for_delta(
            self.current_progress,
            action,
            delta,
            lower=self._config.progress_min,
            upper=self._config.progress_max,
            timeout=self._config.timeout_ms,
            interval=self._config.interval_ms,
            description=f"進捗率 {delta:+d}%",
            abort=self._abort,
        )
        if result.expected != result.baseline + delta:
            await self.hold_progress(result.expected)
        if verify_text:
            await self._expect_text("progress_text", f"{result.expected}%")
        return result

    async def hold_progress(self, expected: int) -> int:
        """settle_ms の間、進捗率が expected のまま変化しないことを確認する。

        Raises:
            ConditionViolatedError: expected 以外の進捗率を観測した場合
        """
        return await hold_condition(
            self.current_progress,
            lambda value: value == expected,
            duration=self._config.settle_ms,
            interval=self._config.interval_ms,
            description=f"進捗率 == {expected}% を保持",
            abort=self._abort,
        )

    async def change_reward(self, action: Action, reward: str, delta: int) -> DeltaResult:
        """操作を行い、報酬カウンタ reward が baseline + delta になるまで待機する。

        Args:
            reward: "gold" / "artifacts" / "days_off"
        """
        sample = {
            "gold": self.gold_coins,
            "artifacts": self.artifacts,
            "days_off": self.days_off,
        }[reward]
        return await wait_for_delta(
            sample,
            action,
            delta,
            lower=0,
            timeout=self._config.timeout_ms,
            interval=self._config.interval_ms,
            description=f"{reward} {delta:+d}",
            abort=self._abort,
        )

    async def reset_progress(self, target: int = DEFAULT_PROGRESS) -> int:
        """Fix Bug / Find Bug を繰り返して進捗率を target に戻す。"""
        current = await self.current_progress()
        if current > target:
            return await self._drive(self.find_bug, lambda v: v <= target, f"進捗率 <= {target}%")
        if current < target:
            return await self._drive(self.fix_bug, lambda v: v >= target, f"進捗率 >= {target}%")
        return current

    async def fix_bugs_until_victory(self) -> int:
        """進捗率が上限に達するまで Fix Bug を繰り返す。"""
        upper = self._config.progress_max
        return await self._drive(self.fix_bug, lambda v: v >= upper, f"進捗率 {upper}%")

    async def find_bugs_until_failure(self) -> int:
        """進捗率が下限に達するまで Find Bug を繰り返す。"""
        lower = self._config.progress_min
        return await self._drive(self.find_bug, lambda v: v <= lower, f"進捗率 {lower}%")

    async def _drive(self, action: Action, predicate: Predicate[int], description: str) -> int:
        return await drive_until(
            action,
            self.current_progress,
            predicate,
            max_iterations=self._config.max_iterations,
            timeout=self._config.timeout_ms,
            interval=self._config.interval_ms,
            description=description,
            abort=self._abort,
        )

    # -------------------------------------------------------------------
    # 検証
    # -------------------------------------------------------------------

    async def verify_progress(self, expected_value: int, expected_text: Optional[str] = None) -> None:
        """進捗表示が見えており、進捗率が expected_value であることを検証する。"""
        await self._expect_visible("progress_text")
        if expected_text:
            await self._expect_text("progress_text", expected_text)
        await self.wait_for_progress(expected_value)

    async def verify_victory(self) -> None:
        await self._expect_visible("victory_alert")
        await self._expect_text("victory_alert", VICTORY_TEXT)

    async def verify_failure(self) -> None:
        await self._expect_visible("failure_alert")
        await self._expect_text("failure_alert", FAILURE_TEXT)

    async def verify_custom_action_notification(self, action_text: str) -> None:
        await self._expect_text("notification", action_text)

    async def verify_empty_action_notification(self) -> None:
        """空のカスタムアクション送信時の "Please enter a valid action" を検証する。"""
        await self._expect_text("notification", INVALID_ACTION_TEXT)

    async def verify_alert(
        self, predicate: Predicate[Optional[str]], description: str,
    ) -> Optional[str]:
        """通知テキストが predicate を満たすまで待機する。"""
        return await await_condition(
            self.last_alert_text,
            predicate,
            timeout=self._config.timeout_ms,
            interval=self._config.interval_ms,
            description=description,
            abort=self._abort,
        )

    async def verify_quest_details(self, name: str, description: str) -> None:
        """クエスト名（"QA Quest: <name>"）と説明が表示されていることを検証する。"""
        await self._expect_text("quest_name", f"QA Quest: {name}", exact=True)
        matching = self._driver.filter(self._locators.resolve("quest_description"), description)
        await wait_for_visible(
            self._driver,
            matching,
            timeout=self._config.timeout_ms,
            description=f"クエスト説明 '{description}'",
            abort=self._abort,
        )

    async def verify_warriors(self, names: Iterable[str]) -> None:
        for name in names:
            await self._expect_text("warriors_list", name)

    async def verify_warrior_details(self, warrior_name: str) -> None:
        await self._expect_text("warrior_details", warrior_name)
