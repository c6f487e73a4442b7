"""
クエスト画面のテスト（FakeDriver 使用）

FakeQuestApp はクリック後、数回の読み取りを経てから状態を反映する。
画面メソッドが固定スリープではなくポーリングで反映を待つことを検証する。
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import FakeDriver, FakeQuestApp
from qgt.config import HarnessConfig
from qgt.core.locators import ConfigurationError
from qgt.core.snapshot import MalformedStateError, QuestSnapshot, RewardCounts
from qgt.core.waits import ConditionTimeoutError, ConditionViolatedError, IterationLimitError
from qgt.pages import QuestScreen
from qgt.pages.quest import INVALID_ACTION_TEXT


@pytest.fixture
def quest(quest_driver: FakeDriver, fast_config: HarnessConfig) -> QuestScreen:
    return QuestScreen(quest_driver, fast_config)


# ===========================================================================
# 読み取り
# ===========================================================================

class TestReadState:

    async def test_baseline(self, quest: QuestScreen) -> None:
        assert await quest.current_progress() == 30
        assert await quest.progress_text() == "Progress: 30% Defect-Free"
        assert await quest.reward_counts() == RewardCounts()
        assert await quest.last_alert_text() is None

    async def test_snapshot(self, quest: QuestScreen, quest_app: FakeQuestApp) -> None:
        quest_app.gold = 20
        quest_app.notification = "Custom action performed: x"

        assert await quest.snapshot() == QuestSnapshot(
            progress=30,
            rewards=RewardCounts(gold=20),
            alert_text="Custom action performed: x",
        )

    async def test_malformed_progress_raises(self, quest: QuestScreen, quest_app: FakeQuestApp) -> None:
        """解析できない進捗テキストは 0 ではなく MalformedStateError。"""
        quest_app.malformed_progress = True

        with pytest.raises(MalformedStateError) as exc_info:
            await quest.current_progress()
        assert exc_info.value.raw == "Progress: ??% Defect-Free"

    async def test_malformed_progress_is_not_retried(
        self, quest: QuestScreen, quest_app: FakeQuestApp,
    ) -> None:
        quest_app.malformed_progress = True
        with pytest.raises(MalformedStateError):
            await quest.wait_for_progress(40)

    async def test_missing_counter_raises(self, quest: QuestScreen, quest_app: FakeQuestApp) -> None:
        quest_app.route = "landing"
        with pytest.raises(MalformedStateError):
            await quest.gold_coins()

    async def test_unregistered_concept(self, quest: QuestScreen) -> None:
        with pytest.raises(ConfigurationError):
            quest.locators.resolve("boss_health")

    async def test_quest_details(self, quest: QuestScreen) -> None:
        assert await quest.quest_name() == "QA Quest: Go Go Game"
        assert await quest.quest_description() == "New Game the best"
        await quest.verify_quest_details("Go Go Game", "New Game the best")

    async def test_quest_details_mismatch(self, quest: QuestScreen) -> None:
        with pytest.raises(ConditionTimeoutError):
            await quest.verify_quest_details("Other Game", "New Game the best")

    async def test_warriors(self, quest: QuestScreen) -> None:
        assert await quest.warriors_count() == 3
        assert await quest.warrior_name(0) == "Warrior 1: Bug Hunter"
        assert await quest.warrior_name(2) == "Warrior 3: Test Mage"
        assert await quest.warrior_description(1) == "Protects the codebase from regressions"
        await quest.verify_warriors(["Bug Hunter", "Code Guardian", "Test Mage"])
        await quest.verify_warrior_details("Bug Hunter")


# ===========================================================================
# 進捗
# ===========================================================================

class TestProgress:

    async def test_fix_bug_from_baseline(self, quest: QuestScreen, quest_app: FakeQuestApp) -> None:
        """30% から Fix Bug で 40%、テキストに "40%" を含むこと。"""
        result = await quest.change_progress(quest.fix_bug, 10, verify_text=True)

        assert (result.baseline, result.observed) == (30, 40)
        assert "40%" in await quest.progress_text()
        assert quest_app.clicks == ["Fix Bug"]

    async def test_find_bug(self, quest: QuestScreen) -> None:
        result = await quest.change_progress(quest.find_bug, -10)
        assert result.observed == 20

    async def test_action_returns_before_update(self, quest: QuestScreen, quest_app: FakeQuestApp) -> None:
        """操作は 1 回のクリックのみで、反映を待たずに戻ること。"""
        await quest.fix_bug()
        assert quest_app.progress == 30

    async def test_drive_to_victory(self, quest: QuestScreen, quest_app: FakeQuestApp) -> None:
        assert await quest.fix_bugs_until_victory() == 100
        await quest.verify_victory()
        assert quest_app.clicks.count("Fix Bug") == 7

    async def test_fix_after_victory_stays_at_max(self, quest: QuestScreen) -> None:
        await quest.fix_bugs_until_victory()

        result = await quest.change_progress(quest.fix_bug, 10)

        assert result.expected == 100
        assert result.observed == 100
        assert await quest.fix_bugs_until_victory() == 100

    async def test_fix_after_victory_detects_overshoot(
        self, quest_app: FakeQuestApp, fast_config: HarnessConfig,
    ) -> None:
        """上限で Fix Bug した後、遅れて 100% を越えた場合は失敗になること。"""
        quest_app.clamp = False
        quest = QuestScreen(FakeDriver(quest_app), fast_config)
        assert await quest.fix_bugs_until_victory() == 100

        with pytest.raises(ConditionViolatedError) as exc_info:
            await quest.change_progress(quest.fix_bug, 10)
        assert exc_info.value.last_snapshot == 110

    async def test_unclamped_delta_does_not_hold(
        self, quest: QuestScreen, fast_config: HarnessConfig,
    ) -> None:
        """クランプされない変化では保持確認を行わないこと。"""
        quest._config = replace(fast_config, settle_ms=60_000)
        result = await quest.change_progress(quest.fix_bug, 10)
        assert result.observed == 40

    async def test_hold_progress(self, quest: QuestScreen) -> None:
        assert await quest.hold_progress(30) == 30

    async def test_drive_to_failure(self, quest: QuestScreen) -> None:
        assert await quest.find_bugs_until_failure() == 0
        await quest.verify_failure()
        assert (await quest.change_progress(quest.find_bug, -10)).observed == 0

    async def test_victory_not_shown_before_max(self, quest: QuestScreen, fast_config: HarnessConfig) -> None:
        quest._config = replace(fast_config, timeout_ms=20)
        with pytest.raises(ConditionTimeoutError):
            await quest.verify_victory()

    @pytest.mark.parametrize("start", [0, 10, 30, 70, 100])
    async def test_reset_progress(self, quest: QuestScreen, quest_app: FakeQuestApp, start: int) -> None:
        quest_app.progress = start
        assert await quest.reset_progress() == 30
        assert quest_app.progress == 30

    async def test_stuck_progress_times_out_with_last_snapshot(
        self, quest_driver: FakeDriver, quest_app: FakeQuestApp, fast_config: HarnessConfig,
    ) -> None:
        quest_app.stuck = True
        quest = QuestScreen(quest_driver, replace(fast_config, timeout_ms=30))

        with pytest.raises(ConditionTimeoutError) as exc_info:
            await quest.fix_bugs_until_victory()
        assert exc_info.value.last_snapshot == 30

    async def test_iteration_cap(
        self, quest_driver: FakeDriver, fast_config: HarnessConfig,
    ) -> None:
        quest = QuestScreen(quest_driver, replace(fast_config, max_iterations=3))

        with pytest.raises(IterationLimitError) as exc_info:
            await quest.fix_bugs_until_victory()
        assert exc_info.value.last_snapshot == 60

    async def test_custom_progress_bounds(
        self, quest_driver: FakeDriver, fast_config: HarnessConfig,
    ) -> None:
        """進捗の上限は設定で変更できること。"""
        quest = QuestScreen(quest_driver, replace(fast_config, progress_max=50))
        assert await quest.fix_bugs_until_victory() == 50


# ===========================================================================
# 報酬
# ===========================================================================

class TestRewards:

    async def test_each_reward_button(self, quest: QuestScreen) -> None:
        gold = await quest.change_reward(quest.claim_bonus, "gold", 10)
        artifacts = await quest.change_reward(quest.obtain_artifact, "artifacts", 1)
        days_off = await quest.change_reward(quest.earn_days_off, "days_off", 5)

        assert (gold.observed, artifacts.observed, days_off.observed) == (10, 1, 5)
        assert await quest.reward_counts() == RewardCounts(gold=10, artifacts=1, days_off=5)

    async def test_relative_to_baseline(self, quest: QuestScreen, quest_app: FakeQuestApp) -> None:
        quest_app.gold = 40
        result = await quest.change_reward(quest.claim_bonus, "gold", 10)
        assert (result.baseline, result.observed) == (40, 50)


# ===========================================================================
# カスタムアクション・アラート
# ===========================================================================

class TestCustomActions:

    async def test_valid_action(self, quest: QuestScreen) -> None:
        await quest.submit_custom_action("Perform special test")
        await quest.verify_custom_action_notification("Perform special test")
        assert await quest.last_alert_text() == "Custom action performed: Perform special test"

    async def test_empty_action(self, quest: QuestScreen) -> None:
        """空のアクションは "Please enter a valid action"（解析エラーではない）。"""
        await quest.submit_custom_action("")
        await quest.verify_empty_action_notification()
        assert await quest.last_alert_text() == INVALID_ACTION_TEXT

    async def test_verify_alert_predicate(self, quest: QuestScreen) -> None:
        await quest.submit_custom_action("Run regression")
        text = await quest.verify_alert(
            lambda t: t is not None and "Run regression" in t, "カスタム通知",
        )
        assert text.endswith("Run regression")

    async def test_alerts_cleared_by_reload(self, quest: QuestScreen, quest_driver: FakeDriver) -> None:
        await quest.submit_custom_action("x")
        await quest_driver.reload()
        assert await quest.last_alert_text() is None
