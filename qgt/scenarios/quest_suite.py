"""
クエスト画面シナリオ群

各シナリオは setup でランディング → 設定 → クエスト画面まで進み、
新しいセッション上でベースライン（進捗 30%、報酬 0）を確立してから検証する。
"""

from __future__ import annotations

import logging

from ..core.runner import Scenario, ScenarioContext, ScenarioStep, expect_equal
from ..core.snapshot import RewardCounts
from ..pages.quest import (
    ARTIFACT_REWARD,
    BONUS_GOLD,
    DAYS_OFF_REWARD,
    DEFAULT_PROGRESS,
    FIND_BUG_DELTA,
    FIX_BUG_DELTA,
)

logger = logging.getLogger(__name__)

QUEST_NAME = "Go Go Game"
QUEST_DESCRIPTION = "New Game the best"
CUSTOM_ACTION = "Perform special test"
INVALID_ACTION = ""
WARRIORS = ("Bug Hunter", "Code Guardian", "Test Mage")


# ---------------------------------------------------------------------------
# setup
# ---------------------------------------------------------------------------

async def open_quest(ctx: ScenarioContext) -> None:
    """ランディング画面からクエスト画面まで進む。"""
    await ctx.landing.open()
    await ctx.landing.verify_loaded()
    await ctx.landing.click_start_quest()

    await ctx.configuration.verify_loaded()
    await ctx.configuration.configure_quest(QUEST_NAME, QUEST_DESCRIPTION)
    await ctx.configuration.initiate_adventure()
    await ctx.configuration.embark_on_test()


# ---------------------------------------------------------------------------
# quest-details
# ---------------------------------------------------------------------------

async def _verify_quest_details(ctx: ScenarioContext) -> None:
    await ctx.quest.verify_quest_details(QUEST_NAME, QUEST_DESCRIPTION)


# ---------------------------------------------------------------------------
# progress-tracking
# ---------------------------------------------------------------------------

async def _verify_initial_progress(ctx: ScenarioContext) -> None:
    await ctx.quest.verify_progress(DEFAULT_PROGRESS, f"{DEFAULT_PROGRESS}% Defect-Free")


async def _fix_bug_increases_progress(ctx: ScenarioContext) -> None:
    result = await ctx.quest.change_progress(ctx.quest.fix_bug, FIX_BUG_DELTA, verify_text=True)
    expect_equal(result.observed, result.baseline + FIX_BUG_DELTA, "Fix Bug 後の進捗率")


async def _find_bug_decreases_progress(ctx: ScenarioContext) -> None:
    result = await ctx.quest.change_progress(ctx.quest.find_bug, FIND_BUG_DELTA, verify_text=True)
    expect_equal(result.observed, result.baseline + FIND_BUG_DELTA, "Find Bug 後の進捗率")


async def _reach_victory(ctx: ScenarioContext) -> None:
    await ctx.quest.reset_progress()
    final = await ctx.quest.fix_bugs_until_victory()
    expect_equal(final, ctx.config.progress_max, "勝利時の進捗率")
    await ctx.quest.verify_victory()


async def _progress_clamps_at_max(ctx: ScenarioContext) -> None:
    result = await ctx.quest.change_progress(ctx.quest.fix_bug, FIX_BUG_DELTA)
    expect_equal(result.observed, ctx.config.progress_max, "上限到達後の進捗率")


async def _reach_failure(ctx: ScenarioContext) -> None:
    await ctx.quest.reset_progress()
    final = await ctx.quest.find_bugs_until_failure()
    expect_equal(final, ctx.config.progress_min, "失敗時の進捗率")
    await ctx.quest.verify_failure()


async def _progress_clamps_at_min(ctx: ScenarioContext) -> None:
    result = await ctx.quest.change_progress(ctx.quest.find_bug, FIND_BUG_DELTA)
    expect_equal(result.observed, ctx.config.progress_min, "下限到達後の進捗率")


# ---------------------------------------------------------------------------
# rewards
# ---------------------------------------------------------------------------

async def _verify_initial_rewards(ctx: ScenarioContext) -> None:
    expect_equal(await ctx.quest.reward_counts(), RewardCounts(), "初期報酬")


async def _claim_bonus(ctx: ScenarioContext) -> None:
    await ctx.quest.change_reward(ctx.quest.claim_bonus, "gold", BONUS_GOLD)


async def _obtain_artifact(ctx: ScenarioContext) -> None:
    await ctx.quest.change_reward(ctx.quest.obtain_artifact, "artifacts", ARTIFACT_REWARD)


async def _earn_days_off(ctx: ScenarioContext) -> None:
    await ctx.quest.change_reward(ctx.quest.earn_days_off, "days_off", DAYS_OFF_REWARD)


async def _verify_final_rewards(ctx: ScenarioContext) -> None:
    expect_equal(
        await ctx.quest.reward_counts(),
        RewardCounts(gold=BONUS_GOLD, artifacts=ARTIFACT_REWARD, days_off=DAYS_OFF_REWARD),
        "報酬の合計",
    )


# ---------------------------------------------------------------------------
# action-buttons
# ---------------------------------------------------------------------------

async def _fix_then_find_restores_baseline(ctx: ScenarioContext) -> None:
    baseline = await ctx.quest.current_progress()
    await ctx.quest.fix_bug()
    await ctx.quest.wait_for_progress(baseline + FIX_BUG_DELTA)
    await ctx.quest.find_bug()
    await ctx.quest.wait_for_progress(baseline)


async def _reward_buttons_add_relative(ctx: ScenarioContext) -> None:
    before = await ctx.quest.reward_counts()
    await ctx.quest.change_reward(ctx.quest.claim_bonus, "gold", BONUS_GOLD)
    await ctx.quest.change_reward(ctx.quest.obtain_artifact, "artifacts", ARTIFACT_REWARD)
    await ctx.quest.change_reward(ctx.quest.earn_days_off, "days_off", DAYS_OFF_REWARD)
    expect_equal(
        await ctx.quest.reward_counts(),
        RewardCounts(
            gold=before.gold + BONUS_GOLD,
            artifacts=before.artifacts + ARTIFACT_REWARD,
            days_off=before.days_off + DAYS_OFF_REWARD,
        ),
        "報酬ボタン操作後",
    )


# ---------------------------------------------------------------------------
# custom-actions / custom-alerts
# ---------------------------------------------------------------------------

async def _submit_valid_action(ctx: ScenarioContext) -> None:
    await ctx.quest.submit_custom_action(CUSTOM_ACTION)
    await ctx.quest.verify_custom_action_notification(CUSTOM_ACTION)


async def _submit_empty_action(ctx: ScenarioContext) -> None:
    await ctx.quest.submit_custom_action(INVALID_ACTION)
    await ctx.quest.verify_empty_action_notification()


async def _victory_alert(ctx: ScenarioContext) -> None:
    await ctx.quest.fix_bugs_until_victory()
    await ctx.quest.verify_victory()


async def _failure_alert_after_reload(ctx: ScenarioContext) -> None:
    await ctx.driver.reload()
    await ctx.quest.reset_progress()
    await ctx.quest.find_bugs_until_failure()
    await ctx.quest.verify_failure()


async def _custom_alert_after_reload(ctx: ScenarioContext) -> None:
    await ctx.driver.reload()
    await _submit_valid_action(ctx)


# ---------------------------------------------------------------------------
# qa-warriors
# ---------------------------------------------------------------------------

async def _warriors_listed(ctx: ScenarioContext) -> None:
    await ctx.quest.verify_warriors(WARRIORS)


async def _warrior_names(ctx: ScenarioContext) -> None:
    count = await ctx.quest.warriors_count()
    logger.info("ウォリアー数: %d", count)
    expect_equal(count, len(WARRIORS), "ウォリアー数")
    for i, name in enumerate(WARRIORS):
        expect_equal(
            await ctx.quest.warrior_name(i),
            f"Warrior {i + 1}: {name}",
            f"ウォリアー {i + 1} の名前",
        )


# ---------------------------------------------------------------------------
# シナリオ定義
# ---------------------------------------------------------------------------

def _scenario(name: str, description: str, steps, tags=()) -> Scenario:
    return Scenario(
        name=name,
        description=description,
        setup=open_quest,
        steps=tuple(ScenarioStep(step_name, fn) for step_name, fn in steps),
        tags=tuple(tags),
    )


QUEST_SCENARIOS: tuple[Scenario, ...] = (
    _scenario(
        "quest-details",
        "クエスト名と説明が表示される",
        [("verify-quest-details", _verify_quest_details)],
        tags=("smoke",),
    ),
    _scenario(
        "progress-tracking",
        "Fix Bug / Find Bug で進捗率が ±10% 変化し、100% で勝利・0% で失敗する",
        [
            ("verify-initial-progress", _verify_initial_progress),
            ("fix-bug-increases-progress", _fix_bug_increases_progress),
            ("find-bug-decreases-progress", _find_bug_decreases_progress),
            ("reach-victory", _reach_victory),
            ("progress-clamps-at-max", _progress_clamps_at_max),
            ("reach-failure", _reach_failure),
            ("progress-clamps-at-min", _progress_clamps_at_min),
        ],
        tags=("progress",),
    ),
    _scenario(
        "rewards",
        "報酬ボタンでゴールド +10・アーティファクト +1・休暇 +5",
        [
            ("verify-initial-rewards", _verify_initial_rewards),
            ("claim-bonus", _claim_bonus),
            ("obtain-artifact", _obtain_artifact),
            ("earn-days-off", _earn_days_off),
            ("verify-final-rewards", _verify_final_rewards),
        ],
        tags=("rewards",),
    ),
    _scenario(
        "action-buttons",
        "操作ボタンの効果がベースラインからの相対値で反映される",
        [
            ("fix-then-find-restores-baseline", _fix_then_find_restores_baseline),
            ("reward-buttons-add-relative", _reward_buttons_add_relative),
        ],
        tags=("progress", "rewards"),
    ),
    _scenario(
        "custom-actions",
        "カスタムアクションの送信と空入力の検出",
        [
            ("submit-valid-action", _submit_valid_action),
            ("submit-empty-action", _submit_empty_action),
        ],
        tags=("alerts",),
    ),
    _scenario(
        "custom-alerts",
        "勝利・失敗・カスタムアクションのアラート表示",
        [
            ("victory-alert", _victory_alert),
            ("failure-alert-after-reload", _failure_alert_after_reload),
            ("custom-alert-after-reload", _custom_alert_after_reload),
        ],
        tags=("alerts",),
    ),
    _scenario(
        "qa-warriors",
        "QA ウォリアー 3 名が表示される",
        [
            ("warriors-listed", _warriors_listed),
            ("warrior-names", _warrior_names),
        ],
        tags=("smoke",),
    ),
)
