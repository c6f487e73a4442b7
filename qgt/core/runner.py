"""
Runner — シナリオ実行エンジン

シナリオ（setup + 順序付きステップ + teardown）を実行し、
ステップごとの結果とシナリオ全体の合否を返す。

主な機能:
  - Scenario / ScenarioStep: シナリオ定義
  - ScenarioContext: シナリオ専用の Driver と画面インスタンス
  - StepResult / ScenarioResult: 実行結果データクラス
  - ScenarioRunner: 逐次実行・並列実行（asyncio ベース）

各シナリオは新しいブラウザセッションと新しい画面インスタンスで実行され、
シナリオ間で UI 状態を共有しない。最初の失敗でシナリオを打ち切り、
自動リトライは行わない（状態のポーリング自体がリトライである）。
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    Awaitable,
    Callable,
    Literal,
    Optional,
)

from .driver import BrowserSession

if TYPE_CHECKING:
    from ..config import HarnessConfig
    from ..pages import ConfigurationScreen, LandingScreen, QuestScreen
    from .driver import Driver

logger = logging.getLogger(__name__)

StepFn = Callable[["ScenarioContext"], Awaitable[None]]
SessionFactory = Callable[["HarnessConfig"], AsyncContextManager["Driver"]]


# ---------------------------------------------------------------------------
# シナリオ定義
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScenarioStep:
    """シナリオ内の 1 ステップ（操作と待機・検証の組）。

    Attributes:
        name: ステップ名
        run: ScenarioContext を受け取る非同期関数
    """

    name: str
    run: StepFn


@dataclass(frozen=True)
class Scenario:
    """エンドツーエンドのシナリオ定義。

    Attributes:
        name: シナリオ名（一意）
        steps: 順序付きステップ
        description: 説明
        setup: ベースライン画面状態を確立する関数（毎回実行される）
        teardown: 後処理（失敗時も実行される）
        tags: 選択実行用のタグ
    """

    name: str
    steps: tuple[ScenarioStep, ...]
    description: str = ""
    setup: Optional[StepFn] = None
    teardown: Optional[StepFn] = None
    tags: tuple[str, ...] = ()


class ScenarioContext:
    """シナリオ 1 件分の実行コンテキスト。

    画面インスタンスはここで生成し、他のシナリオとは共有しない。
    abort は各画面に渡され、画面内のすべての待機から参照される。
    """

    def __init__(
        self,
        driver: Driver,
        config: HarnessConfig,
        abort: Optional[asyncio.Event] = None,
    ) -> None:
        from ..pages import ConfigurationScreen, LandingScreen, QuestScreen

        self.driver = driver
        self.config = config
        self.abort = abort
        self.landing: LandingScreen = LandingScreen(driver, config, abort)
        self.configuration: ConfigurationScreen = ConfigurationScreen(driver, config, abort)
        self.quest: QuestScreen = QuestScreen(driver, config, abort)


# ---------------------------------------------------------------------------
# 結果データクラス
# ---------------------------------------------------------------------------

Status = Literal["passed", "failed", "error"]


@dataclass
class StepResult:
    """単一ステップの実行結果。

    Attributes:
        step_name: ステップ名
        step_index: ステップのインデックス（setup は -1）
        status: 実行結果（passed / failed / error / skipped）
        duration_ms: 実行時間（ミリ秒）
        error: エラーメッセージ（失敗時のみ）
        error_type: 例外クラス名（失敗時のみ）
        screenshot_path: 失敗時スクリーンショットのパス
    """

    step_name: str
    step_index: int
    status: Literal["passed", "failed", "error", "skipped"] = "passed"
    duration_ms: float = 0.0
    error: Optional[str] = None
    error_type: Optional[str] = None
    screenshot_path: Optional[Path] = None


@dataclass
class ScenarioResult:
    """シナリオ全体の実行結果。

    Attributes:
        scenario_name: シナリオ名
        status: 全体結果（passed / failed / error）
        reason: 失敗理由（"<例外クラス名>: <メッセージ>"）
        steps: 各ステップの実行結果
        duration_ms: 全体実行時間（ミリ秒）
        artifacts_dir: 成果物ディレクトリ
        started_at: 実行開始日時
        finished_at: 実行終了日時
    """

    scenario_name: str
    status: Status = "passed"
    reason: Optional[str] = None
    steps: list[StepResult] = field(default_factory=list)
    duration_ms: float = 0.0
    artifacts_dir: Optional[Path] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def passed(self) -> bool:
        return self.status == "passed"


# ---------------------------------------------------------------------------
# 直接検証ヘルパー
# ---------------------------------------------------------------------------

def expect_equal(actual: Any, expected: Any, message: str = "") -> None:
    """actual == expected を検証する（ポーリングしない）。

    Raises:
        AssertionError: 一致しない場合
    """
    if actual != expected:
        prefix = f"{message}: " if message else ""
        raise AssertionError(f"{prefix}期待値 {expected!r}、実際 {actual!r}")


def classify_error(exc: BaseException) -> tuple[Status, str]:
    """例外をシナリオ結果のステータスと理由文字列に変換する。

    AssertionError と TimeoutError（ConditionTimeoutError を含む）は
    検証の失敗として failed、それ以外（設定不備・解析失敗・中断等）は error とする。
    """
    status: Status = "failed" if isinstance(exc, (AssertionError, TimeoutError)) else "error"
    return status, f"{type(exc).__name__}: {exc}"


# ---------------------------------------------------------------------------
# セッション生成
# ---------------------------------------------------------------------------

def playwright_session(config: HarnessConfig) -> BrowserSession:
    """設定から Playwright ブラウザセッションを生成する。"""
    return BrowserSession(
        base_url=config.base_url,
        headed=config.headed,
        slow_mo=config.slow_mo,
        viewport_width=config.viewport_width,
        viewport_height=config.viewport_height,
    )


# ---------------------------------------------------------------------------
# ScenarioRunner 本体
# ---------------------------------------------------------------------------

class ScenarioRunner:
    """シナリオ実行エンジン。

    使用例::

        runner = ScenarioRunner(config)
        results = await runner.run_all(scenarios)
    """

    def __init__(
        self,
        config: HarnessConfig,
        session_factory: SessionFactory = playwright_session,
    ) -> None:
        """ScenarioRunner を初期化する。

        Args:
            config: ハーネス設定
            session_factory: 設定を受け取り、Driver を返す非同期コンテキストマネージャを生成する関数
        """
        self._config = config
        self._session_factory = session_factory

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    async def run(
        self,
        scenario: Scenario,
        abort: Optional[asyncio.Event] = None,
    ) -> ScenarioResult:
        """シナリオを 1 件実行し、結果を返す。

        例外は送出せず、すべて ScenarioResult に変換する。
        """
        result = ScenarioResult(
            scenario_name=scenario.name,
            started_at=datetime.now(),
            artifacts_dir=self._config.artifacts_dir / _sanitize_name(scenario.name),
        )
        start_time = time.perf_counter()
        logger.info("シナリオ開始: %s", scenario.name)

        try:
            async with self._session_factory(self._config) as driver:
                context = ScenarioContext(driver, self._config, abort)
                try:
                    await self._execute(scenario, context, result)
                finally:
                    if scenario.teardown is not None:
                        await self._run_teardown(scenario, context, result)
        except Exception as exc:
            # セッションの起動・終了の失敗
            _, reason = classify_error(exc)
            if result.passed:
                result.status = "error"
                result.reason = f"session: {reason}"
            logger.error("シナリオ '%s' のセッションでエラー: %s", scenario.name, exc)

        result.finished_at = datetime.now()
        result.duration_ms = (time.perf_counter() - start_time) * 1000

        if result.passed:
            logger.info("シナリオ成功: %s（%.0fms）", scenario.name, result.duration_ms)
        else:
            logger.error("シナリオ%s: %s — %s", result.status, scenario.name, result.reason)
        return result

    async def run_all(
        self,
        scenarios: list[Scenario],
        abort: Optional[asyncio.Event] = None,
    ) -> list[ScenarioResult]:
        """複数シナリオを並列実行する。

        asyncio.Semaphore で同時実行数を config.workers に制限する。
        結果は scenarios と同じ順序で返す。
        """
        semaphore = asyncio.Semaphore(self._config.workers)

        async def _run_with_semaphore(scenario: Scenario) -> ScenarioResult:
            async with semaphore:
                return await self.run(scenario, abort)

        tasks = [_run_with_semaphore(s) for s in scenarios]
        return list(await asyncio.gather(*tasks))

    # -------------------------------------------------------------------
    # ステップ実行
    # -------------------------------------------------------------------

    async def _execute(
        self,
        scenario: Scenario,
        context: ScenarioContext,
        result: ScenarioResult,
    ) -> None:
        """setup と各ステップを順次実行する。最初の失敗で打ち切る。"""
        if scenario.setup is not None:
            step_result = await self._execute_single_step(
                "setup", -1, scenario.setup, context, result.artifacts_dir,
            )
            result.steps.append(step_result)
            if step_result.status != "passed":
                self._mark_failed(result, step_result)
                return

        for idx, step in enumerate(scenario.steps):
            step_result = await self._execute_single_step(
                step.name, idx, step.run, context, result.artifacts_dir,
            )
            result.steps.append(step_result)
            if step_result.status != "passed":
                self._mark_failed(result, step_result)
                # 後続ステップはスキップ扱い
                for s_idx, rest in enumerate(scenario.steps[idx + 1:], start=idx + 1):
                    result.steps.append(
                        StepResult(step_name=rest.name, step_index=s_idx, status="skipped")
                    )
                return

    async def _execute_single_step(
        self,
        step_name: str,
        step_index: int,
        run: StepFn,
        context: ScenarioContext,
        artifacts_dir: Optional[Path],
    ) -> StepResult:
        """単一ステップを実行する。

        エラー発生時はスクリーンショットを保存し、StepResult.status を
        failed または error にする。
        """
        step_result = StepResult(step_name=step_name, step_index=step_index)
        start_time = time.perf_counter()
        logger.info("ステップ開始: %s", step_name)

        try:
            await run(context)
            step_result.status = "passed"
        except Exception as exc:
            status, _ = classify_error(exc)
            step_result.status = status
            step_result.error = str(exc)
            step_result.error_type = type(exc).__name__
            logger.error(
                "ステップ '%s' (index=%d) でエラー: %s: %s",
                step_name, step_index, type(exc).__name__, exc,
            )
            if artifacts_dir is not None:
                step_result.screenshot_path = await self._capture_failure(
                    context.driver, artifacts_dir, step_index, step_name,
                )

        step_result.duration_ms = (time.perf_counter() - start_time) * 1000
        return step_result

    async def _run_teardown(
        self,
        scenario: Scenario,
        context: ScenarioContext,
        result: ScenarioResult,
    ) -> None:
        try:
            await scenario.teardown(context)
        except Exception as exc:
            logger.warning("teardown でエラー（シナリオ: %s）: %s", scenario.name, exc)
            if result.passed:
                result.status = "error"
                result.reason = f"teardown: {type(exc).__name__}: {exc}"

    def _mark_failed(self, result: ScenarioResult, step: StepResult) -> None:
        result.status = "failed" if step.status == "failed" else "error"
        result.reason = f"[{step.step_name}] {step.error_type}: {step.error}"

    async def _capture_failure(
        self,
        driver: Driver,
        artifacts_dir: Path,
        step_index: int,
        step_name: str,
    ) -> Optional[Path]:
        """失敗時スクリーンショットを保存する。失敗しても例外は送出しない。"""
        path = artifacts_dir / "screenshots" / (
            f"step{max(step_index, 0):03d}_{_sanitize_name(step_name)}_error.png"
        )
        try:
            await driver.screenshot(path)
            return path
        except Exception as ss_exc:
            logger.warning("スクリーンショット保存に失敗: %s", ss_exc)
            return None


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _sanitize_name(name: str) -> str:
    """シナリオ名・ステップ名をファイルシステム安全な文字列に変換する。"""
    sanitized = re.sub(r"[^\w\-]", "_", name)
    return sanitized.strip("_")[:100]
