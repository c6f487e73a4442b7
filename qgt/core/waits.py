"""
待機戦略 — 非同期に変化する UI 状態のポーリング

操作を発行してから UI に反映されるまでの遅延は不定のため、
固定スリープではなく「サンプリング → 述語評価 → 待機」のループで
期待状態への収束を待つ。

主な機能:
  - await_condition: 述語が成立するまで状態をサンプリングする基本プリミティブ
  - wait_for_value: 絶対値での待機
  - wait_for_delta: ベースラインからの相対値での待機（上下限でクランプ）
  - drive_until: 終端状態に達するまで操作を繰り返す（反復回数上限付き）
  - hold_condition: 一定期間、述語が成立し続けることの確認（クランプ境界の検証）
  - wait_for_visible / wait_for_text: 描画に依存する不変条件の待機

サンプリングは副作用を持たない読み取りであるため、何度繰り返しても結果に影響しない。
サンプリング中の例外（MalformedStateError 等）は握りつぶさず即座に伝播する。
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

if TYPE_CHECKING:
    from .driver import Driver

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_INTERVAL_MS = 300
DEFAULT_MAX_ITERATIONS = 20

Sampler = Callable[[], Awaitable[T]]
Predicate = Callable[[T], bool]
Action = Callable[[], Awaitable[Any]]


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class ConditionTimeoutError(TimeoutError):
    """期限までに述語が成立しなかった場合のエラー。

    Attributes:
        description: 期待していた状態の説明
        last_snapshot: 最後に観測した値
        timeout_ms: 待機した時間（ミリ秒）
    """

    def __init__(
        self,
        description: str,
        last_snapshot: Any,
        timeout_ms: int,
        message: Optional[str] = None,
    ) -> None:
        self.description = description
        self.last_snapshot = last_snapshot
        self.timeout_ms = timeout_ms
        super().__init__(
            message
            or f"{timeout_ms}ms 以内に条件が成立しませんでした: {description}"
            f"（最終観測値: {last_snapshot!r}）"
        )


class IterationLimitError(ConditionTimeoutError):
    """drive_until が反復回数の上限に達した場合のエラー。"""

    def __init__(self, description: str, last_snapshot: Any, max_iterations: int) -> None:
        self.max_iterations = max_iterations
        super().__init__(
            description,
            last_snapshot,
            0,
            message=(
                f"{max_iterations} 回の操作で終端状態に達しませんでした: {description}"
                f"（最終観測値: {last_snapshot!r}）"
            ),
        )


class ConditionViolatedError(AssertionError):
    """保持すべき述語が観測期間中に破られた場合のエラー。

    Attributes:
        description: 保持すべき状態の説明
        last_snapshot: 述語を破った観測値
    """

    def __init__(self, description: str, last_snapshot: Any) -> None:
        self.description = description
        self.last_snapshot = last_snapshot
        super().__init__(f"条件が保持されませんでした: {description}（観測値: {last_snapshot!r}）")


class WaitAbortedError(RuntimeError):
    """外部からの中断シグナルで待機が打ち切られた場合のエラー。"""


# ---------------------------------------------------------------------------
# 基本プリミティブ
# ---------------------------------------------------------------------------

async def await_condition(
    sample: Sampler[T],
    predicate: Predicate[T],
    *,
    timeout: int = DEFAULT_TIMEOUT_MS,
    interval: int = DEFAULT_INTERVAL_MS,
    description: str = "条件",
    abort: Optional[asyncio.Event] = None,
) -> T:
    """述語が成立するまで状態をサンプリングする。

    最初のサンプリングは即座に行い、以降は interval ミリ秒ごとに繰り返す。
    期限到達後も最低 1 回はサンプリングしてから失敗とするため、
    timeout=0 は「今この瞬間に成立しているか」の検査になる。

    Args:
        sample: 現在の状態を 1 回読み取る非同期関数
        predicate: 期待状態なら True を返す述語
        timeout: タイムアウト（ミリ秒）
        interval: ポーリング間隔（ミリ秒）
        description: 期待状態の説明（エラーメッセージに使用）
        abort: セットされると待機を中断するイベント

    Returns:
        述語を満たした時点のサンプル値

    Raises:
        ConditionTimeoutError: 期限までに述語が成立しなかった場合
        WaitAbortedError: abort がセットされた場合
    """
    start = time.perf_counter()
    deadline_sec = timeout / 1000.0
    attempts = 0

    while True:
        if abort is not None and abort.is_set():
            raise WaitAbortedError(f"待機が中断されました: {description}")

        snapshot = await sample()
        attempts += 1
        if predicate(snapshot):
            logger.debug(
                "条件成立: %s = %r（%d 回目, %.0fms 経過）",
                description, snapshot, attempts,
                (time.perf_counter() - start) * 1000,
            )
            return snapshot

        elapsed = time.perf_counter() - start
        if elapsed >= deadline_sec:
            raise ConditionTimeoutError(description, snapshot, timeout)

        logger.debug("条件未成立: %s（観測値: %r）", description, snapshot)
        await asyncio.sleep(min(interval / 1000.0, deadline_sec - elapsed))


async def wait_for_value(
    sample: Sampler[T],
    expected: T,
    *,
    timeout: int = DEFAULT_TIMEOUT_MS,
    interval: int = DEFAULT_INTERVAL_MS,
    description: str = "",
    abort: Optional[asyncio.Event] = None,
) -> T:
    """サンプル値が expected と等しくなるまで待機する。"""
    return await await_condition(
        sample,
        lambda value: value == expected,
        timeout=timeout,
        interval=interval,
        description=description or f"値 == {expected!r}",
        abort=abort,
    )


# ---------------------------------------------------------------------------
# 相対値での待機
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeltaResult:
    """wait_for_delta の結果。

    Attributes:
        baseline: 操作前に観測した値
        expected: 期待値（クランプ後）
        observed: 条件成立時に観測した値
    """

    baseline: int
    expected: int
    observed: int


def clamp(value: int, lower: Optional[int] = None, upper: Optional[int] = None) -> int:
    """value を [lower, upper] に収める。None の側は制限しない。"""
    if lower is not None and value < lower:
        return lower
    if upper is not None and value > upper:
        return upper
    return value


async def wait_for_delta(
    sample: Sampler[int],
    action: Action,
    delta: int,
    *,
    lower: Optional[int] = None,
    upper: Optional[int] = None,
    timeout: int = DEFAULT_TIMEOUT_MS,
    interval: int = DEFAULT_INTERVAL_MS,
    description: str = "",
    abort: Optional[asyncio.Event] = None,
) -> DeltaResult:
    """ベースラインを取得して操作を行い、baseline + delta になるまで待機する。

    同じ操作でも開始状態はシナリオにより異なるため、期待値は絶対値ではなく
    操作直前の観測値からの相対値で決める。期待値は [lower, upper] にクランプする。

    Args:
        sample: 整数値を 1 回読み取る非同期関数
        action: 状態を変化させる操作
        delta: 操作による期待変化量
        lower: 値域の下限（None で制限なし）
        upper: 値域の上限（None で制限なし）

    Returns:
        ベースライン・期待値・観測値

    Raises:
        ConditionTimeoutError: 期限までに期待値に達しなかった場合
    """
    baseline = await sample()
    expected = clamp(baseline + delta, lower, upper)
    logger.info("相対待機: %d %+d → %d", baseline, delta, expected)

    await action()
    observed = await wait_for_value(
        sample,
        expected,
        timeout=timeout,
        interval=interval,
        description=description or f"{baseline} {delta:+d} → {expected}",
        abort=abort,
    )
    return DeltaResult(baseline=baseline, expected=expected, observed=observed)


async def hold_condition(
    sample: Sampler[T],
    predicate: Predicate[T],
    *,
    duration: int,
    interval: int = DEFAULT_INTERVAL_MS,
    description: str = "条件",
    abort: Optional[asyncio.Event] = None,
) -> T:
    """述語が duration ミリ秒の間成立し続けることを確認する。

    クランプ境界での操作のように、期待値が操作前の値と同じで
    await_condition では反映前に成立してしまう場合に、遅れて届く変化を検出する。
    最初のサンプリングは即座に行い、期間の経過後にも必ず 1 回サンプリングする。

    Returns:
        最後のサンプル値

    Raises:
        ConditionViolatedError: 期間中に述語が成立しなかった場合
        WaitAbortedError: abort がセットされた場合
    """
    start = time.perf_counter()
    duration_sec = duration / 1000.0
    attempts = 0

    while True:
        if abort is not None and abort.is_set():
            raise WaitAbortedError(f"待機が中断されました: {description}")

        snapshot = await sample()
        attempts += 1
        if not predicate(snapshot):
            raise ConditionViolatedError(description, snapshot)

        elapsed = time.perf_counter() - start
        if elapsed >= duration_sec and attempts >= 2:
            logger.debug("条件保持: %s = %r（%d 回観測）", description, snapshot, attempts)
            return snapshot

        await asyncio.sleep(min(interval / 1000.0, max(duration_sec - elapsed, 0.0)))


# ---------------------------------------------------------------------------
# 終端状態までの駆動
# ---------------------------------------------------------------------------

async def drive_until(
    action: Action,
    sample: Sampler[T],
    predicate: Predicate[T],
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    timeout: int = DEFAULT_TIMEOUT_MS,
    interval: int = DEFAULT_INTERVAL_MS,
    description: str = "終端状態",
    abort: Optional[asyncio.Event] = None,
) -> T:
    """終端述語が成立するまで操作とサンプリングを繰り返す。

    各操作の後は固定スリープではなく、観測値が変化する（または終端述語が
    成立する）まで await_condition で待機する。既に終端状態であれば操作しない。

    Args:
        action: 繰り返す操作
        sample: 状態を 1 回読み取る非同期関数
        predicate: 終端状態なら True を返す述語
        max_iterations: 操作回数の上限
        timeout: 各操作後の状態変化待ちのタイムアウト（ミリ秒）
        interval: ポーリング間隔（ミリ秒）

    Returns:
        終端述語を満たした時点のサンプル値

    Raises:
        IterationLimitError: max_iterations 回操作しても終端に達しなかった場合
        ConditionTimeoutError: 操作後に状態が変化しなかった場合
    """
    current = await sample()
    for iteration in range(max_iterations):
        if predicate(current):
            logger.info("終端状態に到達: %s = %r（操作 %d 回）", description, current, iteration)
            return current

        before = current
        await action()
        current = await await_condition(
            sample,
            lambda value, before=before: value != before or predicate(value),
            timeout=timeout,
            interval=interval,
            description=f"{description} へ向けた変化（{before!r} から）",
            abort=abort,
        )

    if predicate(current):
        return current
    raise IterationLimitError(description, current, max_iterations)


# ---------------------------------------------------------------------------
# 描画待機
# ---------------------------------------------------------------------------

async def wait_for_visible(
    driver: Driver,
    elements: Any,
    *,
    timeout: int = DEFAULT_TIMEOUT_MS,
    interval: int = 100,
    description: str = "要素",
    abort: Optional[asyncio.Event] = None,
) -> None:
    """要素が可視になるまで待機する。

    Raises:
        ConditionTimeoutError: タイムアウト時間内に可視にならなかった場合
    """

    async def _visible() -> bool:
        if await driver.count(elements) == 0:
            return False
        return await driver.is_visible(elements)

    await await_condition(
        _visible,
        bool,
        timeout=timeout,
        interval=interval,
        description=f"{description} が可視",
        abort=abort,
    )


async def wait_for_text(
    driver: Driver,
    elements: Any,
    text: str,
    *,
    exact: bool = False,
    timeout: int = DEFAULT_TIMEOUT_MS,
    interval: int = 100,
    description: str = "要素",
    abort: Optional[asyncio.Event] = None,
) -> str:
    """要素のテキストが text を含む（exact なら一致する）まで待機する。

    Returns:
        条件成立時のテキスト
    """

    def _matches(actual: Optional[str]) -> bool:
        if actual is None:
            return False
        if exact:
            return actual.strip() == text
        return text in actual

    result = await await_condition(
        lambda: driver.text_of(elements),
        _matches,
        timeout=timeout,
        interval=interval,
        description=f"{description} のテキストが {'=' if exact else '⊇'} {text!r}",
        abort=abort,
    )
    return result or ""
