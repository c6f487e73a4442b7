"""
状態スナップショット — 描画テキストから型付き状態への変換

クエスト画面の観測可能な状態（進捗率・報酬カウンタ・最終アラート）を
不変の値として表現し、描画テキストの解析規約を一か所に集約する。

解析できないテキストは 0 などの既定値に置き換えず、
MalformedStateError を送出する。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

# 進捗テキスト（例: "Progress: 40% Defect-Free"）から数値を取り出す
_PERCENT_PATTERN = re.compile(r"(\d+)\s*%")
# 報酬カウンタ（例: "10", "Gold Coins: 10"）から数値を取り出す
_COUNT_PATTERN = re.compile(r"\d+")


class MalformedStateError(Exception):
    """サンプリングしたテキストを期待する形に解析できなかった場合のエラー。

    Attributes:
        field: 解析対象のフィールド名
        raw: 解析に失敗した生テキスト（要素が無い場合は None）
    """

    def __init__(self, field: str, raw: Optional[str], message: str = "") -> None:
        self.field = field
        self.raw = raw
        detail = message or "数値として解析できません"
        super().__init__(f"{field}: {detail}（取得テキスト: {raw!r}）")


@dataclass(frozen=True)
class RewardCounts:
    """報酬カウンタ。

    Attributes:
        gold: ゴールドコイン数
        artifacts: QA アーティファクト数
        days_off: 休暇日数
    """

    gold: int = 0
    artifacts: int = 0
    days_off: int = 0


@dataclass(frozen=True)
class QuestSnapshot:
    """ある時点のクエスト画面の観測値。

    Attributes:
        progress: 進捗率（0〜100）
        rewards: 報酬カウンタ
        alert_text: 最後に表示されたアラートのテキスト（無い場合は None）
    """

    progress: int
    rewards: RewardCounts
    alert_text: Optional[str] = None


def parse_percentage(raw: Optional[str], field: str = "progress") -> int:
    """進捗テキストから 0〜100 の整数を取り出す。

    Args:
        raw: 描画テキスト
        field: エラーメッセージ用のフィールド名

    Returns:
        進捗率

    Raises:
        MalformedStateError: "N%" を含まない、または 0〜100 の範囲外の場合
    """
    if raw is None:
        raise MalformedStateError(field, raw, "要素のテキストが取得できません")
    match = _PERCENT_PATTERN.search(raw)
    if match is None:
        raise MalformedStateError(field, raw, "'N%' 形式の値が見つかりません")
    value = int(match.group(1))
    if not 0 <= value <= 100:
        raise MalformedStateError(field, raw, f"進捗率 {value} が 0〜100 の範囲外です")
    return value


def parse_count(raw: Optional[str], field: str) -> int:
    """報酬カウンタのテキストから非負整数を取り出す。

    Raises:
        MalformedStateError: 数値を含まない場合
    """
    if raw is None:
        raise MalformedStateError(field, raw, "要素のテキストが取得できません")
    match = _COUNT_PATTERN.search(raw)
    if match is None:
        raise MalformedStateError(field, raw)
    return int(match.group(0))
