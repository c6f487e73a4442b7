"""
シナリオ群 — 組み込みシナリオの一覧と選択
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..core.locators import ConfigurationError
from ..core.runner import Scenario
from .quest_suite import QUEST_SCENARIOS

__all__ = ["QUEST_SCENARIOS", "all_scenarios", "select_scenarios"]


def all_scenarios() -> list[Scenario]:
    """組み込みシナリオを定義順に返す。"""
    return list(QUEST_SCENARIOS)


def select_scenarios(
    names: Optional[Iterable[str]] = None,
    tags: Optional[Iterable[str]] = None,
    scenarios: Optional[Iterable[Scenario]] = None,
) -> list[Scenario]:
    """名前・タグでシナリオを絞り込む。

    names と tags の両方が空なら全件を返す。両方指定した場合は和集合。

    Raises:
        ConfigurationError: 存在しないシナリオ名が指定された場合
    """
    pool = list(scenarios) if scenarios is not None else all_scenarios()
    wanted_names = set(names or ())
    wanted_tags = set(tags or ())

    unknown = wanted_names - {s.name for s in pool}
    if unknown:
        raise ConfigurationError(f"未知のシナリオです: {', '.join(sorted(unknown))}")

    if not wanted_names and not wanted_tags:
        return pool
    return [
        s for s in pool
        if s.name in wanted_names or wanted_tags.intersection(s.tags)
    ]
