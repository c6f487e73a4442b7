# コアモジュール
# ロケータレジストリ、状態スナップショット、Driver、待機戦略、Runner、レポート生成を提供

from .driver import BrowserSession, Driver, PlaywrightDriver
from .locators import ConfigurationError, LocatorRegistry, parse_locator
from .reporting import Reporter
from .runner import (
    Scenario,
    ScenarioContext,
    ScenarioResult,
    ScenarioRunner,
    ScenarioStep,
    StepResult,
    expect_equal,
)
from .snapshot import MalformedStateError, QuestSnapshot, RewardCounts
from .waits import (
    ConditionTimeoutError,
    ConditionViolatedError,
    DeltaResult,
    IterationLimitError,
    WaitAbortedError,
    await_condition,
    drive_until,
    hold_condition,
    wait_for_delta,
    wait_for_value,
)

__all__ = [
    "BrowserSession",
    "ConditionTimeoutError",
    "ConditionViolatedError",
    "ConfigurationError",
    "DeltaResult",
    "Driver",
    "IterationLimitError",
    "LocatorRegistry",
    "MalformedStateError",
    "PlaywrightDriver",
    "QuestSnapshot",
    "Reporter",
    "RewardCounts",
    "Scenario",
    "ScenarioContext",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioStep",
    "StepResult",
    "WaitAbortedError",
    "await_condition",
    "drive_until",
    "expect_equal",
    "hold_condition",
    "parse_locator",
    "wait_for_delta",
    "wait_for_value",
]
