# 画面抽象モジュール
# ランディング・設定・クエストの各画面を提供

from .base import Screen
from .configuration import ConfigurationScreen
from .landing import LandingScreen
from .quest import QuestScreen

__all__ = [
    "ConfigurationScreen",
    "LandingScreen",
    "QuestScreen",
    "Screen",
]
