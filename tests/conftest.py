"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

ブラウザを起動せずに画面・ポーラ・Runner を動かすため、
QA Guild アプリケーションをメモリ上で模擬する FakeQuestApp と、
それを操作する FakeDriver（Driver Protocol 実装）を提供する。

FakeQuestApp の状態変化（進捗・報酬・勝敗アラート）はクリック直後には反映されず、
数回の読み取り（tick）の後に反映される。これにより実アプリの非同期描画を再現する。
"""

from __future__ import annotations

import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from hypothesis import strategies as st

from qgt.config import HarnessConfig
from qgt.core.locators import (
    CssLocator,
    LabelLocator,
    LocatorSpec,
    PlaceholderLocator,
    RoleLocator,
    TestIdLocator,
    TextLocator,
)

BASE_URL = "http://localhost:3000"

WARRIORS = [
    ("Warrior 1: Bug Hunter", "Finds bugs in the darkest corners"),
    ("Warrior 2: Code Guardian", "Protects the codebase from regressions"),
    ("Warrior 3: Test Mage", "Casts automated test spells"),
]


# ---------------------------------------------------------------------------
# 模擬 DOM ノード
# ---------------------------------------------------------------------------

@dataclass
class FakeNode:
    """模擬 DOM ノード。

    selectors には、このノードに一致する CSS セレクタ文字列を列挙する。
    """

    text: str = ""
    selectors: tuple[str, ...] = ()
    role: Optional[str] = None
    name: Optional[str] = None
    test_id: Optional[str] = None
    label: Optional[str] = None
    placeholder: Optional[str] = None
    visible: bool = True
    on_click: Optional[Callable[[], None]] = None
    on_fill: Optional[Callable[[str], None]] = None


@dataclass
class _Pending:
    ticks: int
    apply: Callable[[], None]


# ---------------------------------------------------------------------------
# 模擬アプリケーション
# ---------------------------------------------------------------------------

class FakeQuestApp:
    """QA Guild アプリケーションのメモリ上の模擬実装。

    Args:
        lag: 状態変化が描画に反映されるまでの読み取り回数
        stuck: True なら Fix Bug / Find Bug が何も変化させない
        malformed_progress: True なら進捗テキストに数値を含めない
        clamp: False なら進捗率を 0〜100 に収めない（上限を越える不具合の再現）
    """

    def __init__(
        self,
        lag: int = 2,
        stuck: bool = False,
        malformed_progress: bool = False,
        clamp: bool = True,
    ) -> None:
        self.lag = lag
        self.stuck = stuck
        self.malformed_progress = malformed_progress
        self.clamp = clamp

        self.url = "about:blank"
        self.route = "blank"
        self.quest_name = ""
        self.quest_description = ""
        self.initiated = False
        self.selected_warrior = ""
        self.custom_action = ""

        self.progress = 30
        self.gold = 0
        self.artifacts = 0
        self.days_off = 0
        self.notification = ""
        self.victory = False
        self.failure = False

        self.clicks: list[str] = []
        self.reloads = 0
        self._pending: list[_Pending] = []

    # -------------------------------------------------------------------
    # 時間経過
    # -------------------------------------------------------------------

    def tick(self) -> None:
        """保留中の状態変化を 1 段階進め、期限の来たものを反映する。"""
        remaining = []
        for pending in self._pending:
            pending.ticks -= 1
            if pending.ticks <= 0:
                pending.apply()
            else:
                remaining.append(pending)
        self._pending = remaining

    def _later(self, apply: Callable[[], None]) -> None:
        if self.lag <= 0:
            apply()
        else:
            self._pending.append(_Pending(self.lag, apply))

    # -------------------------------------------------------------------
    # 画面遷移
    # -------------------------------------------------------------------

    def goto(self, path: str) -> None:
        self.url = path if path.startswith("http") else f"{BASE_URL}{path}"
        if self.url.rstrip("/") == BASE_URL:
            self.route = "landing"
        elif "quest-config" in self.url:
            self.route = "config"
        elif "/quest" in self.url:
            self.route = "quest"

    def reload(self) -> None:
        self.reloads += 1
        self._pending.clear()
        self.notification = ""
        self.victory = False
        self.failure = False

    # -------------------------------------------------------------------
    # クエスト操作
    # -------------------------------------------------------------------

    def _set_progress(self, value: int) -> None:
        self.progress = max(0, min(100, value)) if self.clamp else value
        if self.progress >= 100:
            self.victory = True
        if self.progress <= 0:
            self.failure = True

    def _change_progress(self, delta: int) -> None:
        if self.stuck:
            return
        self._later(lambda: self._set_progress(self.progress + delta))

    def _add_reward(self, attr: str, amount: int) -> None:
        self._later(lambda: setattr(self, attr, getattr(self, attr) + amount))

    def _submit_action(self) -> None:
        if self.custom_action.strip():
            self.notification = f"Custom action performed: {self.custom_action}"
        else:
            self.notification = "Please enter a valid action"

    def _embark(self) -> None:
        if self.initiated:
            self.goto("/quest")

    # -------------------------------------------------------------------
    # ノード構築
    # -------------------------------------------------------------------

    def nodes(self) -> list[FakeNode]:
        """現在の画面に存在するノードを返す。"""
        if self.route == "landing":
            return self._landing_nodes()
        if self.route == "config":
            return self._config_nodes()
        if self.route == "quest":
            return self._quest_nodes()
        return []

    def _button(self, text: str, on_click: Callable[[], None]) -> FakeNode:
        def _click() -> None:
            self.clicks.append(text)
            on_click()

        return FakeNode(text=text, selectors=("button",), role="button", name=text, on_click=_click)

    def _landing_nodes(self) -> list[FakeNode]:
        return [
            FakeNode(text="Legion QA Guild Signup", selectors=("h1",), role="heading",
                     name="Legion QA Guild Signup"),
            FakeNode(text="Join the guild of testers", selectors=(".description", "p")),
            FakeNode(selectors=(".hero-image", "img")),
            self._button("Start your testing quest", lambda: self.goto("/quest-config")),
            self._button("Improve your skill", lambda: None),
            FakeNode(text="© Legion QA Guild", selectors=("footer",)),
        ]

    def _config_nodes(self) -> list[FakeNode]:
        def _fill_name(text: str) -> None:
            self.quest_name = text

        def _fill_description(text: str) -> None:
            self.quest_description = text

        def _initiate() -> None:
            self.initiated = True

        nodes = [
            FakeNode(text="QA Adventure Configuration", selectors=("h1",), role="heading",
                     name="QA Adventure Configuration"),
            FakeNode(text="", selectors=("form.quest-config",)),
            FakeNode(text=self.quest_name, role="textbox", name="Test Quest Name:",
                     label="Test Quest Name:", on_fill=_fill_name),
            FakeNode(text=self.quest_description, role="textbox", name="Test Quest Description:",
                     label="Test Quest Description:", on_fill=_fill_description),
            self._button("Initiate QA Adventure", _initiate),
            self._button("Embark on Testing", self._embark),
            FakeNode(text="", selectors=(".warrior-selection",)),
        ]
        for warrior_name, _ in WARRIORS:
            def _select(name: str = warrior_name) -> None:
                self.selected_warrior = name

            nodes.append(FakeNode(text=warrior_name, selectors=(".warrior-option",), on_click=_select))
        if self.selected_warrior:
            nodes.append(FakeNode(text=self.selected_warrior, selectors=(".selected-warrior",)))
        return nodes

    def _quest_nodes(self) -> list[FakeNode]:
        def _fill_action(text: str) -> None:
            self.custom_action = text

        progress_text = (
            "Progress: ??% Defect-Free" if self.malformed_progress
            else f"Progress: {self.progress}% Defect-Free"
        )
        nodes = [
            FakeNode(text=f"QA Quest: {self.quest_name}", selectors=("h2",), role="heading",
                     name=f"QA Quest: {self.quest_name}"),
            FakeNode(text=self.quest_description, selectors=("p",)),
            FakeNode(selectors=(".progress-container",)),
            FakeNode(selectors=("#progressBarFill",)),
            FakeNode(text=progress_text, selectors=(".progress-text",)),
            FakeNode(text=self.notification, selectors=("#customAlertMessage",)),
            FakeNode(text=str(self.gold), selectors=("#goldCount",)),
            FakeNode(text=str(self.artifacts), selectors=("#artifactCount",)),
            FakeNode(text=str(self.days_off), selectors=("#honorCount",)),
            self._button("Fix Bug", lambda: self._change_progress(10)),
            self._button("Find Bug", lambda: self._change_progress(-10)),
            self._button("Claim Bonus", lambda: self._add_reward("gold", 10)),
            self._button("Obtain QA Artifact", lambda: self._add_reward("artifacts", 1)),
            self._button("Earn Days Off", lambda: self._add_reward("days_off", 5)),
            FakeNode(text=self.custom_action, role="textbox", name="Enter custom QA action",
                     placeholder="Enter custom QA action", on_fill=_fill_action),
            self._button("Submit Action", self._submit_action),
            FakeNode(
                text=" ".join(name for name, _ in WARRIORS),
                selectors=(".warriors-list",),
            ),
        ]
        for warrior_name, description in WARRIORS:
            nodes.append(FakeNode(text=f"{warrior_name} {description}",
                                  selectors=(".warriors-list .warrior-item",)))
            nodes.append(FakeNode(text=warrior_name, selectors=(".warrior-item .warrior-name",)))
            nodes.append(FakeNode(text=description, selectors=(".warrior-item .warrior-description",)))
        nodes.append(FakeNode(text=WARRIORS[0][0], selectors=(".warrior-details",)))

        if self.victory:
            nodes.append(FakeNode(text="🎉 Victory! All defects vanquished! 🎉", selectors=(".alert",)))
        if self.failure:
            nodes.append(FakeNode(text="💀 Quest Failed! The bugs have taken over. 💀",
                                  selectors=(".alert",)))
        return nodes


# ---------------------------------------------------------------------------
# 模擬 Driver
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FakeElements:
    """遅延評価される要素集合。"""

    spec: LocatorSpec
    has_text: tuple[str, ...] = ()
    index: Optional[int] = None


def _matches(node: FakeNode, spec: LocatorSpec) -> bool:
    if isinstance(spec, TestIdLocator):
        return node.test_id == spec.testId
    if isinstance(spec, RoleLocator):
        if node.role != spec.role:
            return False
        if spec.name is None:
            return True
        if node.name is None:
            return False
        if spec.exact:
            return node.name == spec.name
        return spec.name.lower() in node.name.lower()
    if isinstance(spec, LabelLocator):
        return node.label is not None and spec.label in node.label
    if isinstance(spec, PlaceholderLocator):
        return node.placeholder is not None and spec.placeholder in node.placeholder
    if isinstance(spec, CssLocator):
        if spec.css not in node.selectors:
            return False
        return spec.text is None or spec.text in node.text
    if isinstance(spec, TextLocator):
        if spec.exact:
            return node.text.strip() == spec.text
        return spec.text in node.text
    return False


class FakeDriver:
    """FakeQuestApp を操作する Driver 実装。"""

    def __init__(self, app: Optional[FakeQuestApp] = None) -> None:
        self.app = app or FakeQuestApp()
        self.screenshots: list[Path] = []
        self.url_waits: list[str] = []

    def _evaluate(self, elements: FakeElements) -> list[FakeNode]:
        nodes = [n for n in self.app.nodes() if _matches(n, elements.spec)]
        for text in elements.has_text:
            nodes = [n for n in nodes if text in n.text]
        if elements.index is not None:
            return nodes[elements.index:elements.index + 1]
        return nodes

    def _first(self, elements: FakeElements) -> FakeNode:
        nodes = self._evaluate(elements)
        if not nodes:
            raise TimeoutError(f"要素が見つかりません: {elements.spec!r}")
        return nodes[0]

    async def navigate(self, url: str) -> None:
        self.app.goto(url)

    def query(self, spec: LocatorSpec) -> FakeElements:
        return FakeElements(spec)

    def nth(self, elements: FakeElements, index: int) -> FakeElements:
        return FakeElements(elements.spec, elements.has_text, index)

    def filter(self, elements: FakeElements, has_text: str) -> FakeElements:
        return FakeElements(elements.spec, elements.has_text + (has_text,), elements.index)

    async def count(self, elements: FakeElements) -> int:
        return len(self._evaluate(elements))

    async def click(self, elements: FakeElements) -> None:
        node = self._first(elements)
        if node.on_click is not None:
            node.on_click()

    async def fill(self, elements: FakeElements, text: str) -> None:
        node = self._first(elements)
        if node.on_fill is None:
            raise RuntimeError(f"入力できない要素です: {elements.spec!r}")
        node.on_fill(text)

    async def text_of(self, elements: FakeElements) -> Optional[str]:
        self.app.tick()
        nodes = self._evaluate(elements)
        return nodes[0].text if nodes else None

    async def is_visible(self, elements: FakeElements) -> bool:
        nodes = self._evaluate(elements)
        return bool(nodes) and nodes[0].visible

    async def wait_for_url(self, pattern: str, timeout: int) -> None:
        self.url_waits.append(pattern)
        if not re.search(pattern, self.app.url):
            raise TimeoutError(f"URL が /{pattern}/ に一致しません（現在: {self.app.url}）")

    async def reload(self) -> None:
        self.app.reload()

    async def screenshot(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x89PNG")
        self.screenshots.append(path)


@dataclass
class FakeSessionFactory:
    """シナリオごとに新しい FakeQuestApp を生成するセッションファクトリ。"""

    app_options: dict[str, Any] = field(default_factory=dict)
    drivers: list[FakeDriver] = field(default_factory=list)

    @asynccontextmanager
    async def __call__(self, config: HarnessConfig):
        driver = FakeDriver(FakeQuestApp(**self.app_options))
        self.drivers.append(driver)
        yield driver


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def fast_config(tmp_path: Path) -> HarnessConfig:
    """ポーリング間隔を短くしたテスト用設定。"""
    return HarnessConfig(
        base_url=BASE_URL,
        timeout_ms=1000,
        interval_ms=1,
        navigation_timeout_ms=100,
        settle_ms=20,
        artifacts_dir=tmp_path / "artifacts",
    )


@pytest.fixture
def app() -> FakeQuestApp:
    return FakeQuestApp()


@pytest.fixture
def driver(app: FakeQuestApp) -> FakeDriver:
    return FakeDriver(app)


@pytest.fixture
def quest_app() -> FakeQuestApp:
    """設定済みでクエスト画面にいる FakeQuestApp。"""
    app = FakeQuestApp()
    app.quest_name = "Go Go Game"
    app.quest_description = "New Game the best"
    app.initiated = True
    app.goto("/quest")
    return app


@pytest.fixture
def quest_driver(quest_app: FakeQuestApp) -> FakeDriver:
    return FakeDriver(quest_app)


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

def progress_values() -> st.SearchStrategy[int]:
    """0〜100 の 10 刻みの進捗率。"""
    return st.integers(min_value=0, max_value=10).map(lambda n: n * 10)


def deltas() -> st.SearchStrategy[int]:
    """進捗・報酬の変化量。"""
    return st.integers(min_value=-50, max_value=50)
