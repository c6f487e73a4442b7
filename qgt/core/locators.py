"""
ロケータレジストリ — 意味的な UI 概念を Driver クエリへ対応付ける

画面（screen）ごとに「進捗テキスト」「勝利アラート」などの概念名を
ロケータ仕様（LocatorSpec）へ登録し、要求のたびに Driver 経由で
ライブドキュメントへ問い合わせる。

主な機能:
  - LocatorSpec: testId, role(+name), label, placeholder, css(+text), text の各モデル
  - LocatorRegistry: 概念名 → LocatorSpec の登録と遅延解決
  - describe_locator: エラーメッセージ・ログ用の説明文字列生成

解決結果はキャッシュしない。ドキュメントは再描画されている可能性があるため、
resolve() のたびに Driver.query() を呼び出す。
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

if TYPE_CHECKING:
    from .driver import Driver

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class ConfigurationError(Exception):
    """ロケータ定義・設定値が不正な場合のエラー。

    未登録の概念名の解決や、不正なロケータ仕様の登録で送出される。
    プログラム・設定の不備を表すため、リトライはしない。
    """


# ---------------------------------------------------------------------------
# ロケータ仕様モデル
# ---------------------------------------------------------------------------

class _LocatorModel(BaseModel):
    """ロケータ仕様の共通基底。生成後は変更不可。"""

    model_config = ConfigDict(frozen=True, extra="forbid")


class TestIdLocator(_LocatorModel):
    """data-testid 属性によるロケータ。"""

    __test__ = False

    testId: str = Field(..., min_length=1, description="data-testid 属性の値")


class RoleLocator(_LocatorModel):
    """ARIA ロールによるロケータ。

    name を併用すると同一ロールの要素を区別できる。
    exact を True にすると name の完全一致で検索する。
    """

    role: str = Field(..., min_length=1, description="ARIA ロール名（button, textbox, heading 等）")
    name: Optional[str] = Field(default=None, description="アクセシブルネーム")
    exact: Optional[bool] = Field(default=None, description="name の完全一致検索")


class LabelLocator(_LocatorModel):
    """ラベルテキストによるロケータ。"""

    label: str = Field(..., min_length=1, description="ラベルテキスト")


class PlaceholderLocator(_LocatorModel):
    """プレースホルダーテキストによるロケータ。"""

    placeholder: str = Field(..., min_length=1, description="プレースホルダーテキスト")


class CssLocator(_LocatorModel):
    """CSS セレクタによるロケータ。text で絞り込みができる。"""

    css: str = Field(..., min_length=1, description="CSS セレクタ文字列")
    text: Optional[str] = Field(default=None, description="テキスト内容による補助条件")


class TextLocator(_LocatorModel):
    """テキスト内容によるロケータ。"""

    text: str = Field(..., min_length=1, description="テキスト内容")
    exact: Optional[bool] = Field(default=None, description="完全一致検索")


LocatorSpec = Union[
    TestIdLocator,
    RoleLocator,
    LabelLocator,
    PlaceholderLocator,
    CssLocator,
    TextLocator,
]
"""全ロケータ種別の Union 型。"""

_SPEC_TYPES: tuple[type[_LocatorModel], ...] = (
    TestIdLocator,
    RoleLocator,
    LabelLocator,
    PlaceholderLocator,
    CssLocator,
    TextLocator,
)

# 辞書形式の仕様を判別するためのキー → モデル対応
_DISCRIMINATORS: dict[str, type[_LocatorModel]] = {
    "testId": TestIdLocator,
    "role": RoleLocator,
    "label": LabelLocator,
    "placeholder": PlaceholderLocator,
    "css": CssLocator,
}


def parse_locator(value: Any) -> LocatorSpec:
    """LocatorSpec モデルまたは辞書からロケータ仕様を生成する。

    辞書の場合は判別キー（testId, role, label, placeholder, css）で
    モデルを決定し、いずれも無く text のみを持つ場合は TextLocator とする。

    Args:
        value: LocatorSpec インスタンス、または仕様辞書

    Returns:
        検証済みの LocatorSpec

    Raises:
        ConfigurationError: 仕様として解釈できない場合
    """
    if isinstance(value, _SPEC_TYPES):
        return value

    if not isinstance(value, Mapping):
        raise ConfigurationError(
            f"ロケータ仕様として解釈できません: {value!r}"
        )

    model: Optional[type[_LocatorModel]] = None
    for key, candidate in _DISCRIMINATORS.items():
        if key in value:
            model = candidate
            break
    if model is None and "text" in value:
        model = TextLocator
    if model is None:
        raise ConfigurationError(
            f"ロケータ種別を判別できません（キー: {sorted(value)}）"
        )

    try:
        return model(**value)
    except ValidationError as exc:
        raise ConfigurationError(
            f"ロケータ仕様が不正です: {dict(value)!r} — {exc.errors()[0]['msg']}"
        ) from exc


def describe_locator(spec: LocatorSpec) -> str:
    """ロケータ仕様の人間可読な説明文字列を生成する。"""
    if isinstance(spec, TestIdLocator):
        return f"testId='{spec.testId}'"
    if isinstance(spec, RoleLocator):
        if spec.name:
            return f"role='{spec.role}', name='{spec.name}'"
        return f"role='{spec.role}'"
    if isinstance(spec, LabelLocator):
        return f"label='{spec.label}'"
    if isinstance(spec, PlaceholderLocator):
        return f"placeholder='{spec.placeholder}'"
    if isinstance(spec, CssLocator):
        if spec.text:
            return f"css='{spec.css}', text='{spec.text}'"
        return f"css='{spec.css}'"
    if isinstance(spec, TextLocator):
        return f"text='{spec.text}'"
    return f"unknown({type(spec).__name__})"


# ---------------------------------------------------------------------------
# LocatorRegistry 本体
# ---------------------------------------------------------------------------

class LocatorRegistry:
    """画面単位の概念名 → ロケータ仕様の登録簿。

    登録は生成時のみ行い、以降は読み取り専用。
    resolve() は毎回 Driver に問い合わせ、要素数の妥当性は呼び出し側が判断する。

    使用例::

        registry = LocatorRegistry("quest", driver, {
            "progress_text": {"text": "% Defect-Free"},
            "fix_bug": {"role": "button", "name": "Fix Bug"},
        })
        elements = registry.resolve("progress_text")
    """

    def __init__(
        self,
        screen: str,
        driver: Driver,
        specs: Mapping[str, Any],
    ) -> None:
        """LocatorRegistry を初期化する。

        Args:
            screen: 画面名（エラーメッセージ・ログ用）
            driver: クエリを発行する Driver
            specs: 概念名 → LocatorSpec（または仕様辞書）

        Raises:
            ConfigurationError: 概念名が空、または仕様が不正な場合
        """
        parsed: dict[str, LocatorSpec] = {}
        for concept, raw in specs.items():
            if not isinstance(concept, str) or not concept.strip():
                raise ConfigurationError(
                    f"[{screen}] 概念名が不正です: {concept!r}"
                )
            try:
                parsed[concept] = parse_locator(raw)
            except ConfigurationError as exc:
                raise ConfigurationError(f"[{screen}.{concept}] {exc}") from exc

        self._screen = screen
        self._driver = driver
        self._specs: Mapping[str, LocatorSpec] = MappingProxyType(parsed)

    @property
    def screen(self) -> str:
        """画面名を返す。"""
        return self._screen

    def concepts(self) -> list[str]:
        """登録済みの概念名を登録順に返す。"""
        return list(self._specs)

    def spec(self, concept: str) -> LocatorSpec:
        """概念名に対応するロケータ仕様を返す。

        Raises:
            ConfigurationError: 未登録の概念名の場合
        """
        try:
            return self._specs[concept]
        except KeyError:
            raise ConfigurationError(
                f"画面 '{self._screen}' に概念 '{concept}' は登録されていません"
                f"（登録済み: {', '.join(self._specs) or 'なし'}）"
            ) from None

    def describe(self, concept: str) -> str:
        """概念の説明文字列（画面名・概念名・ロケータ）を返す。"""
        return f"{self._screen}.{concept} ({describe_locator(self.spec(concept))})"

    def resolve(self, concept: str) -> Any:
        """概念を解決し、Driver の要素集合を返す。

        Args:
            concept: 登録済みの概念名

        Returns:
            Driver.query() の戻り値（0 件以上の要素集合）

        Raises:
            ConfigurationError: 未登録の概念名の場合
        """
        spec = self.spec(concept)
        logger.debug("resolve: %s.%s → %s", self._screen, concept, describe_locator(spec))
        return self._driver.query(spec)
