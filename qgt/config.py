"""
ハーネス設定 — 設定ファイル・環境変数・CLI 引数からの設定読み込み

CLI 引数 > 環境変数 > 設定ファイル（qgt.yaml） > デフォルト値 の優先順位で適用される。

環境変数一覧:
  QGT_BASE_URL           : テスト対象のベース URL（デフォルト: http://localhost:3000）
  QGT_HEADED             : ブラウザ表示モード（true/false, デフォルト: false）
  QGT_WORKERS            : 並列実行シナリオ数（デフォルト: 1）
  QGT_TIMEOUT_MS         : 状態待機のタイムアウト（デフォルト: 10000）
  QGT_INTERVAL_MS        : ポーリング間隔（デフォルト: 300）
  QGT_NAVIGATION_TIMEOUT_MS: 画面遷移待機のタイムアウト（デフォルト: 10000）
  QGT_MAX_ITERATIONS     : drive_until の操作回数上限（デフォルト: 20）
  QGT_SETTLE_MS          : クランプ境界での値の保持を確認する期間（デフォルト: 1000）
  QGT_ARTIFACTS_DIR      : 成果物ディレクトリ（デフォルト: artifacts）
  QGT_SLOW_MO            : 各 Playwright 操作間の遅延（デフォルト: 0）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .core.locators import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("qgt.yaml")

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_PREFIX = "QGT_"
_ENV_BASE_URL = "QGT_BASE_URL"
_ENV_HEADED = "QGT_HEADED"
_ENV_ARTIFACTS_DIR = "QGT_ARTIFACTS_DIR"

# 整数として読み込む設定項目
_INT_FIELDS = (
    "workers",
    "timeout_ms",
    "interval_ms",
    "navigation_timeout_ms",
    "max_iterations",
    "settle_ms",
    "slow_mo",
    "viewport_width",
    "viewport_height",
    "progress_min",
    "progress_max",
)


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HarnessConfig:
    """ハーネスの実行時設定。

    Attributes:
        base_url: テスト対象アプリケーションのベース URL
        headed: ブラウザ表示モード（True=表示, False=ヘッドレス）
        workers: 並列実行するシナリオ数
        timeout_ms: 状態待機のタイムアウト（ミリ秒）
        interval_ms: ポーリング間隔（ミリ秒）
        navigation_timeout_ms: URL 遷移待機のタイムアウト（ミリ秒）
        max_iterations: drive_until の操作回数上限
        settle_ms: クランプ境界での操作後、値が範囲内に留まることを確認する期間（ミリ秒）
        artifacts_dir: 成果物（レポート・スクリーンショット）ディレクトリ
        slow_mo: 各 Playwright 操作間の遅延（ミリ秒）
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
        progress_min: 進捗率の下限（クランプ値）
        progress_max: 進捗率の上限（クランプ値）
    """

    base_url: str = "http://localhost:3000"
    headed: bool = False
    workers: int = 1
    timeout_ms: int = 10_000
    interval_ms: int = 300
    navigation_timeout_ms: int = 10_000
    max_iterations: int = 20
    settle_ms: int = 1000
    artifacts_dir: Path = Path("artifacts")
    slow_mo: int = 0
    viewport_width: int = 1280
    viewport_height: int = 720
    progress_min: int = 0
    progress_max: int = 100

    def validate(self) -> HarnessConfig:
        """値の妥当性を検証し、自身を返す。

        Raises:
            ConfigurationError: 値が範囲外の場合
        """
        if self.workers < 1:
            raise ConfigurationError(f"workers は 1 以上を指定してください: {self.workers}")
        if self.timeout_ms < 0 or self.navigation_timeout_ms < 0:
            raise ConfigurationError("タイムアウトには 0 以上を指定してください")
        if self.settle_ms < 0:
            raise ConfigurationError(f"settle_ms は 0 以上を指定してください: {self.settle_ms}")
        if self.interval_ms <= 0:
            raise ConfigurationError(f"interval_ms は 1 以上を指定してください: {self.interval_ms}")
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations は 1 以上を指定してください: {self.max_iterations}"
            )
        if self.progress_min >= self.progress_max:
            raise ConfigurationError(
                f"progress_min ({self.progress_min}) は progress_max ({self.progress_max}) "
                "より小さくしてください"
            )
        return self


_FIELD_NAMES = {f.name for f in fields(HarnessConfig)}


# ---------------------------------------------------------------------------
# 値の変換
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False
    """
    return value.lower() in ("true", "1", "yes")


def _coerce(name: str, value: Any) -> Any:
    """設定項目名に応じて値を型変換する。

    Raises:
        ValueError: 変換できない場合
    """
    if name in _INT_FIELDS:
        if isinstance(value, bool):
            raise ValueError(f"{name} に真偽値は指定できません")
        return int(value)
    if name == "headed":
        return value if isinstance(value, bool) else _parse_bool(str(value))
    if name == "artifacts_dir":
        return Path(value)
    return str(value)


# ---------------------------------------------------------------------------
# 設定ファイルからの読み込み
# ---------------------------------------------------------------------------

def load_config_file(path: Path, base: Optional[HarnessConfig] = None) -> HarnessConfig:
    """YAML 設定ファイルを読み込み、base に適用する。

    キーは HarnessConfig のフィールド名（snake_case）で記述する。

    Args:
        path: 設定ファイルのパス
        base: 適用先の設定（省略時はデフォルト値）

    Returns:
        設定ファイルを反映した設定

    Raises:
        ConfigurationError: 構文エラー・未知のキー・型変換エラーの場合
    """
    config = base or HarnessConfig()
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = YAML(typ="safe").load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"設定ファイルが見つかりません: {path}") from None
    except YAMLError as exc:
        raise ConfigurationError(f"設定ファイルの YAML 構文エラー: {path}: {exc}") from exc

    if data is None:
        return config
    if not isinstance(data, dict):
        raise ConfigurationError(f"設定ファイルのトップレベルはマッピングにしてください: {path}")

    unknown = sorted(set(data) - _FIELD_NAMES)
    if unknown:
        raise ConfigurationError(f"未知の設定項目です: {', '.join(map(str, unknown))}")

    updates: dict[str, Any] = {}
    for key, value in data.items():
        try:
            updates[key] = _coerce(key, value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"設定項目 {key} の値が不正です: {value!r}") from exc

    logger.info("設定ファイルを読み込みました: %s", path)
    return replace(config, **updates)


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def load_config_from_env(base: Optional[HarnessConfig] = None) -> HarnessConfig:
    """環境変数（QGT_*）を base に適用する。

    不正な値は警告を出して無視する。
    """
    config = base or HarnessConfig()
    updates: dict[str, Any] = {}

    if _ENV_BASE_URL in os.environ:
        updates["base_url"] = os.environ[_ENV_BASE_URL]

    if _ENV_HEADED in os.environ:
        updates["headed"] = _parse_bool(os.environ[_ENV_HEADED])

    if _ENV_ARTIFACTS_DIR in os.environ:
        updates["artifacts_dir"] = Path(os.environ[_ENV_ARTIFACTS_DIR])

    for name in _INT_FIELDS:
        env_key = f"{_ENV_PREFIX}{name.upper()}"
        if env_key not in os.environ:
            continue
        try:
            updates[name] = int(os.environ[env_key])
        except ValueError:
            logger.warning("%s の値が不正です: %s", env_key, os.environ[env_key])

    return replace(config, **updates)


# ---------------------------------------------------------------------------
# CLI 引数の適用と統合
# ---------------------------------------------------------------------------

def apply_overrides(config: HarnessConfig, **overrides: Any) -> HarnessConfig:
    """None でない上書き値のみを適用する。

    Raises:
        ConfigurationError: 未知の設定項目の場合
    """
    updates: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key not in _FIELD_NAMES:
            raise ConfigurationError(f"未知の設定項目です: {key}")
        updates[key] = _coerce(key, value)
    return replace(config, **updates)


def load_config(
    config_file: Optional[Path] = None,
    **overrides: Any,
) -> HarnessConfig:
    """デフォルト → 設定ファイル → 環境変数 → CLI 引数 の順に適用した設定を返す。

    config_file を省略した場合、カレントディレクトリの qgt.yaml があれば読み込む。

    Raises:
        ConfigurationError: 設定ファイルまたは最終的な値が不正な場合
    """
    config = HarnessConfig()

    if config_file is not None:
        config = load_config_file(config_file, config)
    elif DEFAULT_CONFIG_FILE.exists():
        config = load_config_file(DEFAULT_CONFIG_FILE, config)

    config = load_config_from_env(config)
    config = apply_overrides(config, **overrides)

    logger.info("設定を読み込みました: %s", config)
    return config.validate()
