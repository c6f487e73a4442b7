"""
qgt — QA Guild 検証ハーネス

QA Guild ゲーム（ランディング → 設定 → クエスト）を Playwright で操作し、
非同期に変化する進捗・報酬・アラートをポーリングで検証する。
"""

__version__ = "0.1.0"
