"""
Core layer: tiering 판정 + batch reconciliation.

역할:
- 레코드 상태 판정 (tiering), export 대상 판정
- bounded worker pool, pass 실행/집계
- 설정 로드, run log, 안전한 파일 이동/쓰기
"""

from .files import atomic_write_bytes, atomic_write_json, safe_move
from .hashing import compute_fingerprint
from .ids import derive_code, generate_run_id, sanitize_blob_name
from .logging import create_run_log, emit_warning, save_run_log
from .pool import run_bounded
from .reconcile import ReconciliationEngine
from .settings import SyncSettings, load_settings
from .tiering import classify, ensure_consistent, needs_cloud_sync, needs_export

__all__ = [
    # reconcile
    "ReconciliationEngine",
    # tiering
    "classify",
    "ensure_consistent",
    "needs_export",
    "needs_cloud_sync",
    # pool
    "run_bounded",
    # settings
    "SyncSettings",
    "load_settings",
    # ids
    "derive_code",
    "generate_run_id",
    "sanitize_blob_name",
    # hashing
    "compute_fingerprint",
    # files
    "safe_move",
    "atomic_write_bytes",
    "atomic_write_json",
    # logging
    "create_run_log",
    "emit_warning",
    "save_run_log",
]
