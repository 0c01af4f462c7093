#!/usr/bin/env python3
"""
run_sync.py - 사진 tier 동기화 pass 실행 스크립트

default.yaml (또는 --config) 설정으로 pass를 한 번 실행하고 결과를 출력.

종료 코드:
- 0: 성공
- 1: 일부 항목 실패 / 무결성 위반
- 2: pass 전체 중단 (폴더 없음, 저장소/blob 연결 실패, 잘못된 설정)

사용법:
    # import 폴더 → DB (아카이브 포함)
    python scripts/run_sync.py import

    # 특정 폴더, 아카이브 생략
    python scripts/run_sync.py import /data/drop --skip-archive

    # 변경분만 export / 전체 export
    python scripts/run_sync.py export
    python scripts/run_sync.py export --force

    # cloud 업로드 (offload: 업로드 후 DB payload 비움)
    python scripts/run_sync.py cloud-sync --policy offload

    # 최근 run log 목록 / 하나
    python scripts/run_sync.py runs --limit 5
    python scripts/run_sync.py runs RUN-20260101120000-abcd1234

    # 전체 workflow, 미리보기
    python scripts/run_sync.py workflow --steps import cloud_sync export --dry-run

    # cron 예시 (10분마다)
    */10 * * * * cd /path/to/project && python scripts/run_sync.py workflow --steps import cloud_sync export >> /var/log/photosync.log 2>&1
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from photosync.core.reconcile import ReconciliationEngine
from photosync.core.settings import load_settings
from photosync.domain.errors import PhotoSyncError
from photosync.domain.schemas import NullableField, WorkflowStep
from photosync.gateways import build_gateways

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="사진 tier 동기화 pass 실행",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=str,
        help="설정 파일 경로 (기본: default.yaml)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        help="database.url 덮어쓰기",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="결과를 JSON으로 stdout에 출력",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="import 폴더 → DB")
    p_import.add_argument("folder", nargs="?", help="import 폴더 (기본: 설정값)")
    p_import.add_argument("--skip-archive", action="store_true", help="아카이브 이동 생략")

    p_export = sub.add_parser("export", help="DB → export 폴더")
    p_export.add_argument("folder", nargs="?", help="export 폴더 (기본: 설정값)")
    p_export.add_argument("--force", action="store_true", help="변경 여부와 무관하게 전체 export")
    p_export.add_argument("--codes", nargs="+", help="특정 code만")

    p_cloud = sub.add_parser("cloud-sync", help="DB → cloud blob")
    p_cloud.add_argument("--migrate", action="store_true", help="업로드 이력 없는 레코드도 업로드")
    p_cloud.add_argument("--policy", choices=["mirror", "offload"], help="tiering 정책 (기본: 설정값)")

    p_rehydrate = sub.add_parser("rehydrate", help="cloud blob → DB")
    p_rehydrate.add_argument("--codes", nargs="+", help="특정 code만")

    sub.add_parser("status", help="동기화 상태 요약")

    p_runs = sub.add_parser("runs", help="최근 run log 조회")
    p_runs.add_argument("run_id", nargs="?", help="특정 run만 (없으면 목록)")
    p_runs.add_argument("--limit", type=int, default=20, help="목록 최대 개수")

    p_workflow = sub.add_parser("workflow", help="여러 pass 순서대로 실행")
    p_workflow.add_argument(
        "--steps",
        nargs="+",
        required=True,
        choices=[s.value for s in WorkflowStep],
        help="실행할 step (순서는 import → cloud_sync → rehydrate → export 고정)",
    )
    p_workflow.add_argument(
        "--nullify",
        choices=[f.value for f in NullableField],
        help="실행 전 모든 레코드에서 비울 필드",
    )
    p_workflow.add_argument("--skip-archive", action="store_true", help="아카이브 이동 생략")
    p_workflow.add_argument("--dry-run", action="store_true", help="대상 개수만 출력")

    return parser


def run_command(engine: ReconciliationEngine, args: argparse.Namespace) -> tuple[dict, bool]:
    """명령 실행 → (결과 dict, 성공 여부)."""
    if args.command == "import":
        result = engine.run_import(args.folder, skip_archive=args.skip_archive)
    elif args.command == "export":
        result = engine.run_export(args.folder, force=args.force, codes=args.codes)
    elif args.command == "cloud-sync":
        result = engine.run_cloud_sync(migrate=args.migrate, policy=args.policy)
    elif args.command == "rehydrate":
        result = engine.run_rehydrate(codes=args.codes)
    elif args.command == "status":
        status = engine.get_sync_status()
        return status.to_dict(), status.inconsistent == 0
    elif args.command == "runs":
        if args.run_id:
            return engine.get_run(args.run_id), True
        return {"runs": engine.list_runs(args.limit)}, True
    else:
        workflow = engine.run_workflow(
            args.steps,
            nullify=NullableField(args.nullify) if args.nullify else None,
            skip_archive=args.skip_archive,
            dry_run=args.dry_run,
        )
        return workflow.to_dict(), workflow.ok

    return result.to_dict(), result.ok


def log_summary(command: str, data: dict) -> None:
    logger.info("=" * 50)
    logger.info(f"{command} 결과:")
    for key in ("found", "succeeded", "failed", "skipped", "skipped_duplicate",
                "archived", "offloaded", "errors_truncated", "cancelled"):
        if key in data:
            logger.info(f"  {key}: {data[key]}")
    for err in data.get("errors", [])[:5]:  # 최대 5개만 출력
        logger.warning(f"    - [{err['code']}] {err['key']}: {err['message']}")
    for err in data.get("integrity_errors", [])[:5]:
        logger.error(f"    - [{err['code']}] {err['key']}")
    for run in data.get("runs", []):
        logger.info(f"  {run['run_id']} {run['operation']} {run['result']} ({run['started_at']})")
    for step, error in data.get("step_errors", {}).items():
        logger.error(f"  {step} 중단: {error}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {}
    if args.database_url:
        overrides["database"] = {"url": args.database_url}

    try:
        settings = load_settings(Path(args.config) if args.config else None, overrides)
        records, files, blobs = build_gateways(settings)
    except PhotoSyncError as e:
        logger.error(f"설정 오류: {e}")
        return EXIT_FATAL

    engine = ReconciliationEngine(records, files, blobs, settings=settings)
    try:
        data, ok = run_command(engine, args)
    except PhotoSyncError as e:
        logger.error(f"{args.command} 중단: {e}")
        if args.json:
            print(json.dumps({"error": e.to_dict()}, ensure_ascii=False, default=str))
        return EXIT_FATAL
    finally:
        records.close()

    log_summary(args.command, data)
    if args.json:
        print(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    return EXIT_OK if ok else EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
