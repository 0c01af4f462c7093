"""
Bounded worker pool: pass 항목을 동시 실행 상한 안에서 처리

규칙:
- 동시 실행 수 ≤ max_parallel (세마포어가 dispatch를 막음)
- 취소 신호는 dispatch 직전마다 확인, 이미 실행 중인 항목은 끝까지 처리
- worker 예외는 on_error로 변환 → pool 밖으로 예외가 새지 않음
- 완료 순서 보장 없음 (결과 리스트는 dispatch 순서)
"""

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], R],
    max_parallel: int,
    on_error: Callable[[T, Exception], R],
    cancel: threading.Event | None = None,
) -> tuple[list[R], bool]:
    """
    항목들을 최대 max_parallel개씩 동시에 처리.

    Args:
        items: 처리할 항목
        worker: 항목 하나를 처리하는 함수
        max_parallel: 동시 실행 상한 (≥ 1)
        on_error: worker 예외 → 결과 변환 함수
        cancel: 설정되면 남은 항목을 dispatch하지 않음

    Returns:
        (결과 리스트, 취소 여부)

    Raises:
        ValueError: max_parallel < 1
    """
    if max_parallel < 1:
        raise ValueError(f"max_parallel must be >= 1, got {max_parallel}")

    gate = threading.BoundedSemaphore(max_parallel)
    cancelled = False

    def guarded(item: T) -> R:
        try:
            return worker(item)
        except Exception as e:
            logger.debug("Worker raised for %r: %s", item, e)
            return on_error(item, e)
        finally:
            gate.release()

    futures: list[Future[R]] = []
    with ThreadPoolExecutor(
        max_workers=max_parallel,
        thread_name_prefix="photosync-worker",
    ) as executor:
        for item in items:
            gate.acquire()
            if cancel is not None and cancel.is_set():
                gate.release()
                cancelled = True
                logger.info("Cancellation requested; %d item(s) dispatched", len(futures))
                break
            futures.append(executor.submit(guarded, item))

        results = [future.result() for future in futures]

    return results, cancelled
