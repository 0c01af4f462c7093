"""
ID 생성: record code, blob name, run_id

규칙:
- code 수정 금지 (파일명 기반 파생, 또는 호출자가 지정)
- run_id만 pass마다 새로 발급
"""

import uuid
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import quote

from photosync.domain.constants import BLOB_DEFAULT_SUFFIX, RUN_ID_PREFIX


def derive_code(file_path: Path) -> str:
    """
    파일 경로에서 record code 파생.

    기본 규칙: 확장자를 뺀 파일명 (예: /drop/A-100.jpg → "A-100")

    Args:
        file_path: 원본 파일 경로

    Returns:
        code 문자열
    """
    return Path(file_path).stem


def sanitize_blob_name(code: str) -> str:
    """
    code → blob 이름 (code마다 서로 다른 이름).

    - [A-Za-z0-9_.~-] 이외 문자는 UTF-8 percent-encoding ('%' 자신도 인코딩)
    - 항상 .jpg 를 붙임 ("x"와 "x.jpg"가 같은 이름이 되지 않도록)

    예: "A-100" → "A-100.jpg", "a b" → "a%20b.jpg", "a_b" → "a_b.jpg"

    Raises:
        ValueError: 빈 code
    """
    if not code:
        raise ValueError("code must not be empty")
    return quote(code, safe="") + BLOB_DEFAULT_SUFFIX


def generate_run_id() -> str:
    """
    Run ID 생성.

    고유성 보장: UUID v4
    포맷: RUN-{timestamp}-{uuid[:8]}

    Returns:
        run_id 문자열
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"{RUN_ID_PREFIX}{timestamp}-{unique}"
