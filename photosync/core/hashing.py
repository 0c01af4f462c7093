"""
해시 계산: content fingerprint

규칙:
- fingerprint: payload 바이트의 SHA-256 hex (64자, 고정 길이)
- 빈 입력 → EMPTY_FINGERPRINT (에러 아님)
- 용도: import 중복 검사, content drift 감지 (file_hash 불일치 = 실제 변경)
"""

import hashlib

# sha256(b"")
EMPTY_FINGERPRINT = hashlib.sha256(b"").hexdigest()


def compute_fingerprint(data: bytes) -> str:
    """
    payload fingerprint 계산.

    Args:
        data: 이미지 바이트

    Returns:
        SHA-256 hex 문자열 (빈 입력이면 EMPTY_FINGERPRINT)
    """
    if not data:
        return EMPTY_FINGERPRINT
    return hashlib.sha256(data).hexdigest()


def fingerprints_match(data: bytes, expected: str | None) -> bool:
    """
    바이트가 기대 fingerprint와 일치하는지.

    expected가 없으면 비교 불가 → True (검증 생략).
    """
    if not expected:
        return True
    return compute_fingerprint(data) == expected
