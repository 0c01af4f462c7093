"""
App layer: HTTP API (FastAPI).

역할:
- pass 실행 요청 → ReconciliationEngine 호출
- 결과 to_dict() → JSON 응답
- ⚠️ 동기화 규칙 없음 (core에 위임)
"""
