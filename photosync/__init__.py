"""
photosync: 사진 tier 동기화 (파일시스템 / photos 테이블 / cloud blob).

레이어:
- domain: 에러, 스키마, 상수
- core: tiering 판정, batch 엔진, 설정, run log
- gateways: tier별 I/O (SQLAlchemy, Azure Blob, 로컬 파일)
- app: HTTP API (FastAPI)
"""

__version__ = "0.1.0"
