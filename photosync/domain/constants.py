"""
Domain Constants: photosync 전역 상수.

파일명 정책, 기본 설정값 등 시스템 전반에서 사용되는 값들.
"""

# =============================================================================
# Import (가져오기 대상 파일)
# =============================================================================

PHOTO_ALLOWED_EXTENSIONS = (".jpg", ".jpeg")
IMAGE_SOURCE_PREFIX = "FILE:"

# =============================================================================
# Export (내보내기 파일명 정책)
# =============================================================================
# str.format 토큰:
# - {code}: 레코드 code
# - {export_date:%Y%m%d}: 내보내기 시각 (datetime format spec)
# 예: "{code}.jpg", "{code}_{export_date:%Y%m%d}.jpg"

DEFAULT_EXPORT_FILE_NAME_FORMAT = "{code}.jpg"

# =============================================================================
# Blob (cloud tier)
# =============================================================================

DEFAULT_CONTAINER_NAME = "photos"
BLOB_DEFAULT_SUFFIX = ".jpg"
LOCAL_BLOB_SCHEME = "file"

TIERING_POLICY_MIRROR = "mirror"  # 업로드 후 로컬 payload 유지
TIERING_POLICY_OFFLOAD = "offload"  # 업로드 후 로컬 payload 제거 (cold storage)
TIERING_POLICIES = (TIERING_POLICY_MIRROR, TIERING_POLICY_OFFLOAD)

STORAGE_BACKEND_LOCAL = "local"
STORAGE_BACKEND_AZURE = "azure"
STORAGE_BACKENDS = (STORAGE_BACKEND_LOCAL, STORAGE_BACKEND_AZURE)

# =============================================================================
# Concurrency / Result
# =============================================================================

DEFAULT_MAX_PARALLEL_OPERATIONS = 4
DEFAULT_MAX_ERROR_DETAILS = 100

# =============================================================================
# Relational tier
# =============================================================================

PHOTOS_TABLE_NAME = "photos"
DEFAULT_DATABASE_URL = "sqlite:///photosync.db"

# =============================================================================
# Hash & ID Prefixes
# =============================================================================

RUN_ID_PREFIX = "RUN-"
RUN_LOG_PREFIX = "run_"
