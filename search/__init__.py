# Lodging Search Index Module
"""
Elasticsearch 기반 숙소 검색 인덱스 모듈

PostgreSQL 원본 데이터를 검색 인덱스와 동기화하고,
숙소/리뷰 검색 쿼리를 생성·실행합니다.

주요 컴포넌트:
- documents: 숙소/리뷰/객실 인덱스 문서 모델
- query_builder: 검색 요청 → ES 쿼리 (순수 함수)
- es_client: 검색 실행기 (실패 시 빈 결과)
- es_bulk: bulk upsert/delete 작성기
- es_sync: 실시간/배치 동기화 엔진
- es_indices: 인덱스 생성/삭제/관리
- scheduler: 일일 배치 동기화 스케줄러
"""

from .es_bulk import BulkResult, BulkWriter, Delete, Upsert
from .es_client import AccommodationSearchClient, ReviewSearchClient
from .es_indices import ESIndexManager
from .es_sync import SyncEngine, SyncReport
from .models import SearchRequest, SortKey

__all__ = [
    "AccommodationSearchClient",
    "ReviewSearchClient",
    "BulkWriter",
    "BulkResult",
    "Upsert",
    "Delete",
    "ESIndexManager",
    "SyncEngine",
    "SyncReport",
    "SearchRequest",
    "SortKey",
]
