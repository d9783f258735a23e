"""
Elasticsearch 검색 클라이언트

숙소/리뷰 인덱스에 빌드된 쿼리를 실행하고 hit을 문서 모델로 변환합니다.
검색은 best-effort: 연결/응답/변환 오류는 빈 결과로 처리하고 로그로 남깁니다.
"결과 없음"과 "검색 백엔드 장애"는 호출자 입장에서 구분되지 않습니다.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError

from search.config import ACCOMMODATION_INDEX, ES_TIMEOUT, REVIEW_INDEX, es_basic_auth, es_hosts
from search.documents import AccommodationDocument, ReviewDocument
from search.errors import SearchSyncError
from search.models import SearchRequest
from search.query_builder import (
    BuiltQuery,
    build_autocomplete_query,
    build_ids_query,
    build_location_query,
    build_popular_query,
    build_review_keyword_query,
    build_reviews_by_accommodation_query,
    build_reviews_by_rating_query,
    build_reviews_by_user_query,
    build_search_query,
    unique_ids,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# hit 변환 중 발생 가능한 오류
DECODE_ERRORS = (KeyError, TypeError, ValueError, SearchSyncError)


def create_async_client(
    hosts: Optional[List[str]] = None,
    timeout: int = ES_TIMEOUT,
) -> AsyncElasticsearch:
    """설정 기반 AsyncElasticsearch 생성"""
    kwargs: Dict[str, Any] = {
        "hosts": hosts or es_hosts(),
        "request_timeout": timeout,
    }
    basic_auth = es_basic_auth()
    if basic_auth:
        kwargs["basic_auth"] = basic_auth
    return AsyncElasticsearch(**kwargs)


class ESSearchClient:
    """
    단일 인덱스 검색 실행기

    사용 예:
        client = AccommodationSearchClient()
        docs = await client.search(SearchRequest(keyword="해운대"))
    """

    INDEX = ""

    def __init__(
        self,
        client: Optional[AsyncElasticsearch] = None,
        index: Optional[str] = None,
        hosts: Optional[List[str]] = None,
        timeout: int = ES_TIMEOUT,
    ):
        """
        Args:
            client: 주입할 AsyncElasticsearch (없으면 첫 사용 시 생성)
            index: 인덱스명 (기본값: 클래스 INDEX)
            hosts: ES 호스트 목록
            timeout: 요청 타임아웃 (초)
        """
        self.index = index or self.INDEX
        self.hosts = hosts
        self.timeout = timeout
        self._async_client = client
        self._owns_client = client is None
        self.failure_count = 0

    @property
    def async_client(self) -> AsyncElasticsearch:
        """비동기 클라이언트 (lazy initialization)"""
        if self._async_client is None:
            self._async_client = create_async_client(self.hosts, self.timeout)
        return self._async_client

    async def is_available(self) -> bool:
        """ES 연결 상태 확인"""
        try:
            return await self.async_client.ping()
        except TransportError:
            logger.warning("Elasticsearch connection failed")
            return False

    def _record_failure(self, operation: str, error: Any) -> None:
        self.failure_count += 1
        logger.error(f"ES {operation} error on {self.index}: {error}")

    async def _execute(
        self,
        built: BuiltQuery,
        decode: Callable[[Mapping[str, Any]], T],
        operation: str = "search",
    ) -> List[T]:
        """쿼리 실행 후 _source 변환 (실패 시 빈 리스트)"""
        try:
            response = await self.async_client.search(**built.to_search_kwargs(self.index))
        except NotFoundError as e:
            self._record_failure(operation, f"index not found ({e})")
            return []
        except (ApiError, TransportError) as e:
            self._record_failure(operation, e)
            return []

        try:
            results = [decode(hit["_source"]) for hit in response["hits"]["hits"]]
        except DECODE_ERRORS as e:
            self._record_failure(f"{operation} decode", e)
            return []

        logger.info(f"ES {operation}: index={self.index}, hits={len(results)}")
        return results

    async def _get_source(self, doc_id: Any) -> Optional[Mapping[str, Any]]:
        """단일 문서 조회 (없거나 실패 시 None)"""
        try:
            response = await self.async_client.get(index=self.index, id=str(doc_id))
        except NotFoundError:
            logger.info(f"Document not found: {self.index}/{doc_id}")
            return None
        except (ApiError, TransportError) as e:
            self._record_failure("get", e)
            return None
        try:
            return response["_source"]
        except KeyError:
            return None

    async def close(self):
        """직접 생성한 비동기 클라이언트만 종료"""
        if self._async_client is not None and self._owns_client:
            await self._async_client.close()
            self._async_client = None


class AccommodationSearchClient(ESSearchClient):
    """숙소 검색"""

    INDEX = ACCOMMODATION_INDEX

    async def search(self, request: SearchRequest) -> List[AccommodationDocument]:
        """통합 검색 (키워드 / 현위치 / 필터 / 정렬 / 페이지)"""
        return await self._execute(
            build_search_query(request),
            AccommodationDocument.from_source,
        )

    async def search_by_location(self, latitude: float, longitude: float) -> List[AccommodationDocument]:
        """현재 위치 반경 5km 내 숙소 (가까운 순)"""
        return await self._execute(
            build_location_query(latitude, longitude),
            AccommodationDocument.from_source,
            operation="location search",
        )

    async def autocomplete(self, prefix: str) -> List[str]:
        """
        자동완성 제안

        Returns:
            중복 없는 숙소명 (처음 나온 순서)
        """
        if not prefix or not prefix.strip():
            return []

        documents = await self._execute(
            build_autocomplete_query(prefix),
            AccommodationDocument.from_source,
            operation="autocomplete",
        )

        suggestions = []
        for document in documents:
            name = document.accommodation_name
            if name and name not in suggestions:
                suggestions.append(name)
        return suggestions

    async def popular_by_address(self, address: str) -> List[AccommodationDocument]:
        """지역별 인기 숙소 (가격 낮은 순 최대 12건)"""
        return await self._execute(
            build_popular_query(address),
            AccommodationDocument.from_source,
            operation="popular",
        )

    async def recent_by_ids(self, ids: Iterable[int]) -> List[AccommodationDocument]:
        """최근 본 숙소 (요청한 ID 순서 유지)"""
        id_list = unique_ids(ids)
        if not id_list:
            return []

        documents = await self._execute(
            build_ids_query(id_list),
            AccommodationDocument.from_source,
            operation="recent",
        )
        by_id = {document.accommodation_id: document for document in documents}
        return [by_id[i] for i in id_list if i in by_id]

    async def get_detail(self, accommodation_id: int) -> Optional[AccommodationDocument]:
        """숙소 상세 조회"""
        source = await self._get_source(accommodation_id)
        if source is None:
            return None
        try:
            return AccommodationDocument.from_source(source)
        except DECODE_ERRORS as e:
            self._record_failure("get decode", e)
            return None

    async def get_main_image(self, accommodation_id: int) -> Optional[str]:
        """숙소 대표 이미지"""
        document = await self.get_detail(accommodation_id)
        return document.main_image if document else None


class ReviewSearchClient(ESSearchClient):
    """리뷰 검색"""

    INDEX = REVIEW_INDEX

    async def by_accommodation(self, accommodation_id: int) -> List[ReviewDocument]:
        """숙소별 리뷰 (최신순)"""
        return await self._execute(
            build_reviews_by_accommodation_query(accommodation_id),
            ReviewDocument.from_source,
            operation="reviews by accommodation",
        )

    async def by_user(self, user_id: int) -> List[ReviewDocument]:
        """사용자별 리뷰 (최신순)"""
        return await self._execute(
            build_reviews_by_user_query(user_id),
            ReviewDocument.from_source,
            operation="reviews by user",
        )

    async def search_content(self, keyword: str) -> List[ReviewDocument]:
        """리뷰 내용 검색"""
        if not keyword or not keyword.strip():
            return []
        return await self._execute(
            build_review_keyword_query(keyword.strip()),
            ReviewDocument.from_source,
            operation="review search",
        )

    async def by_rating(self, accommodation_id: int, min_rating: float) -> List[ReviewDocument]:
        """숙소별 최소 평점 이상 리뷰 (평점 높은 순)"""
        return await self._execute(
            build_reviews_by_rating_query(accommodation_id, min_rating),
            ReviewDocument.from_source,
            operation="reviews by rating",
        )
