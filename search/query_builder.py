"""
숙소/리뷰 검색 쿼리 빌더

검색 요청을 Elasticsearch bool 쿼리 + 정렬 + 페이지 범위로 변환합니다.
I/O 없는 순수 함수이며, 요청에 없는 필드는 쿼리에서 생략됩니다.

- 키워드: 숙소명(boost 2.0) OR 주소(boost 1.0), minimum_should_match=1
- 위치: 반경 5km geo_distance 필터 (점수에 영향 없음)
- 타입/가격/평점: filter 절
- 페이지: 20건 고정, page < 1 은 1페이지로 처리
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from search.config import (
    ADDRESS_BOOST,
    AUTOCOMPLETE_SIZE,
    GEO_RADIUS,
    LOCATION_SEARCH_SIZE,
    NAME_BOOST,
    PAGE_SIZE,
    POPULAR_SIZE,
    REVIEW_LIST_SIZE,
    REVIEW_SEARCH_SIZE,
)
from search.models import SearchRequest, SortKey

# 숙소 인덱스 필드
NAME_FIELD = "accommodationName"
ADDRESS_FIELD = "accommodationAddress"
TYPE_FIELD = "accommodationType"
LOCATION_FIELD = "location"
PRICE_FIELD = "minPrice"
RATING_FIELD = "averageRating"
REVIEW_COUNT_FIELD = "reviewCount"
ACCOMMODATION_ID_FIELD = "accommodationId"

# 리뷰 인덱스 필드
REVIEW_ACCOMMODATION_FIELD = "accommodationId"
REVIEW_USER_FIELD = "userId"
REVIEW_CONTENT_FIELD = "reviewContent"
REVIEW_RATING_FIELD = "rating"
REVIEW_CREATED_FIELD = "createdAt"

# 같은 값끼리의 순서를 고정하는 보조 정렬
TIEBREAK_SORT = {ACCOMMODATION_ID_FIELD: {"order": "asc"}}

SORT_MAP = {
    SortKey.PRICE_ASC: {PRICE_FIELD: {"order": "asc"}},
    SortKey.PRICE_DESC: {PRICE_FIELD: {"order": "desc"}},
    SortKey.RATING: {RATING_FIELD: {"order": "desc"}},
    SortKey.REVIEW_COUNT: {REVIEW_COUNT_FIELD: {"order": "desc"}},
}


@dataclass
class BuiltQuery:
    """빌드된 검색 요청"""
    query: Dict[str, Any]
    sort: List[Dict[str, Any]] = field(default_factory=list)
    offset: int = 0
    limit: int = PAGE_SIZE

    def to_search_kwargs(self, index: str) -> Dict[str, Any]:
        """AsyncElasticsearch.search() 인자"""
        kwargs = {
            "index": index,
            "query": self.query,
            "from_": self.offset,
            "size": self.limit,
        }
        if self.sort:
            kwargs["sort"] = self.sort
        return kwargs


def page_offset(page: Optional[int], page_size: int = PAGE_SIZE) -> int:
    """1부터 시작하는 페이지 번호 → from 값 (없거나 1 미만이면 0)"""
    if page is None or page < 1:
        return 0
    return (page - 1) * page_size


def geo_distance_filter(latitude: float, longitude: float, distance: str = GEO_RADIUS) -> Dict[str, Any]:
    return {
        "geo_distance": {
            "distance": distance,
            LOCATION_FIELD: {"lat": latitude, "lon": longitude},
        }
    }


def keyword_clauses(keyword: str) -> List[Dict[str, Any]]:
    """숙소명/주소 should 절"""
    return [
        {"match": {NAME_FIELD: {"query": keyword, "boost": NAME_BOOST}}},
        {"match": {ADDRESS_FIELD: {"query": keyword, "boost": ADDRESS_BOOST}}},
    ]


def range_filter(field_name: str, gte: Any = None, lte: Any = None) -> Optional[Dict[str, Any]]:
    bounds = {}
    if gte is not None:
        bounds["gte"] = gte
    if lte is not None:
        bounds["lte"] = lte
    if not bounds:
        return None
    return {"range": {field_name: bounds}}


def _bool_query(
    should: Optional[List[Dict[str, Any]]] = None,
    must: Optional[List[Dict[str, Any]]] = None,
    filters: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {}
    if must:
        body["must"] = must
    if should:
        body["should"] = should
        body["minimum_should_match"] = 1
    if filters:
        body["filter"] = filters
    if not body:
        return {"match_all": {}}
    return {"bool": body}


def build_search_query(request: SearchRequest) -> BuiltQuery:
    """
    통합 검색 쿼리 빌드

    Args:
        request: 검색 요청

    Returns:
        BuiltQuery (20건 페이지)
    """
    should = []
    filters = []

    keyword = (request.keyword or "").strip()
    if keyword:
        should = keyword_clauses(keyword)

    if request.has_coordinate:
        filters.append(geo_distance_filter(request.latitude, request.longitude))

    if request.accommodation_type and request.accommodation_type.strip():
        filters.append({"term": {TYPE_FIELD: request.accommodation_type}})

    price_filter = range_filter(PRICE_FIELD, gte=request.min_price, lte=request.max_price)
    if price_filter:
        filters.append(price_filter)

    rating_filter = range_filter(RATING_FIELD, gte=request.min_rating)
    if rating_filter:
        filters.append(rating_filter)

    sort = []
    sort_key = request.sort_key
    if sort_key is not None:
        sort = [SORT_MAP[sort_key], TIEBREAK_SORT]

    return BuiltQuery(
        query=_bool_query(should=should, filters=filters),
        sort=sort,
        offset=page_offset(request.page),
        limit=PAGE_SIZE,
    )


def build_location_query(latitude: float, longitude: float) -> BuiltQuery:
    """반경 5km 내 숙소, 가까운 순"""
    return BuiltQuery(
        query=_bool_query(filters=[geo_distance_filter(latitude, longitude)]),
        sort=[
            {
                "_geo_distance": {
                    LOCATION_FIELD: {"lat": latitude, "lon": longitude},
                    "order": "asc",
                    "unit": "km",
                }
            }
        ],
        limit=LOCATION_SEARCH_SIZE,
    )


def build_autocomplete_query(prefix: str) -> BuiltQuery:
    """숙소명/주소 phrase_prefix 자동완성"""
    return BuiltQuery(
        query={
            "multi_match": {
                "query": prefix.strip(),
                "fields": [NAME_FIELD, ADDRESS_FIELD],
                "type": "phrase_prefix",
            }
        },
        limit=AUTOCOMPLETE_SIZE,
    )


def build_popular_query(address: str) -> BuiltQuery:
    """지역별 인기 숙소 (가격 낮은 순 12건)"""
    return BuiltQuery(
        query={"match": {ADDRESS_FIELD: address}},
        sort=[{PRICE_FIELD: {"order": "asc"}}, TIEBREAK_SORT],
        limit=POPULAR_SIZE,
    )


def unique_ids(ids: Iterable[int]) -> List[int]:
    """중복 제거 (처음 순서 유지)"""
    seen = set()
    result = []
    for accommodation_id in ids:
        if accommodation_id is None or accommodation_id in seen:
            continue
        seen.add(accommodation_id)
        result.append(accommodation_id)
    return result


def build_ids_query(ids: Iterable[int]) -> BuiltQuery:
    """ID 목록 조회 (최근 본 숙소)"""
    id_list = unique_ids(ids)
    return BuiltQuery(
        query={"terms": {ACCOMMODATION_ID_FIELD: id_list}},
        limit=len(id_list),
    )


def _newest_first() -> List[Dict[str, Any]]:
    return [{REVIEW_CREATED_FIELD: {"order": "desc"}}]


def build_reviews_by_accommodation_query(accommodation_id: int) -> BuiltQuery:
    """숙소별 리뷰 (최신순)"""
    return BuiltQuery(
        query={"term": {REVIEW_ACCOMMODATION_FIELD: accommodation_id}},
        sort=_newest_first(),
        limit=REVIEW_LIST_SIZE,
    )


def build_reviews_by_user_query(user_id: int) -> BuiltQuery:
    """사용자별 리뷰 (최신순)"""
    return BuiltQuery(
        query={"term": {REVIEW_USER_FIELD: user_id}},
        sort=_newest_first(),
        limit=REVIEW_LIST_SIZE,
    )


def build_review_keyword_query(keyword: str) -> BuiltQuery:
    """리뷰 내용 검색 (최신순)"""
    return BuiltQuery(
        query={"match": {REVIEW_CONTENT_FIELD: keyword}},
        sort=_newest_first(),
        limit=REVIEW_SEARCH_SIZE,
    )


def build_reviews_by_rating_query(accommodation_id: int, min_rating: float) -> BuiltQuery:
    """숙소별 최소 평점 이상 리뷰 (평점 높은 순)"""
    return BuiltQuery(
        query=_bool_query(
            must=[{"term": {REVIEW_ACCOMMODATION_FIELD: accommodation_id}}],
            filters=[range_filter(REVIEW_RATING_FIELD, gte=min_rating)],
        ),
        sort=[{REVIEW_RATING_FIELD: {"order": "desc"}}],
        limit=REVIEW_LIST_SIZE,
    )
