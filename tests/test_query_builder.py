"""
검색 쿼리 빌더 단위 테스트
- ES 연결 없이 실행 가능
"""

import pytest

from search.models import SearchRequest, SortKey
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
    page_offset,
)


def _filters(built: BuiltQuery):
    return built.query.get("bool", {}).get("filter", [])


class TestKeywordQuery:
    """키워드 검색"""

    def test_keyword_only(self):
        """키워드만 있으면 should 2개 + minimum_should_match 1, filter 없음"""
        built = build_search_query(SearchRequest(keyword="해운대"))

        bool_query = built.query["bool"]
        assert bool_query["minimum_should_match"] == 1
        assert bool_query["should"] == [
            {"match": {"accommodationName": {"query": "해운대", "boost": 2.0}}},
            {"match": {"accommodationAddress": {"query": "해운대", "boost": 1.0}}},
        ]
        assert "filter" not in bool_query
        assert "must" not in bool_query

    @pytest.mark.parametrize("keyword", [None, "", "   "])
    def test_blank_keyword_adds_no_text_clause(self, keyword):
        """빈 키워드는 텍스트 조건 없음"""
        built = build_search_query(SearchRequest(keyword=keyword))
        assert built.query == {"match_all": {}}

    def test_empty_request_is_match_all(self):
        built = build_search_query(SearchRequest())
        assert built.query == {"match_all": {}}
        assert built.sort == []
        assert built.offset == 0
        assert built.limit == 20


class TestFilters:
    """필터 절"""

    def test_geo_distance_filter(self):
        """좌표가 있으면 반경 5km geo_distance 필터 1개"""
        built = build_search_query(SearchRequest(latitude=35.1587, longitude=129.1604))

        geo = [f for f in _filters(built) if "geo_distance" in f]
        assert geo == [{
            "geo_distance": {
                "distance": "5km",
                "location": {"lat": 35.1587, "lon": 129.1604},
            }
        }]
        assert "should" not in built.query["bool"]

    def test_partial_coordinate_is_ignored(self):
        """위도만 있으면 위치 필터 없음"""
        built = build_search_query(SearchRequest(latitude=35.1587))
        assert built.query == {"match_all": {}}

    def test_accommodation_type_term(self):
        built = build_search_query(SearchRequest(accommodation_type="HOTEL"))
        assert _filters(built) == [{"term": {"accommodationType": "HOTEL"}}]

    def test_accommodation_type_is_exact(self):
        """타입 값은 대소문자 변환 없이 그대로 term 조건"""
        built = build_search_query(SearchRequest(accommodation_type="hotel"))
        assert _filters(built) == [{"term": {"accommodationType": "hotel"}}]

    @pytest.mark.parametrize("accommodation_type", ["", "  "])
    def test_blank_accommodation_type_ignored(self, accommodation_type):
        built = build_search_query(SearchRequest(accommodation_type=accommodation_type))
        assert built.query == {"match_all": {}}

    def test_price_range_both_bounds(self):
        built = build_search_query(SearchRequest(min_price=50000, max_price=150000))
        assert _filters(built) == [{"range": {"minPrice": {"gte": 50000, "lte": 150000}}}]

    def test_price_range_single_bound(self):
        built = build_search_query(SearchRequest(max_price=90000))
        assert _filters(built) == [{"range": {"minPrice": {"lte": 90000}}}]

    def test_zero_min_price_is_a_bound(self):
        built = build_search_query(SearchRequest(min_price=0))
        assert _filters(built) == [{"range": {"minPrice": {"gte": 0}}}]

    def test_min_rating(self):
        built = build_search_query(SearchRequest(min_rating=4.0))
        assert _filters(built) == [{"range": {"averageRating": {"gte": 4.0}}}]

    def test_all_filters_combined(self):
        """키워드 + 모든 필터"""
        built = build_search_query(SearchRequest(
            keyword="서울",
            latitude=37.5,
            longitude=127.0,
            accommodation_type="PENSION",
            min_price=10000,
            max_price=20000,
            min_rating=3.5,
        ))

        bool_query = built.query["bool"]
        assert len(bool_query["should"]) == 2
        assert len(bool_query["filter"]) == 4


class TestSortAndPaging:
    """정렬/페이지"""

    @pytest.mark.parametrize("sort_by, expected", [
        ("price_asc", {"minPrice": {"order": "asc"}}),
        ("price_desc", {"minPrice": {"order": "desc"}}),
        ("rating", {"averageRating": {"order": "desc"}}),
        ("review_count", {"reviewCount": {"order": "desc"}}),
    ])
    def test_sort_keys(self, sort_by, expected):
        built = build_search_query(SearchRequest(sort_by=sort_by))
        assert built.sort[0] == expected
        assert built.sort[-1] == {"accommodationId": {"order": "asc"}}

    @pytest.mark.parametrize("sort_by", [None, "", "distance", "PRICE_ASC"])
    def test_unknown_sort_defers_to_relevance(self, sort_by):
        built = build_search_query(SearchRequest(sort_by=sort_by))
        assert built.sort == []

    def test_sort_key_enum(self):
        assert SearchRequest(sort_by="rating").sort_key is SortKey.RATING

    @pytest.mark.parametrize("page, offset", [
        (None, 0),
        (1, 0),
        (2, 20),
        (3, 40),
        (0, 0),
        (-4, 0),
    ])
    def test_page_offset(self, page, offset):
        built = build_search_query(SearchRequest(page=page))
        assert built.offset == offset
        assert built.limit == 20

    def test_page_offset_custom_size(self):
        assert page_offset(3, page_size=12) == 24

    def test_search_kwargs(self):
        built = build_search_query(SearchRequest(keyword="a", sort_by="rating", page=2))
        kwargs = built.to_search_kwargs("accommodations")
        assert kwargs["index"] == "accommodations"
        assert kwargs["from_"] == 20
        assert kwargs["size"] == 20
        assert kwargs["sort"] == built.sort

    def test_search_kwargs_without_sort(self):
        kwargs = build_search_query(SearchRequest()).to_search_kwargs("accommodations")
        assert "sort" not in kwargs

    def test_deterministic(self):
        request = SearchRequest(keyword="부산", min_price=1, sort_by="price_asc", page=2)
        assert build_search_query(request) == build_search_query(request)


class TestDedicatedQueries:
    """위치/자동완성/인기/ID 조회"""

    def test_location_query_sorted_by_distance(self):
        built = build_location_query(37.5, 127.0)

        assert built.query["bool"]["filter"][0]["geo_distance"]["distance"] == "5km"
        assert built.sort == [{
            "_geo_distance": {
                "location": {"lat": 37.5, "lon": 127.0},
                "order": "asc",
                "unit": "km",
            }
        }]
        assert built.limit == 50

    def test_autocomplete_phrase_prefix(self):
        built = build_autocomplete_query("Se")

        assert built.query == {
            "multi_match": {
                "query": "Se",
                "fields": ["accommodationName", "accommodationAddress"],
                "type": "phrase_prefix",
            }
        }
        assert built.limit == 10

    def test_popular_by_address(self):
        built = build_popular_query("제주")

        assert built.query == {"match": {"accommodationAddress": "제주"}}
        assert built.sort[0] == {"minPrice": {"order": "asc"}}
        assert built.limit == 12

    def test_ids_query_dedupes(self):
        built = build_ids_query([3, 1, 3, 2])
        assert built.query == {"terms": {"accommodationId": [3, 1, 2]}}
        assert built.limit == 3


class TestReviewQueries:
    """리뷰 검색 쿼리"""

    def test_by_accommodation(self):
        built = build_reviews_by_accommodation_query(7)
        assert built.query == {"term": {"accommodationId": 7}}
        assert built.sort == [{"createdAt": {"order": "desc"}}]
        assert built.limit == 100

    def test_by_user(self):
        built = build_reviews_by_user_query(5)
        assert built.query == {"term": {"userId": 5}}
        assert built.limit == 100

    def test_keyword(self):
        built = build_review_keyword_query("조식")
        assert built.query == {"match": {"reviewContent": "조식"}}
        assert built.limit == 50

    def test_by_rating(self):
        built = build_reviews_by_rating_query(7, 4.0)
        assert built.query == {
            "bool": {
                "must": [{"term": {"accommodationId": 7}}],
                "filter": [{"range": {"rating": {"gte": 4.0}}}],
            }
        }
        assert built.sort == [{"rating": {"order": "desc"}}]
