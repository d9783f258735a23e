"""
숙소 검색 요청 Pydantic 모델
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from search.errors import MalformedRequest


class SortKey(str, Enum):
    """통합 검색 정렬 기준"""
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING = "rating"
    REVIEW_COUNT = "review_count"


class SearchRequest(BaseModel):
    """
    통합 검색 요청

    모든 필드는 선택 사항이며, 없는 필드는 쿼리에서 생략됩니다.
    필드 간 일관성(예: 위도만 있는 경우)은 검증하지 않습니다.
    """
    keyword: Optional[str] = Field(default=None, description="검색어 (숙소명/주소)")
    latitude: Optional[float] = Field(default=None, description="현재 위치 위도")
    longitude: Optional[float] = Field(default=None, description="현재 위치 경도")
    accommodation_type: Optional[str] = Field(default=None, description="숙소 타입 (HOTEL, MOTEL, PENSION ...)")
    min_price: Optional[int] = Field(default=None, description="최소 가격")
    max_price: Optional[int] = Field(default=None, description="최대 가격")
    min_rating: Optional[float] = Field(default=None, description="최소 평점")
    sort_by: Optional[str] = Field(default=None, description="정렬: price_asc, price_desc, rating, review_count")
    page: Optional[int] = Field(default=None, description="페이지 번호 (1부터)")

    model_config = {
        "json_schema_extra": {
            "example": {
                "keyword": "서울 호텔",
                "latitude": 37.5665,
                "longitude": 126.9780,
                "accommodation_type": "HOTEL",
                "min_price": 50000,
                "max_price": 200000,
                "min_rating": 4.0,
                "sort_by": "price_asc",
                "page": 1,
            }
        }
    }

    @property
    def has_coordinate(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def sort_key(self) -> Optional[SortKey]:
        """알 수 없는 정렬값은 None (관련성 순)"""
        if not self.sort_by:
            return None
        try:
            return SortKey(self.sort_by)
        except ValueError:
            return None

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "SearchRequest":
        """쿼리 파라미터 dict → 요청 (타입 오류는 MalformedRequest)"""
        try:
            return cls.model_validate(params)
        except ValidationError as e:
            raise MalformedRequest(
                "invalid search request",
                details={"errors": e.errors(include_url=False)},
            ) from e
