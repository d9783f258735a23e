"""
검색 인덱스 문서 모델

숙소(accommodations), 리뷰(reviews), 객실(products) 세 인덱스의 문서 정의.
각 문서는 FIELD_TABLE(속성명 → 인덱스 필드명)로 원본 레코드 및
인덱스 _source와 1:1 변환됩니다.

원본 저장소 레코드는 snake_case 키를 가진 dict(asyncpg Record 호환)이고,
인덱스 필드는 매핑 파일(config/elasticsearch/mappings)의 camelCase를 따릅니다.
"""

import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from search.config import ACCOMMODATION_INDEX, REVIEW_INDEX, ROOM_LISTING_INDEX
from search.errors import ConversionFailure

logger = logging.getLogger(__name__)


class AccommodationType(str, Enum):
    """알려진 숙소 타입 (목록에 없는 값도 그대로 인덱싱)"""
    HOTEL = "HOTEL"
    MOTEL = "MOTEL"
    PENSION = "PENSION"


KNOWN_ACCOMMODATION_TYPES = {t.value for t in AccommodationType}


@dataclass(frozen=True)
class GeoPoint:
    """geo_point 필드 값"""
    lat: float
    lon: float

    def to_source(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


def format_timestamp(value: Any) -> Optional[str]:
    """타임스탬프를 ES date 문자열로 변환"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return str(value)


def _facility_list(value: Any) -> List[str]:
    # 시설 태그는 순서 없는 집합 - 정렬해서 항상 같은 문서가 되도록 함
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return sorted({str(v).strip() for v in value if str(v).strip()})


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


class _IndexDocument:
    """FIELD_TABLE 기반 공통 변환"""

    INDEX: str = ""
    ID_ATTR: str = ""
    FIELD_TABLE: Dict[str, str] = {}

    @property
    def doc_id(self) -> str:
        return str(getattr(self, self.ID_ATTR))

    def to_source(self) -> Dict[str, Any]:
        """인덱스에 저장할 _source"""
        return {
            index_field: getattr(self, attr)
            for attr, index_field in self.FIELD_TABLE.items()
        }

    @classmethod
    def _values_from_source(cls, source: Mapping[str, Any]) -> Dict[str, Any]:
        id_field = cls.FIELD_TABLE[cls.ID_ATTR]
        if source.get(id_field) is None:
            raise KeyError(f"{cls.__name__}: missing {id_field}")
        return {
            attr: source.get(index_field)
            for attr, index_field in cls.FIELD_TABLE.items()
        }


@dataclass
class AccommodationDocument(_IndexDocument):
    """숙소 문서"""

    accommodation_id: int
    accommodation_name: Optional[str] = None
    accommodation_address: Optional[str] = None
    accommodation_type: Optional[str] = None
    accommodation_latitude: Optional[float] = None
    accommodation_longitude: Optional[float] = None
    min_price: Optional[int] = None
    average_rating: Optional[float] = None
    review_count: Optional[int] = None
    main_image: Optional[str] = None
    facilities: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    location: Optional[GeoPoint] = field(default=None, repr=False)

    INDEX = ACCOMMODATION_INDEX
    ID_ATTR = "accommodation_id"
    FIELD_TABLE = {
        "accommodation_id": "accommodationId",
        "accommodation_name": "accommodationName",
        "accommodation_address": "accommodationAddress",
        "accommodation_type": "accommodationType",
        "accommodation_latitude": "accommodationLatitude",
        "accommodation_longitude": "accommodationLongitude",
        "min_price": "minPrice",
        "average_rating": "averageRating",
        "review_count": "reviewCount",
        "main_image": "mainImage",
        "facilities": "facilities",
        "created_at": "createdAt",
        "updated_at": "updatedAt",
    }
    LOCATION_FIELD = "location"

    def __post_init__(self):
        self.set_location(self.accommodation_latitude, self.accommodation_longitude)

    def set_location(self, latitude: Optional[float], longitude: Optional[float]) -> None:
        """
        좌표와 geo_point를 함께 설정

        위도/경도는 둘 다 있거나 둘 다 없어야 합니다.
        """
        if (latitude is None) != (longitude is None):
            raise ConversionFailure(
                "latitude and longitude must be set together",
                entity="accommodation",
                entity_id=self.accommodation_id,
                details={"latitude": latitude, "longitude": longitude},
            )
        if latitude is None:
            self.accommodation_latitude = None
            self.accommodation_longitude = None
            self.location = None
            return
        self.accommodation_latitude = float(latitude)
        self.accommodation_longitude = float(longitude)
        self.location = GeoPoint(self.accommodation_latitude, self.accommodation_longitude)

    def to_source(self) -> Dict[str, Any]:
        source = super().to_source()
        source[self.LOCATION_FIELD] = self.location.to_source() if self.location else None
        return source

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "AccommodationDocument":
        """원본 저장소 레코드 → 문서"""
        accommodation_id = record.get("accommodation_id")
        if accommodation_id is None:
            raise ConversionFailure("record without accommodation_id", entity="accommodation")

        accommodation_type = record.get("accommodation_type")
        if accommodation_type is not None:
            accommodation_type = str(accommodation_type)
            if accommodation_type not in KNOWN_ACCOMMODATION_TYPES:
                logger.warning(f"숙소 {accommodation_id}: 알 수 없는 숙소 타입 '{accommodation_type}' (그대로 인덱싱)")

        min_price = _optional_int(record.get("min_price"))
        if min_price is not None and min_price < 0:
            raise ConversionFailure(
                f"negative min_price: {min_price}",
                entity="accommodation",
                entity_id=accommodation_id,
            )

        average_rating = _optional_float(record.get("average_rating"))
        if average_rating is not None and not 0.0 <= average_rating <= 5.0:
            raise ConversionFailure(
                f"average_rating out of range: {average_rating}",
                entity="accommodation",
                entity_id=accommodation_id,
            )

        return cls(
            accommodation_id=int(accommodation_id),
            accommodation_name=record.get("accommodation_name"),
            accommodation_address=record.get("accommodation_address"),
            accommodation_type=accommodation_type,
            accommodation_latitude=_optional_float(record.get("accommodation_latitude")),
            accommodation_longitude=_optional_float(record.get("accommodation_longitude")),
            min_price=min_price,
            average_rating=average_rating,
            review_count=_optional_int(record.get("review_count")) or 0,
            main_image=record.get("main_image"),
            facilities=_facility_list(record.get("facilities")),
            created_at=format_timestamp(record.get("created_at")),
            updated_at=format_timestamp(record.get("updated_at")),
        )

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> "AccommodationDocument":
        """인덱스 _source → 문서"""
        values = cls._values_from_source(source)
        location = source.get(cls.LOCATION_FIELD)
        if values["accommodation_latitude"] is None and isinstance(location, Mapping):
            values["accommodation_latitude"] = location.get("lat")
            values["accommodation_longitude"] = location.get("lon")
        values["facilities"] = list(values["facilities"] or [])
        return cls(**values)


@dataclass
class ReviewDocument(_IndexDocument):
    """리뷰 문서"""

    review_id: int
    accommodation_id: Optional[int] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    review_content: Optional[str] = None
    rating: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    INDEX = REVIEW_INDEX
    ID_ATTR = "review_id"
    FIELD_TABLE = {
        "review_id": "reviewId",
        "accommodation_id": "accommodationId",
        "user_id": "userId",
        "user_name": "userName",
        "review_content": "reviewContent",
        "rating": "rating",
        "created_at": "createdAt",
        "updated_at": "updatedAt",
    }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ReviewDocument":
        """원본 저장소 레코드 → 문서 (정수 평점은 float로 저장)"""
        review_id = record.get("review_id")
        if review_id is None:
            raise ConversionFailure("record without review_id", entity="review")
        return cls(
            review_id=int(review_id),
            accommodation_id=_optional_int(record.get("accommodation_id")),
            user_id=_optional_int(record.get("user_id")),
            user_name=record.get("user_name"),
            review_content=record.get("review_content"),
            rating=_optional_float(record.get("rating")),
            created_at=format_timestamp(record.get("created_at")),
            updated_at=format_timestamp(record.get("updated_at")),
        )

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> "ReviewDocument":
        values = cls._values_from_source(source)
        values["rating"] = _optional_float(values["rating"])
        return cls(**values)


@dataclass
class RoomListingDocument(_IndexDocument):
    """객실(상품) 문서"""

    product_id: int
    accommodation_id: Optional[int] = None
    product_name: Optional[str] = None
    product_description: Optional[str] = None
    product_price: Optional[int] = None
    max_guests: Optional[int] = None
    facilities: List[str] = field(default_factory=list)
    main_image: Optional[str] = None
    is_available: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    INDEX = ROOM_LISTING_INDEX
    ID_ATTR = "product_id"
    FIELD_TABLE = {
        "product_id": "productId",
        "accommodation_id": "accommodationId",
        "product_name": "productName",
        "product_description": "productDescription",
        "product_price": "productPrice",
        "max_guests": "maxGuests",
        "facilities": "facilities",
        "main_image": "mainImage",
        "is_available": "isAvailable",
        "created_at": "createdAt",
        "updated_at": "updatedAt",
    }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RoomListingDocument":
        product_id = record.get("product_id")
        if product_id is None:
            raise ConversionFailure("record without product_id", entity="room_listing")
        is_available = record.get("is_available")
        return cls(
            product_id=int(product_id),
            accommodation_id=_optional_int(record.get("accommodation_id")),
            product_name=record.get("product_name"),
            product_description=record.get("product_description"),
            product_price=_optional_int(record.get("product_price")),
            max_guests=_optional_int(record.get("max_guests")),
            facilities=_facility_list(record.get("facilities")),
            main_image=record.get("main_image"),
            is_available=None if is_available is None else bool(is_available),
            created_at=format_timestamp(record.get("created_at")),
            updated_at=format_timestamp(record.get("updated_at")),
        )

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> "RoomListingDocument":
        values = cls._values_from_source(source)
        values["facilities"] = list(values["facilities"] or [])
        return cls(**values)


def document_attributes(document_cls) -> List[str]:
    """FIELD_TABLE 검증용: 데이터클래스 속성명 (파생 필드 제외)"""
    return [f.name for f in fields(document_cls) if f.name != "location"]
