"""
원본 저장소(PostgreSQL) 읽기 전용 리포지토리

검색 인덱스 동기화에 필요한 조회만 제공합니다.
레코드는 snake_case 키를 가진 dict로 반환됩니다.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

import asyncpg

from sql.db_connector import create_pool

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class PrimaryStore(ABC):
    """동기화 엔진이 사용하는 원본 저장소 조회 계약"""

    @abstractmethod
    async def list_accommodations(self, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        """숙소 목록 (filters 없으면 전체)"""

    @abstractmethod
    async def list_reviews_by_accommodation(self, accommodation_id: int) -> List[Record]:
        """숙소별 리뷰 목록"""

    @abstractmethod
    async def find_accommodations_by_ids(self, ids: Iterable[int]) -> List[Record]:
        """ID 목록으로 숙소 조회"""

    async def close(self) -> None:
        return None


ACCOMMODATION_SELECT = """
    SELECT
        a.accommodation_id,
        a.accommodation_name,
        a.accommodation_address,
        a.accommodation_type,
        a.accommodation_latitude,
        a.accommodation_longitude,
        COALESCE(p.min_price, 0) AS min_price,
        r.average_rating,
        COALESCE(r.review_count, 0) AS review_count,
        img.main_image,
        COALESCE(f.facilities, ARRAY[]::text[]) AS facilities,
        a.created_at,
        a.updated_at
    FROM accommodation a
    LEFT JOIN (
        SELECT accommodation_id, MIN(product_price) AS min_price
        FROM product
        GROUP BY accommodation_id
    ) p ON p.accommodation_id = a.accommodation_id
    LEFT JOIN (
        SELECT accommodation_id,
               ROUND(AVG(rating)::numeric, 1)::float8 AS average_rating,
               COUNT(*) AS review_count
        FROM review
        GROUP BY accommodation_id
    ) r ON r.accommodation_id = a.accommodation_id
    LEFT JOIN LATERAL (
        SELECT accommodation_image_url AS main_image
        FROM accommodation_image
        WHERE accommodation_id = a.accommodation_id
        ORDER BY accommodation_image_id
        LIMIT 1
    ) img ON TRUE
    LEFT JOIN (
        SELECT accommodation_id, ARRAY_AGG(DISTINCT facility_name) AS facilities
        FROM accommodation_facility
        GROUP BY accommodation_id
    ) f ON f.accommodation_id = a.accommodation_id
"""

REVIEW_SELECT = """
    SELECT
        r.review_id,
        r.accommodation_id,
        r.user_id,
        u.user_name,
        r.review_content,
        r.rating,
        r.created_at,
        r.updated_at
    FROM review r
    LEFT JOIN users u ON u.user_id = r.user_id
"""

# 숙소 목록 필터 → WHERE 절 (값은 파라미터 바인딩)
ACCOMMODATION_FILTERS = {
    "accommodation_type": "a.accommodation_type = ${n}",
    "updated_since": "a.updated_at >= ${n}",
}


def build_accommodation_where(filters: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
    """필터 dict → (WHERE 절, 파라미터)"""
    clauses = []
    params: List[Any] = []
    for key, template in ACCOMMODATION_FILTERS.items():
        value = (filters or {}).get(key)
        if value is None:
            continue
        params.append(value)
        clauses.append(template.replace("{n}", str(len(params))))
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class PostgresStore(PrimaryStore):
    """
    asyncpg 기반 원본 저장소

    사용 예:
        store = PostgresStore()
        rows = await store.list_accommodations()
    """

    def __init__(self, pool: Optional[asyncpg.Pool] = None, dsn: Optional[str] = None):
        self.dsn = dsn
        self._pool = pool

    async def _get_pool(self) -> asyncpg.Pool:
        """커넥션 풀 반환"""
        if self._pool is None:
            self._pool = await create_pool(self.dsn)
        return self._pool

    async def _fetch(self, query: str, *params: Any) -> List[Record]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [dict(row) for row in rows]

    async def list_accommodations(self, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        where, params = build_accommodation_where(filters)
        query = ACCOMMODATION_SELECT + where + " ORDER BY a.accommodation_id"
        rows = await self._fetch(query, *params)
        logger.info(f"Loaded {len(rows)} accommodations")
        return rows

    async def list_reviews_by_accommodation(self, accommodation_id: int) -> List[Record]:
        query = REVIEW_SELECT + " WHERE r.accommodation_id = $1 ORDER BY r.created_at DESC"
        return await self._fetch(query, accommodation_id)

    async def find_accommodations_by_ids(self, ids: Iterable[int]) -> List[Record]:
        id_list = [int(i) for i in ids]
        if not id_list:
            return []
        query = ACCOMMODATION_SELECT + " WHERE a.accommodation_id = ANY($1::int[])"
        return await self._fetch(query, id_list)

    async def close(self):
        """연결 종료"""
        if self._pool:
            await self._pool.close()
            self._pool = None
