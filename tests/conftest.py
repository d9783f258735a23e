"""
pytest 공통 fixture 정의
- 원본 저장소, Elasticsearch 없이 실행 가능
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import copy
from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import ConnectionError as ESConnectionError
from elasticsearch import NotFoundError

from search.es_bulk import BulkResult, Delete, Upsert
from sql.repositories import PrimaryStore


def make_api_error(error_cls=NotFoundError, status: int = 404, message: str = "not_found"):
    """ES ApiError 인스턴스 생성"""
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return error_cls(message, meta, {"error": message, "status": status})


def make_connection_error(message: str = "connection refused"):
    return ESConnectionError(message)


def search_response(sources: Iterable[Dict[str, Any]], index: str = "accommodations") -> Dict[str, Any]:
    """ES search 응답 형태"""
    hits = [
        {"_index": index, "_id": str(i), "_score": 1.0, "_source": source}
        for i, source in enumerate(sources)
    ]
    return {"hits": {"total": {"value": len(hits)}, "hits": hits}}


def accommodation_record(accommodation_id: int, **overrides) -> Dict[str, Any]:
    """원본 저장소 숙소 레코드"""
    record = {
        "accommodation_id": accommodation_id,
        "accommodation_name": f"숙소 {accommodation_id}",
        "accommodation_address": "서울특별시 중구 세종대로 110",
        "accommodation_type": "HOTEL",
        "accommodation_latitude": 37.5665,
        "accommodation_longitude": 126.9780,
        "min_price": 80000,
        "average_rating": 4.5,
        "review_count": 2,
        "main_image": f"https://img.example.com/{accommodation_id}.jpg",
        "facilities": ["wifi", "parking"],
        "created_at": "2025-01-01T00:00:00",
        "updated_at": "2025-06-01T00:00:00",
    }
    record.update(overrides)
    return record


def review_record(review_id: int, accommodation_id: int, **overrides) -> Dict[str, Any]:
    """원본 저장소 리뷰 레코드"""
    record = {
        "review_id": review_id,
        "accommodation_id": accommodation_id,
        "user_id": 100 + review_id,
        "user_name": f"user{review_id}",
        "review_content": "깨끗하고 친절해요",
        "rating": 5,
        "created_at": "2025-05-01T12:00:00",
        "updated_at": None,
    }
    record.update(overrides)
    return record


class FakeStore(PrimaryStore):
    """메모리 원본 저장소"""

    def __init__(self, accommodations: Optional[List[Dict[str, Any]]] = None,
                 reviews: Optional[List[Dict[str, Any]]] = None):
        self.accommodations = list(accommodations or [])
        self.reviews = list(reviews or [])
        self.fail_listing = False
        self.fail_reviews_for = set()
        self.closed = False

    async def list_accommodations(self, filters=None):
        if self.fail_listing:
            raise ConnectionRefusedError("primary store down")
        return [dict(r) for r in self.accommodations]

    async def list_reviews_by_accommodation(self, accommodation_id):
        if accommodation_id in self.fail_reviews_for:
            raise ConnectionRefusedError(f"review read failed for {accommodation_id}")
        return [dict(r) for r in self.reviews if r["accommodation_id"] == accommodation_id]

    async def find_accommodations_by_ids(self, ids):
        if self.fail_listing:
            raise ConnectionRefusedError("primary store down")
        wanted = {int(i) for i in ids}
        return [dict(r) for r in self.accommodations if r["accommodation_id"] in wanted]

    async def close(self):
        self.closed = True


class FakeIndex:
    """
    메모리 검색 인덱스

    AsyncElasticsearch의 index/delete 호출을 흉내냅니다.
    """

    def __init__(self):
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.index = AsyncMock(side_effect=self._index)
        self.delete = AsyncMock(side_effect=self._delete)
        self.close = AsyncMock()

    async def _index(self, index: str, id: str, document: Dict[str, Any]):
        self.docs.setdefault(index, {})[id] = copy.deepcopy(document)
        return {"result": "created"}

    async def _delete(self, index: str, id: str):
        if id not in self.docs.get(index, {}):
            raise make_api_error(NotFoundError, 404)
        del self.docs[index][id]
        return {"result": "deleted"}

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return copy.deepcopy(self.docs)


class FakeWriter:
    """FakeIndex에 적용하는 BulkWriter 대역"""

    def __init__(self, fake_index: FakeIndex, fail_keys: Iterable[str] = ()):
        self.fake_index = fake_index
        self.fail_keys = set(fail_keys)
        self.submitted: List[List[Any]] = []

    async def submit(self, operations):
        ops = list(operations)
        self.submitted.append(ops)
        result = BulkResult(total=len(ops))
        for op in ops:
            if op.key in self.fail_keys:
                result.failed_keys.append((op.index, op.key))
                result.errors.append({"index": {"_index": op.index, "_id": op.key, "status": 400}})
                continue
            if isinstance(op, Upsert):
                self.fake_index.docs.setdefault(op.index, {})[op.key] = copy.deepcopy(op.document)
            elif isinstance(op, Delete):
                self.fake_index.docs.get(op.index, {}).pop(op.key, None)
        result.succeeded = result.total - result.failed
        return result


@pytest.fixture
def fake_index():
    return FakeIndex()


@pytest.fixture
def fake_store():
    return FakeStore(
        accommodations=[accommodation_record(1), accommodation_record(2, accommodation_type="MOTEL")],
        reviews=[review_record(10, 1), review_record(11, 1, rating=3), review_record(20, 2)],
    )


@pytest.fixture
def mock_es():
    """AsyncElasticsearch 모킹"""
    client = MagicMock()
    client.search = AsyncMock(return_value=search_response([]))
    client.get = AsyncMock()
    client.index = AsyncMock(return_value={"result": "created"})
    client.delete = AsyncMock(return_value={"result": "deleted"})
    client.ping = AsyncMock(return_value=True)
    client.close = AsyncMock()
    client.indices = MagicMock()
    client.indices.exists = AsyncMock(return_value=False)
    client.indices.create = AsyncMock(return_value={"acknowledged": True})
    client.indices.delete = AsyncMock(return_value={"acknowledged": True})
    client.indices.refresh = AsyncMock(return_value={})
    client.indices.stats = AsyncMock()
    return client
