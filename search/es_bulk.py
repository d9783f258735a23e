"""
Elasticsearch Bulk 작성기

여러 upsert/delete 작업을 하나의 bulk 요청으로 전송하고
작업별 결과를 BulkResult로 돌려줍니다.

실패한 개별 작업은 자동 재시도하지 않습니다. failed_keys로
실패 대상을 알려줄 뿐이며, 다음 배치 동기화에서 복구됩니다.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from elasticsearch import ApiError, AsyncElasticsearch, TransportError
from elasticsearch.helpers import async_bulk

logger = logging.getLogger(__name__)

# 로그에 남길 개별 오류 수
MAX_LOGGED_ERRORS = 3

# async_bulk가 크기 기준으로 요청을 나누지 않도록 하는 상한
SINGLE_BATCH_BYTES = sys.maxsize


@dataclass(frozen=True)
class Upsert:
    """문서 전체 교체 (키 기준)"""
    index: str
    key: str
    document: Dict[str, Any]

    def to_action(self) -> Dict[str, Any]:
        return {
            "_op_type": "index",
            "_index": self.index,
            "_id": str(self.key),
            "_source": self.document,
        }


@dataclass(frozen=True)
class Delete:
    """문서 삭제 (키 기준)"""
    index: str
    key: str

    def to_action(self) -> Dict[str, Any]:
        return {
            "_op_type": "delete",
            "_index": self.index,
            "_id": str(self.key),
        }


Operation = Union[Upsert, Delete]


@dataclass
class BulkResult:
    """Bulk 요청 결과"""
    total: int = 0
    succeeded: int = 0
    failed_keys: List[Tuple[str, str]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    transport_error: Optional[str] = None

    @property
    def failed(self) -> int:
        return len(self.failed_keys)

    @property
    def had_errors(self) -> bool:
        return bool(self.failed_keys) or self.transport_error is not None

    def __str__(self) -> str:
        return f"bulk: {self.succeeded:,}/{self.total:,} ok, {self.failed:,} failed"


def _error_item(error: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """async_bulk 오류 항목 {"index": {...}} → (op_type, info)"""
    op_type, info = next(iter(error.items()))
    return op_type, info


def _is_missing_delete(op_type: str, info: Dict[str, Any]) -> bool:
    # 없는 문서 삭제는 성공으로 취급 (멱등)
    return op_type == "delete" and info.get("status") == 404


class BulkWriter:
    """
    Bulk 작성기

    사용 예:
        writer = BulkWriter(es)
        result = await writer.submit([Upsert("accommodations", "1", doc), Delete("reviews", "7")])
    """

    def __init__(self, client: AsyncElasticsearch):
        """
        Args:
            client: AsyncElasticsearch
        """
        self.client = client

    async def submit(self, operations: Iterable[Operation]) -> BulkResult:
        """
        작업 일괄 전송

        전체 작업을 bulk 요청 한 번으로 보냅니다. 요청 자체가 실패하면
        어떤 작업도 반영되지 않은 것으로 보고 전부 실패 처리합니다.

        Args:
            operations: Upsert / Delete 목록

        Returns:
            BulkResult (예외를 전파하지 않음)
        """
        ops: Sequence[Operation] = list(operations)
        result = BulkResult(total=len(ops))
        if not ops:
            return result

        try:
            _, errors = await async_bulk(
                self.client,
                [op.to_action() for op in ops],
                chunk_size=len(ops),
                max_chunk_bytes=SINGLE_BATCH_BYTES,
                raise_on_error=False,
                raise_on_exception=False,
            )
        except (ApiError, TransportError) as e:
            logger.error(f"Bulk request failed: {e}")
            result.transport_error = str(e)
            result.failed_keys = [(op.index, str(op.key)) for op in ops]
            return result

        for error in errors or []:
            op_type, info = _error_item(error)
            if _is_missing_delete(op_type, info):
                continue
            result.failed_keys.append((info.get("_index", ""), str(info.get("_id"))))
            result.errors.append(error)

        result.succeeded = result.total - result.failed

        if result.failed:
            logger.warning(f"Bulk completed with errors: {result}")
            for error in result.errors[:MAX_LOGGED_ERRORS]:
                logger.warning(f"Bulk error: {error}")
        else:
            logger.info(f"Bulk completed: {result}")

        return result
