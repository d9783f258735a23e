"""
PostgreSQL → Elasticsearch 동기화 엔진

- 실시간 동기화: 숙소 단건/다건 upsert, 숙소별 리뷰 upsert
- 삭제 동기화: 숙소/리뷰 문서 삭제 (없는 문서 삭제는 성공)
- 배치 동기화: 전체 숙소(03:00), 전체 리뷰(04:00) bulk 재인덱싱

인덱스는 원본 저장소에서 언제든 다시 만들 수 있는 캐시입니다.
동기화 실패는 호출자에게 예외로 전파하지 않고 로그와 SyncReport에 기록하며,
다음 배치 동기화에서 복구됩니다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import asyncpg
from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError

from search.config import ACCOMMODATION_INDEX, REVIEW_INDEX
from search.documents import AccommodationDocument, ReviewDocument
from search.es_bulk import BulkResult, BulkWriter, Upsert
from search.es_client import create_async_client
from search.errors import (
    ConversionFailure,
    PartialBulkFailure,
    SearchSyncError,
    SourceMissing,
    TransportFailure,
)
from sql.repositories import PrimaryStore

logger = logging.getLogger(__name__)

# 원본 저장소 조회 오류
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

# 레코드 → 문서 변환 오류
CONVERSION_ERRORS = (SearchSyncError, KeyError, TypeError, ValueError)


@dataclass
class SyncReport:
    """배치 동기화 결과"""
    entity: str
    index: str
    total: int = 0
    indexed: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[SearchSyncError] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.indexed / self.total) * 100

    @property
    def ok(self) -> bool:
        return not self.failures

    def record(self, error: SearchSyncError) -> None:
        """실패 기록 (예외를 던지지 않음)"""
        self.failures.append(error)
        logger.warning(f"[{self.entity}] {error.to_dict()}")

    def __str__(self) -> str:
        return (
            f"{self.entity} → {self.index}: "
            f"{self.indexed:,}/{self.total:,} "
            f"({self.success_rate:.1f}%), "
            f"failed={self.failed:,}, skipped={self.skipped:,} "
            f"in {self.elapsed_seconds:.1f}s"
        )


def _convert_accommodation(record: Mapping[str, Any]) -> AccommodationDocument:
    try:
        return AccommodationDocument.from_record(record)
    except ConversionFailure:
        raise
    except CONVERSION_ERRORS as e:
        raise ConversionFailure(
            f"accommodation conversion failed: {e}",
            entity="accommodation",
            entity_id=record.get("accommodation_id"),
        ) from e


def _convert_review(record: Mapping[str, Any]) -> ReviewDocument:
    try:
        return ReviewDocument.from_record(record)
    except ConversionFailure:
        raise
    except CONVERSION_ERRORS as e:
        raise ConversionFailure(
            f"review conversion failed: {e}",
            entity="review",
            entity_id=record.get("review_id"),
        ) from e


class SyncEngine:
    """
    검색 인덱스 동기화 엔진

    원본 저장소 변경 후 호출되거나(실시간), 스케줄러가 매일 호출합니다(배치).

    사용 예:
        engine = SyncEngine(PostgresStore())
        await engine.sync_accommodation(42)
        report = await engine.reconcile_accommodations()
    """

    def __init__(
        self,
        store: PrimaryStore,
        client: Optional[AsyncElasticsearch] = None,
        writer: Optional[BulkWriter] = None,
        accommodation_index: str = ACCOMMODATION_INDEX,
        review_index: str = REVIEW_INDEX,
    ):
        """
        Args:
            store: 원본 저장소
            client: AsyncElasticsearch (없으면 설정으로 생성)
            writer: Bulk 작성기 (없으면 client로 생성)
            accommodation_index: 숙소 인덱스명
            review_index: 리뷰 인덱스명
        """
        self.store = store
        self._owns_client = client is None
        self.client = client or create_async_client()
        self.writer = writer or BulkWriter(self.client)
        self.accommodation_index = accommodation_index
        self.review_index = review_index

    # ------------------------------------------------------------------
    # 실시간 동기화
    # ------------------------------------------------------------------

    async def sync_accommodation(self, accommodation_id: int) -> bool:
        """
        숙소 단건 동기화 (문서 전체 교체)

        원본에 없는 숙소는 삭제하지 않고 경고만 남깁니다.

        Returns:
            인덱스 반영 여부
        """
        try:
            records = await self.store.find_accommodations_by_ids([accommodation_id])
        except STORE_ERRORS as e:
            logger.error(f"숙소 {accommodation_id} 조회 중 오류 발생: {e}")
            return False

        record = next(
            (r for r in records if str(r.get("accommodation_id")) == str(accommodation_id)),
            None,
        )
        if record is None:
            logger.warning(SourceMissing("accommodation", accommodation_id).message)
            return False

        try:
            document = _convert_accommodation(record)
        except ConversionFailure as e:
            logger.error(f"숙소 {accommodation_id} 변환 실패: {e.to_dict()}")
            return False

        try:
            await self.client.index(
                index=self.accommodation_index,
                id=document.doc_id,
                document=document.to_source(),
            )
        except (ApiError, TransportError) as e:
            logger.error(f"숙소 {accommodation_id} 동기화 중 오류 발생: {e}")
            return False

        logger.info(f"숙소 {accommodation_id} 동기화 완료")
        return True

    async def sync_accommodations(self, accommodation_ids: Iterable[int]) -> SyncReport:
        """숙소 다건 동기화 (bulk, 원본에 없는 ID는 건너뜀)"""
        ids = list(dict.fromkeys(accommodation_ids))
        report = SyncReport(entity="accommodation", index=self.accommodation_index, total=len(ids))
        start = time.monotonic()
        if not ids:
            return report

        try:
            records = await self.store.find_accommodations_by_ids(ids)
        except STORE_ERRORS as e:
            report.skipped = len(ids)
            report.record(TransportFailure(f"primary store read failed: {e}", entity="accommodation"))
            return self._finish(report, start)

        found = {str(r.get("accommodation_id")) for r in records}
        for missing in (i for i in ids if str(i) not in found):
            report.skipped += 1
            report.record(SourceMissing("accommodation", missing))

        operations = self._accommodation_operations(records, report)
        await self._submit(operations, report)
        return self._finish(report, start)

    async def sync_accommodation_reviews(self, accommodation_id: int) -> SyncReport:
        """숙소 한 곳의 리뷰 전체 동기화"""
        report = SyncReport(entity="review", index=self.review_index)
        start = time.monotonic()

        try:
            records = await self.store.list_reviews_by_accommodation(accommodation_id)
        except STORE_ERRORS as e:
            report.record(TransportFailure(
                f"review read failed: {e}",
                entity="accommodation",
                entity_id=accommodation_id,
            ))
            return self._finish(report, start)

        report.total = len(records)
        if not records:
            logger.info(f"숙소 {accommodation_id}: 동기화할 리뷰가 없습니다.")
            return self._finish(report, start)

        operations = self._review_operations(records, report)
        await self._submit(operations, report)
        return self._finish(report, start)

    # ------------------------------------------------------------------
    # 삭제 동기화
    # ------------------------------------------------------------------

    async def _delete(self, index: str, doc_id: int, label: str) -> bool:
        try:
            await self.client.delete(index=index, id=str(doc_id))
        except NotFoundError:
            logger.info(f"{label} ID {doc_id} 는 인덱스에 없습니다 (삭제 생략)")
            return True
        except (ApiError, TransportError) as e:
            logger.error(f"{label} 삭제 동기화 중 오류 발생: {doc_id}: {e}")
            return False

        logger.info(f"{label} ID {doc_id} 삭제 동기화 완료")
        return True

    async def delete_accommodation(self, accommodation_id: int) -> bool:
        """숙소 문서 삭제 (멱등)"""
        return await self._delete(self.accommodation_index, accommodation_id, "숙소")

    async def delete_review(self, review_id: int) -> bool:
        """리뷰 문서 삭제 (멱등)"""
        return await self._delete(self.review_index, review_id, "리뷰")

    # ------------------------------------------------------------------
    # 배치 동기화
    # ------------------------------------------------------------------

    async def reconcile_accommodations(self) -> SyncReport:
        """
        전체 숙소 배치 동기화

        원본이 비어 있으면 아무 것도 하지 않습니다 (인덱스를 비우지 않음).
        """
        logger.info("전체 숙소 배치 동기화 시작")
        report = SyncReport(entity="accommodation", index=self.accommodation_index)
        start = time.monotonic()

        try:
            records = await self.store.list_accommodations()
        except STORE_ERRORS as e:
            report.record(TransportFailure(f"primary store read failed: {e}", entity="accommodation"))
            return self._finish(report, start)

        if not records:
            logger.warning("동기화할 숙소 데이터가 없습니다.")
            return self._finish(report, start)

        report.total = len(records)
        operations = self._accommodation_operations(records, report)
        await self._submit(operations, report)
        return self._finish(report, start)

    async def reconcile_reviews(self) -> SyncReport:
        """
        전체 리뷰 배치 동기화

        숙소 목록을 먼저 읽고 숙소별로 리뷰를 조회합니다.
        한 숙소의 조회 실패는 기록 후 건너뜁니다.
        """
        logger.info("전체 리뷰 배치 동기화 시작")
        report = SyncReport(entity="review", index=self.review_index)
        start = time.monotonic()

        try:
            accommodations = await self.store.list_accommodations()
        except STORE_ERRORS as e:
            report.record(TransportFailure(f"primary store read failed: {e}", entity="accommodation"))
            return self._finish(report, start)

        if not accommodations:
            logger.warning("동기화할 숙소가 없습니다.")
            return self._finish(report, start)

        operations: List[Upsert] = []
        for accommodation in accommodations:
            accommodation_id = accommodation.get("accommodation_id")
            try:
                reviews = await self.store.list_reviews_by_accommodation(accommodation_id)
            except STORE_ERRORS as e:
                report.skipped += 1
                report.record(TransportFailure(
                    f"review read failed: {e}",
                    entity="accommodation",
                    entity_id=accommodation_id,
                ))
                continue

            report.total += len(reviews)
            operations.extend(self._review_operations(reviews, report))

        if not operations:
            logger.warning("동기화할 리뷰 데이터가 없습니다.")
            return self._finish(report, start)

        await self._submit(operations, report)
        return self._finish(report, start)

    async def reconcile_all(self) -> List[SyncReport]:
        """숙소 → 리뷰 순서로 전체 배치 동기화"""
        return [
            await self.reconcile_accommodations(),
            await self.reconcile_reviews(),
        ]

    # ------------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------------

    def _accommodation_operations(self, records: Iterable[Mapping[str, Any]], report: SyncReport) -> List[Upsert]:
        operations = []
        for record in records:
            try:
                document = _convert_accommodation(record)
            except ConversionFailure as e:
                report.skipped += 1
                report.record(e)
                continue
            operations.append(Upsert(self.accommodation_index, document.doc_id, document.to_source()))
        return operations

    def _review_operations(self, records: Iterable[Mapping[str, Any]], report: SyncReport) -> List[Upsert]:
        operations = []
        for record in records:
            try:
                document = _convert_review(record)
            except ConversionFailure as e:
                report.skipped += 1
                report.record(e)
                continue
            operations.append(Upsert(self.review_index, document.doc_id, document.to_source()))
        return operations

    async def _submit(self, operations: List[Upsert], report: SyncReport) -> Optional[BulkResult]:
        if not operations:
            return None

        result = await self.writer.submit(operations)
        report.indexed += result.succeeded
        report.failed += result.failed

        if result.transport_error is not None:
            report.record(TransportFailure(
                f"bulk request failed: {result.transport_error}",
                entity=report.entity,
            ))
        elif result.had_errors:
            report.record(PartialBulkFailure(
                f"{report.entity} 배치 동기화 중 일부 오류 발생",
                failed_count=result.failed,
                entity=report.entity,
                details={"failed_keys": [key for _, key in result.failed_keys]},
            ))
        return result

    def _finish(self, report: SyncReport, start: float) -> SyncReport:
        report.elapsed_seconds = time.monotonic() - start
        logger.info(f"Completed: {report}")
        return report

    async def close(self):
        """연결 종료"""
        if self._owns_client:
            await self.client.close()
        await self.store.close()


# CLI 인터페이스
async def main():
    """CLI 진입점"""
    import argparse

    from sql.repositories import PostgresStore

    parser = argparse.ArgumentParser(description="Search index sync")
    parser.add_argument("action", choices=["accommodation", "reviews", "all", "upsert", "delete"])
    parser.add_argument("--id", "-i", type=int, action="append", help="Accommodation/review ID (repeatable)")
    parser.add_argument("--entity", "-e", choices=["accommodation", "review"], default="accommodation")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    engine = SyncEngine(PostgresStore())

    try:
        if args.action == "accommodation":
            print(await engine.reconcile_accommodations())
        elif args.action == "reviews":
            print(await engine.reconcile_reviews())
        elif args.action == "all":
            for report in await engine.reconcile_all():
                print(f"  {report}")
        elif args.action == "upsert":
            if not args.id:
                parser.error("upsert requires --id")
            if args.entity == "review":
                for accommodation_id in args.id:
                    print(await engine.sync_accommodation_reviews(accommodation_id))
            elif len(args.id) == 1:
                ok = await engine.sync_accommodation(args.id[0])
                print(f"Upsert {args.id[0]}: {'OK' if ok else 'FAILED'}")
            else:
                print(await engine.sync_accommodations(args.id))
        elif args.action == "delete":
            if not args.id:
                parser.error("delete requires --id")
            delete = engine.delete_review if args.entity == "review" else engine.delete_accommodation
            for doc_id in args.id:
                ok = await delete(doc_id)
                print(f"Delete {args.entity} {doc_id}: {'OK' if ok else 'FAILED'}")
    finally:
        await engine.close()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
