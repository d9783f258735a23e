"""
배치 동기화 스케줄러

매일 정해진 시각에 전체 동기화 작업을 실행합니다.
- accommodations: 03:00
- reviews: 04:00 (숙소 목록을 기준으로 하므로 숙소 다음)

작업은 하나씩 끝까지 실행되며, 앞 작업이 길어져 예정 시각이 지난 작업은
다음 날로 미루지 않고 바로 실행합니다.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from search.config import ACCOMMODATION_SYNC_AT, REVIEW_SYNC_AT, SYNC_TIMEZONE

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[object]]


def parse_time_of_day(value: str) -> time:
    """"HH:MM" → time"""
    hour, minute = value.strip().split(":")
    return time(hour=int(hour), minute=int(minute))


@dataclass
class DailyJob:
    """매일 같은 시각에 실행되는 작업"""
    name: str
    at: time
    func: JobFunc

    def next_fire(self, now: datetime) -> datetime:
        """now 이후(같은 시각 포함 안 함) 다음 실행 시각"""
        candidate = now.replace(
            hour=self.at.hour,
            minute=self.at.minute,
            second=0,
            microsecond=0,
        )
        if candidate <= now:
            candidate = candidate + timedelta(days=1)
        return candidate


class ReconciliationScheduler:
    """
    일일 배치 스케줄러

    작업마다 예정 시각을 따로 기억합니다. 앞 작업이 길어져 다음 작업의
    예정 시각이 지나 있으면 다음 날로 미루지 않고 바로 실행합니다.

    사용 예:
        scheduler = build_default_scheduler(engine)
        await scheduler.run_forever()
    """

    def __init__(
        self,
        jobs: List[DailyJob],
        tz: str = SYNC_TIMEZONE,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Args:
            jobs: 등록 순서가 같은 시각일 때의 실행 순서
            tz: 스케줄 기준 시간대
            clock: 현재 시각 함수 (테스트용)
            sleep: 대기 함수 (기본값: stop() 호출 시 즉시 깨어나는 대기)
        """
        self.jobs = list(jobs)
        self.tz = ZoneInfo(tz)
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._sleep = sleep or self._sleep_until_stopped
        self._stopped = asyncio.Event()
        # 작업 순번 → 예정 시각
        self._scheduled: Dict[int, datetime] = {}

    def now(self) -> datetime:
        return self._clock()

    def _fire_time(self, order: int, job: DailyJob, now: datetime) -> datetime:
        scheduled = self._scheduled.get(order)
        return scheduled if scheduled is not None else job.next_fire(now)

    def _next(self, now: datetime) -> Tuple[datetime, int, DailyJob]:
        if not self.jobs:
            raise ValueError("no jobs registered")
        schedule = [(self._fire_time(order, job, now), order, job) for order, job in enumerate(self.jobs)]
        return min(schedule, key=lambda item: (item[0], item[1]))

    def next_due(self, now: datetime) -> Tuple[datetime, DailyJob]:
        """가장 먼저 실행될 (시각, 작업)"""
        fire_at, _, job = self._next(now)
        return fire_at, job

    async def run_job(self, job: DailyJob) -> bool:
        """작업 1회 실행 (예외는 기록 후 삼킴 - 스케줄러는 계속 동작)"""
        logger.info(f"Scheduled job start: {job.name}")
        try:
            result = await job.func()
        except Exception:
            logger.exception(f"Scheduled job failed: {job.name}")
            return False
        logger.info(f"Scheduled job done: {job.name}: {result}")
        return True

    async def _sleep_until_stopped(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def run_once(self) -> Optional[DailyJob]:
        """
        다음 작업 시각까지 대기 후 실행

        Returns:
            실행한 작업 (대기 중 stop()되면 None)
        """
        now = self.now()
        for order, job in enumerate(self.jobs):
            self._scheduled.setdefault(order, job.next_fire(now))

        fire_at, order, job = self._next(now)
        delay = max(0.0, (fire_at - now).total_seconds())
        if delay:
            logger.info(f"Next job: {job.name} at {fire_at.isoformat()} (in {delay:.0f}s)")
        else:
            logger.info(f"Job {job.name} was due at {fire_at.isoformat()}, running now")
        await self._sleep(delay)
        if self._stopped.is_set():
            return None

        await self.run_job(job)
        # 실행이 하루를 넘겨도 지난 회차를 몰아서 실행하지 않음
        self._scheduled[order] = job.next_fire(max(fire_at, self.now()))
        return job

    async def run_forever(self) -> None:
        """stop() 호출 전까지 반복"""
        while not self._stopped.is_set():
            await self.run_once()

    def stop(self) -> None:
        self._stopped.set()


def build_default_scheduler(engine, tz: str = SYNC_TIMEZONE, **kwargs) -> ReconciliationScheduler:
    """숙소(03:00) → 리뷰(04:00) 기본 스케줄"""
    return ReconciliationScheduler(
        jobs=[
            DailyJob("accommodations", parse_time_of_day(ACCOMMODATION_SYNC_AT), engine.reconcile_accommodations),
            DailyJob("reviews", parse_time_of_day(REVIEW_SYNC_AT), engine.reconcile_reviews),
        ],
        tz=tz,
        **kwargs,
    )


async def main():
    """스케줄러 프로세스 진입점"""
    from search.es_sync import SyncEngine
    from sql.repositories import PostgresStore

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    engine = SyncEngine(PostgresStore())
    scheduler = build_default_scheduler(engine)
    try:
        await scheduler.run_forever()
    finally:
        await engine.close()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
