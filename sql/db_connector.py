"""
데이터베이스 연결 모듈
- PostgreSQL 커넥션 풀 (asyncpg)
- 환경 변수 기반 설정
"""

import asyncio
import logging
import os
from typing import Optional

import asyncpg
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# 환경 변수에서 DB 연결 정보 로드
PG_HOST = os.getenv("PG_HOST", "localhost")
PG_PORT = int(os.getenv("PG_PORT", "5432"))
PG_USER = os.getenv("PG_USER", "postgres")
PG_PASSWORD = os.getenv("PG_PASSWORD", "postgres")
PG_DATABASE = os.getenv("PG_DATABASE", "meomulm")
PG_POOL_MIN = int(os.getenv("PG_POOL_MIN", "2"))
PG_POOL_MAX = int(os.getenv("PG_POOL_MAX", "10"))


def build_dsn() -> str:
    """PostgreSQL 연결 문자열"""
    return f"postgresql://{PG_USER}:{PG_PASSWORD}@{PG_HOST}:{PG_PORT}/{PG_DATABASE}"


async def create_pool(dsn: Optional[str] = None) -> asyncpg.Pool:
    """커넥션 풀 생성"""
    try:
        pool = await asyncpg.create_pool(
            dsn or build_dsn(),
            min_size=PG_POOL_MIN,
            max_size=PG_POOL_MAX,
        )
    except (asyncpg.PostgresError, OSError) as e:
        logger.error(f"DB 연결 오류: {e}")
        raise
    logger.info(f"DB pool created: {PG_HOST}:{PG_PORT}/{PG_DATABASE}")
    return pool


async def test_connection() -> bool:
    """DB 연결 테스트"""
    try:
        pool = await create_pool()
    except (asyncpg.PostgresError, OSError):
        return False
    try:
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
        logger.info(f"DB 연결 성공: {result}")
        return True
    finally:
        await pool.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(test_connection())
