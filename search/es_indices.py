"""
Elasticsearch 인덱스 관리

숙소/리뷰/객실 인덱스 생성, 삭제, 상태 확인을 담당합니다.
인덱스가 매핑대로 존재하는 것은 동기화/검색의 전제 조건이며,
스키마 마이그레이션은 지원하지 않습니다.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError

from search.config import ACCOMMODATION_INDEX, REVIEW_INDEX, ROOM_LISTING_INDEX
from search.es_client import create_async_client

logger = logging.getLogger(__name__)

# 설정 파일 경로
CONFIG_DIR = Path(__file__).parent.parent / "config" / "elasticsearch"
SETTINGS_PATH = CONFIG_DIR / "settings.json"
MAPPINGS_DIR = CONFIG_DIR / "mappings"


class ESIndexManager:
    """
    Elasticsearch 인덱스 관리자

    사용 예:
        manager = ESIndexManager()
        await manager.create_all_indices()
        status = await manager.get_indices_status()
    """

    # 인덱스 목록 및 매핑 파일
    INDICES = {
        ACCOMMODATION_INDEX: "accommodations.json",
        REVIEW_INDEX: "reviews.json",
        ROOM_LISTING_INDEX: "products.json",
    }

    def __init__(self, client: Optional[AsyncElasticsearch] = None):
        """
        Args:
            client: AsyncElasticsearch (없으면 설정으로 생성)
        """
        self._owns_client = client is None
        self._async_client = client

    @property
    def async_client(self) -> AsyncElasticsearch:
        """비동기 클라이언트"""
        if self._async_client is None:
            self._async_client = create_async_client()
        return self._async_client

    def _load_settings(self) -> Dict[str, Any]:
        """settings.json 로드"""
        if not SETTINGS_PATH.exists():
            logger.warning(f"Settings file not found: {SETTINGS_PATH}")
            return {}

        with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
            return json.load(f)

    def _load_mapping(self, index_name: str) -> Dict[str, Any]:
        """인덱스별 매핑 파일 로드"""
        mapping_file = self.INDICES.get(index_name)
        if not mapping_file:
            raise ValueError(f"Unknown index: {index_name}")

        mapping_path = MAPPINGS_DIR / mapping_file
        if not mapping_path.exists():
            raise FileNotFoundError(f"Mapping file not found: {mapping_path}")

        with open(mapping_path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def index_exists(self, index_name: str) -> bool:
        """인덱스 존재 여부"""
        return bool(await self.async_client.indices.exists(index=index_name))

    async def create_index(
        self,
        index_name: str,
        recreate: bool = False,
    ) -> bool:
        """
        단일 인덱스 생성

        Args:
            index_name: 인덱스명
            recreate: 기존 인덱스 삭제 후 재생성

        Returns:
            성공 여부
        """
        try:
            if await self.index_exists(index_name):
                if recreate:
                    logger.info(f"Deleting existing index: {index_name}")
                    await self.async_client.indices.delete(index=index_name)
                else:
                    logger.info(f"Index already exists: {index_name}")
                    return True

            settings = self._load_settings()
            mapping = self._load_mapping(index_name)

            await self.async_client.indices.create(
                index=index_name,
                settings=settings.get("settings", {}),
                mappings=mapping.get("mappings", {}),
            )

            logger.info(f"Index created: {index_name}")
            return True

        except (ApiError, TransportError) as e:
            logger.error(f"Failed to create index {index_name}: {e}")
            return False

    async def create_all_indices(self, recreate: bool = False) -> Dict[str, bool]:
        """모든 인덱스 생성"""
        results = {}
        for index_name in self.INDICES.keys():
            results[index_name] = await self.create_index(index_name, recreate)
        return results

    async def delete_index(self, index_name: str) -> bool:
        """인덱스 삭제 (없으면 성공)"""
        try:
            if not await self.index_exists(index_name):
                logger.info(f"Index does not exist: {index_name}")
                return True

            await self.async_client.indices.delete(index=index_name)
            logger.info(f"Index deleted: {index_name}")
            return True

        except (ApiError, TransportError) as e:
            logger.error(f"Failed to delete index {index_name}: {e}")
            return False

    async def delete_all_indices(self) -> Dict[str, bool]:
        """모든 인덱스 삭제"""
        results = {}
        for index_name in self.INDICES.keys():
            results[index_name] = await self.delete_index(index_name)
        return results

    async def get_index_info(self, index_name: str) -> Optional[Dict[str, Any]]:
        """인덱스 문서 수/크기 (없으면 None)"""
        try:
            if not await self.index_exists(index_name):
                return None

            stats = await self.async_client.indices.stats(index=index_name)
            primaries = stats["indices"][index_name]["primaries"]
            return {
                "name": index_name,
                "docs_count": primaries["docs"]["count"],
                "size_bytes": primaries["store"]["size_in_bytes"],
            }

        except NotFoundError:
            return None

    async def get_indices_status(self) -> Dict[str, Dict[str, Any]]:
        """모든 인덱스 상태 조회"""
        status = {}
        for index_name in self.INDICES.keys():
            try:
                info = await self.get_index_info(index_name)
            except (ApiError, TransportError) as e:
                logger.error(f"Error getting status for {index_name}: {e}")
                status[index_name] = {"exists": False, "docs_count": 0, "size_mb": 0, "error": str(e)}
                continue

            if info:
                status[index_name] = {
                    "exists": True,
                    "docs_count": info["docs_count"],
                    "size_mb": round(info["size_bytes"] / (1024 * 1024), 2),
                }
            else:
                status[index_name] = {"exists": False, "docs_count": 0, "size_mb": 0}
        return status

    async def refresh_index(self, index_name: str) -> bool:
        """인덱싱된 문서를 검색 가능하게 만듦"""
        try:
            await self.async_client.indices.refresh(index=index_name)
            logger.info(f"Index refreshed: {index_name}")
            return True
        except (ApiError, TransportError) as e:
            logger.error(f"Failed to refresh index {index_name}: {e}")
            return False

    async def close(self):
        """비동기 클라이언트 종료"""
        if self._async_client is not None and self._owns_client:
            await self._async_client.close()
            self._async_client = None


# CLI 인터페이스
async def main():
    """CLI 진입점"""
    import argparse

    parser = argparse.ArgumentParser(description="Search index manager")
    parser.add_argument("action", choices=["create", "delete", "status", "refresh"])
    parser.add_argument("--index", "-i", help="Target index (default: all)")
    parser.add_argument("--recreate", "-r", action="store_true", help="Recreate existing indices")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    manager = ESIndexManager()

    try:
        if args.action == "create":
            if args.index:
                result = await manager.create_index(args.index, args.recreate)
                print(f"Create {args.index}: {'OK' if result else 'FAILED'}")
            else:
                results = await manager.create_all_indices(args.recreate)
                for idx, ok in results.items():
                    print(f"  {idx}: {'OK' if ok else 'FAILED'}")

        elif args.action == "delete":
            if args.index:
                result = await manager.delete_index(args.index)
                print(f"Delete {args.index}: {'OK' if result else 'FAILED'}")
            else:
                results = await manager.delete_all_indices()
                for idx, ok in results.items():
                    print(f"  {idx}: {'OK' if ok else 'FAILED'}")

        elif args.action == "status":
            status = await manager.get_indices_status()
            print("\n=== Search Index Status ===")
            for idx, info in status.items():
                if info["exists"]:
                    print(f"  {idx}: {info['docs_count']:,} docs, {info['size_mb']} MB")
                else:
                    print(f"  {idx}: NOT EXISTS")

        elif args.action == "refresh":
            targets = [args.index] if args.index else list(manager.INDICES.keys())
            for index_name in targets:
                result = await manager.refresh_index(index_name)
                print(f"  {index_name}: {'OK' if result else 'FAILED'}")

    finally:
        await manager.close()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
