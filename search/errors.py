"""
검색 인덱스 동기화/검색 예외 클래스
- 동기화 실패는 호출자에게 전파하지 않고 SyncReport에 기록
- to_dict()로 로그/리포트 직렬화
"""


class SearchSyncError(Exception):
    """검색 인덱스 기본 예외"""

    def __init__(self, message: str, entity: str = None, entity_id=None, details: dict = None):
        self.message = message
        self.entity = entity
        self.entity_id = entity_id
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "details": self.details,
        }


class TransportFailure(SearchSyncError):
    """ES 연결 불가 또는 I/O 수준 오류"""


class PartialBulkFailure(SearchSyncError):
    """Bulk 요청 중 일부 작업 실패"""

    def __init__(self, message: str, failed_count: int, entity: str = None, details: dict = None):
        super().__init__(message, entity=entity, details=details)
        self.failed_count = failed_count

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["failed_count"] = self.failed_count
        return data


class SourceMissing(SearchSyncError):
    """원본 저장소에 해당 ID 없음"""

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} {entity_id} not found in primary store",
            entity=entity,
            entity_id=entity_id,
        )


class ConversionFailure(SearchSyncError):
    """원본 레코드 → 문서 변환 실패"""


class MalformedRequest(SearchSyncError):
    """검색 요청 필드가 서로 맞지 않음"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, entity="search_request", details=details)
