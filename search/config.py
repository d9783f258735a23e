"""
숙소 검색 인덱스 설정
- 환경변수 우선, .env 파일 지원
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Elasticsearch 연결
ES_HOST = os.getenv("ES_HOST", "localhost")
ES_PORT = int(os.getenv("ES_PORT", "9200"))
ES_SCHEME = os.getenv("ES_SCHEME", "http")
ES_TIMEOUT = int(os.getenv("ES_TIMEOUT", "30"))
ES_USERNAME = os.getenv("ES_USERNAME")
ES_PASSWORD = os.getenv("ES_PASSWORD")

# 인덱스명
ACCOMMODATION_INDEX = os.getenv("ACCOMMODATION_INDEX", "accommodations")
REVIEW_INDEX = os.getenv("REVIEW_INDEX", "reviews")
ROOM_LISTING_INDEX = os.getenv("ROOM_LISTING_INDEX", "products")

# 검색 상수 (고정 부스트/반경)
PAGE_SIZE = 20
GEO_RADIUS = "5km"
NAME_BOOST = 2.0
ADDRESS_BOOST = 1.0
AUTOCOMPLETE_SIZE = 10
POPULAR_SIZE = 12
LOCATION_SEARCH_SIZE = 50
REVIEW_LIST_SIZE = 100
REVIEW_SEARCH_SIZE = 50

# 배치 동기화 스케줄
SYNC_TIMEZONE = os.getenv("SYNC_TIMEZONE", "Asia/Seoul")
ACCOMMODATION_SYNC_AT = os.getenv("ACCOMMODATION_SYNC_AT", "03:00")
REVIEW_SYNC_AT = os.getenv("REVIEW_SYNC_AT", "04:00")


def es_hosts():
    """ES 호스트 목록"""
    return [f"{ES_SCHEME}://{ES_HOST}:{ES_PORT}"]


def es_basic_auth():
    """기본 인증 (사용자명이 없으면 None)"""
    if ES_USERNAME:
        return (ES_USERNAME, ES_PASSWORD or "")
    return None
