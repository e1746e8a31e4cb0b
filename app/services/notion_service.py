"""
Notion proxy.

Reads a couple's Notion memory database on behalf of the app, so Notion
secrets never reach the browser. Also lists the databases an integration
can see and adds the properties the app writes to a chosen database.
"""

import hashlib
import json
from typing import Any, Dict, List, Optional

import cachetools
import httpx

from app.utils.exceptions import ExternalServiceError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_AUTHOR = "Partner"
COVER_PROPERTY = "dear23_대표이미지"
PREVIEW_PROPERTY = "dear23_내용미리보기"
AUTHOR_PROPERTY = "작성자"
TITLE_PROPERTIES = ("Name", "이름", "title")
DATE_PROPERTIES = ("Date", "날짜", "date")

REQUIRED_PROPERTIES: Dict[str, Dict[str, Any]] = {
    "구분": {"select": {"options": [
        {"name": "일기", "color": "blue"},
        {"name": "일정", "color": "green"},
        {"name": "편지", "color": "pink"},
        {"name": "추억", "color": "yellow"},
    ]}},
    "작성자": {"select": {}},
    "내용미리보기": {"rich_text": {}},
    "나만보기": {"checkbox": {}},
    "좋아요": {"checkbox": {}},
    "작성일시": {"created_time": {}},
    "수정일시": {"last_edited_time": {}},
    "dear23_대표이미지": {"files": {}},
    "대표이미지": {"files": {}},
    "기분": {"select": {"options": [
        {"name": "행복", "color": "yellow"},
        {"name": "슬픔", "color": "blue"},
        {"name": "화남", "color": "red"},
        {"name": "보통", "color": "gray"},
    ]}},
    "날씨": {"select": {"options": [
        {"name": "맑음", "color": "orange"},
        {"name": "흐림", "color": "gray"},
        {"name": "비", "color": "blue"},
        {"name": "눈", "color": "default"},
    ]}},
    "상대방한마디": {"rich_text": {}},
    "함께하기": {"checkbox": {}},
    "중요": {"checkbox": {}},
    "장소": {"rich_text": {}},
    "읽음": {"checkbox": {}},
    "개봉일": {"date": {}},
}


def _plain_text(fragments: Optional[List[Dict[str, Any]]]) -> str:
    if not fragments:
        return ""
    return fragments[0].get("plain_text", "")


def _first_property(props: Dict[str, Any], names, kind: str):
    for name in names:
        value = (props.get(name) or {}).get(kind)
        if value:
            return value
    return None


def transform_page(page: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Notion page into the memory card shape."""
    props = page.get("properties") or {}

    title = _plain_text(_first_property(props, TITLE_PROPERTIES, "title")) or "Untitled"
    date_prop = _first_property(props, DATE_PROPERTIES, "date")
    date = date_prop.get("start", "") if date_prop else ""

    cover_image = None
    files = (props.get(COVER_PROPERTY) or {}).get("files") or []
    if files:
        first = files[0]
        if first.get("type") == "file":
            cover_image = first["file"]["url"]
        elif first.get("type") == "external":
            cover_image = first["external"]["url"]

    author_select = (props.get(AUTHOR_PROPERTY) or {}).get("select")

    return {
        "id": page["id"],
        "title": title,
        "date": date,
        "coverImage": cover_image,
        "previewText": _plain_text((props.get(PREVIEW_PROPERTY) or {}).get("rich_text")),
        "author": author_select["name"] if author_select else DEFAULT_AUTHOR,
    }


class NotionService:
    """Async client for the Notion REST API."""

    def __init__(
        self,
        api_url: str,
        notion_version: str,
        page_size: int = 20,
        cache_ttl: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.notion_version = notion_version
        self.page_size = page_size
        self.transport = transport
        self._cache = cachetools.TTLCache(maxsize=256, ttl=cache_ttl) if cache_ttl > 0 else None

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, api_key: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=15.0, transport=self.transport) as client:
                response = await client.request(method, url, headers=self._headers(api_key), json=body)
        except httpx.HTTPError as e:
            logger.error(f"Notion request {method} {path} failed: {e}")
            raise ExternalServiceError("Could not reach Notion", details={"reason": str(e)}) from e

        if response.status_code >= 400:
            try:
                details = response.json()
            except ValueError:
                details = {"body": response.text}
            logger.error(f"Notion returned {response.status_code} for {method} {path}: {details}")
            raise ExternalServiceError(
                f"Notion request failed ({response.status_code})",
                details={"status": response.status_code, "upstream": details},
            )
        return response.json()

    @staticmethod
    def _cache_key(api_key: str, database_id: str, cursor: Optional[str]) -> str:
        raw = json.dumps({"key": api_key, "db": database_id, "cursor": cursor}, sort_keys=True)
        return hashlib.sha256(raw.encode()).hexdigest()

    async def query_memories(self, api_key: str, database_id: str, start_cursor: Optional[str] = None) -> Dict[str, Any]:
        """
        Query one page of a memory database, newest first.

        Returns:
            Dictionary with data, hasMore and nextCursor
        """
        if not api_key or not database_id:
            raise ValidationError("Incomplete Notion configuration.")

        cursor = start_cursor if isinstance(start_cursor, str) and start_cursor else None
        key = self._cache_key(api_key, database_id, cursor)
        if self._cache is not None and key in self._cache:
            return self._cache[key]

        body: Dict[str, Any] = {
            "page_size": self.page_size,
            "sorts": [{"property": "date", "direction": "descending"}],
        }
        if cursor:
            body["start_cursor"] = cursor

        payload = await self._request("POST", f"/databases/{database_id}/query", api_key, body)
        result = {
            "data": [transform_page(page) for page in payload.get("results", [])],
            "hasMore": bool(payload.get("has_more")),
            "nextCursor": payload.get("next_cursor"),
        }
        if self._cache is not None:
            self._cache[key] = result
        return result

    async def search_databases(self, api_key: str) -> List[Dict[str, Any]]:
        """Databases shared with the integration behind ``api_key``."""
        if not api_key:
            raise ValidationError("API Key is required.")
        payload = await self._request(
            "POST",
            "/search",
            api_key,
            {"filter": {"value": "database", "property": "object"}, "page_size": 100},
        )
        return [
            {
                "id": db["id"],
                "title": _plain_text(db.get("title")) or "Untitled Database",
                "url": db.get("url"),
                "icon": db.get("icon"),
            }
            for db in payload.get("results", [])
        ]

    async def validate_schema(self, api_key: str, database_id: str) -> Dict[str, Any]:
        """Create every app property missing from the database in one PATCH."""
        if not api_key or not database_id:
            raise ValidationError("API Key and Database ID are required.")

        database = await self._request("GET", f"/databases/{database_id}", api_key)
        current = database.get("properties") or {}
        missing = {name: config for name, config in REQUIRED_PROPERTIES.items() if name not in current}

        if not missing:
            return {"status": "ok", "message": "Schema is already up to date"}

        await self._request("PATCH", f"/databases/{database_id}", api_key, {"properties": missing})
        logger.info(f"Added {len(missing)} properties to Notion database {database_id}")
        return {"status": "updated", "created": list(missing)}

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()
