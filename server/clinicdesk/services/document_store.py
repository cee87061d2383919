"""Document database access: an in-memory store and a Firestore REST client."""

import logging
import operator
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

Direction = Literal["asc", "desc"]

OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "not-in", "array-contains")


class DocumentStoreError(RuntimeError):
    pass


@dataclass
class WhereCondition:
    field: str
    operator: str
    value: Any

    def __post_init__(self):
        if self.operator not in OPERATORS:
            raise ValueError(f"Unsupported operator '{self.operator}'")


@dataclass
class CollectionQuery:
    where: list[WhereCondition] = field(default_factory=list)
    order_by: Optional[str] = None
    direction: Direction = "desc"
    limit: Optional[int] = None
    offset: int = 0


class DocumentStore(Protocol):
    name: str

    async def run_query(self, collection: str, query: CollectionQuery) -> list[dict]:
        ...

    async def count(self, collection: str, where: Iterable[WhereCondition] = ()) -> int:
        ...


# ------------ in-memory ------------

_COMPARISONS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda a, b: a in b,
    "not-in": lambda a, b: a not in b,
    "array-contains": lambda a, b: isinstance(a, list) and b in a,
}


def _matches(doc: dict, cond: WhereCondition) -> bool:
    # Documents missing the field never match, as in Firestore
    if cond.field not in doc:
        return False
    try:
        return bool(_COMPARISONS[cond.operator](doc[cond.field], cond.value))
    except TypeError as e:
        raise DocumentStoreError(
            f"Cannot compare field '{cond.field}' with {cond.value!r} using '{cond.operator}': {e}"
        ) from e


class InMemoryDocumentStore:
    """Collections of documents held in a dict. Used for development and tests."""

    name = "memory"

    def __init__(self, data: Optional[dict[str, dict[str, dict]]] = None):
        self._collections: dict[str, dict[str, dict]] = {
            name: {doc_id: dict(doc) for doc_id, doc in docs.items()}
            for name, docs in (data or {}).items()
        }
        self.query_count = 0

    def add(self, collection: str, doc_id: str, doc: dict) -> None:
        self._collections.setdefault(collection, {})[doc_id] = dict(doc)

    def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)

    def _select(self, collection: str, where: Iterable[WhereCondition]) -> list[dict]:
        conditions = list(where)
        return [
            {"id": doc_id, **doc}
            for doc_id, doc in self._collections.get(collection, {}).items()
            if all(_matches(doc, c) for c in conditions)
        ]

    async def run_query(self, collection: str, query: CollectionQuery) -> list[dict]:
        self.query_count += 1
        docs = self._select(collection, query.where)

        if query.order_by:
            docs = [d for d in docs if d.get(query.order_by) is not None]
            docs.sort(key=lambda d: d[query.order_by], reverse=query.direction == "desc")

        docs = docs[query.offset:]
        if query.limit is not None:
            docs = docs[: query.limit]
        return docs

    async def count(self, collection: str, where: Iterable[WhereCondition] = ()) -> int:
        self.query_count += 1
        return len(self._select(collection, where))


# ------------ Firestore REST ------------

_FIRESTORE_OPS = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
    "not-in": "NOT_IN",
    "array-contains": "ARRAY_CONTAINS",
}

_FRACTION = re.compile(r"\.(\d{6})\d+")


def encode_value(value: Any) -> dict:
    """Python value -> Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            # naive values are local wall-clock time
            value = value.astimezone()
        stamp = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {k: encode_value(v) for k, v in value.items()}}}
    raise TypeError(f"Cannot encode {type(value).__name__} as a Firestore value")


def decode_value(value: dict) -> Any:
    """Firestore typed value -> Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "timestampValue" in value:
        stamp = _FRACTION.sub(r".\1", value["timestampValue"]).replace("Z", "+00:00")
        return datetime.fromisoformat(stamp)
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    # bytesValue / geoPointValue are passed through untouched
    return next(iter(value.values()), None)


def decode_fields(fields: dict) -> dict:
    return {name: decode_value(v) for name, v in fields.items()}


def build_structured_query(collection: str, query: CollectionQuery) -> dict:
    structured: dict[str, Any] = {"from": [{"collectionId": collection}]}

    filters = [
        {
            "fieldFilter": {
                "field": {"fieldPath": c.field},
                "op": _FIRESTORE_OPS[c.operator],
                "value": encode_value(c.value),
            }
        }
        for c in query.where
    ]
    if len(filters) == 1:
        structured["where"] = filters[0]
    elif filters:
        structured["where"] = {"compositeFilter": {"op": "AND", "filters": filters}}

    if query.order_by:
        structured["orderBy"] = [
            {
                "field": {"fieldPath": query.order_by},
                "direction": "ASCENDING" if query.direction == "asc" else "DESCENDING",
            }
        ]
    if query.offset:
        structured["offset"] = query.offset
    if query.limit is not None:
        structured["limit"] = query.limit
    return structured


class FirestoreRestStore:
    """
    Thin async wrapper over the Firestore REST API:

      query:  POST {base}/documents:runQuery             {structuredQuery}
      count:  POST {base}/documents:runAggregationQuery  {structuredAggregationQuery}

    where base = https://firestore.googleapis.com/v1/projects/{project}/databases/{database}
    """

    name = "firestore"
    API_ROOT = "https://firestore.googleapis.com/v1"

    # ------------ lifecycle ------------
    def __init__(
        self,
        project_id: str,
        database: str = "(default)",
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = f"{self.API_ROOT}/projects/{project_id}/databases/{database}/documents"
        self._http = httpx.AsyncClient(
            timeout=timeout,
            params={"key": api_key} if api_key else None,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------ low-level helpers ------------
    async def _post(self, url: str, body: dict) -> list[dict]:
        try:
            resp = await self._http.post(url, json=body)
        except httpx.HTTPError as e:
            logger.error("Firestore request to %s failed: %s", url, e)
            raise DocumentStoreError(f"POST {url} failed: {e}") from e

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Firestore request failed with %s", resp.status_code)
            # include server body to help diagnose quickly
            raise DocumentStoreError(f"POST {url} -> {resp.status_code}: {resp.text}") from e
        return resp.json()

    # ------------ queries ------------
    async def run_query(self, collection: str, query: CollectionQuery) -> list[dict]:
        rows = await self._post(
            f"{self.base_url}:runQuery",
            {"structuredQuery": build_structured_query(collection, query)},
        )

        docs = []
        for row in rows:
            # rows without a document only carry readTime / skippedResults
            document = row.get("document")
            if not document:
                continue
            doc_id = document["name"].rsplit("/", 1)[-1]
            docs.append({"id": doc_id, **decode_fields(document.get("fields", {}))})
        return docs

    async def count(self, collection: str, where: Iterable[WhereCondition] = ()) -> int:
        structured = build_structured_query(collection, CollectionQuery(where=list(where)))
        rows = await self._post(
            f"{self.base_url}:runAggregationQuery",
            {
                "structuredAggregationQuery": {
                    "structuredQuery": structured,
                    "aggregations": [{"alias": "total", "count": {}}],
                }
            },
        )

        for row in rows:
            fields = row.get("result", {}).get("aggregateFields", {})
            if "total" in fields:
                return decode_value(fields["total"])
        return 0
