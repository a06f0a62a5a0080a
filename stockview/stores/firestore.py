import asyncio
import logging
import re
from typing import Any, Optional
from urllib.parse import quote

import requests

from stockview.store import (
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentSnapshot,
    DocumentStore,
    ErrorHandler,
    SnapshotHandler,
    StoreError,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

_SIMPLE_FIELD_PATH = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")


# --- Value codec ---
# Firestore's REST API wraps every value in a single-key object naming its type.


def encode_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        # int64 travels as a string
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot encode value of type {type(value).__name__} for Firestore.")


def encode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: encode_value(value) for key, value in fields.items()}


def decode_value(value: dict[str, Any]) -> Any:
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    # timestampValue, referenceValue, geoPointValue, bytesValue: keep the raw payload
    return next(iter(value.values()), None)


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


def _field_path(name: str) -> str:
    if _SIMPLE_FIELD_PATH.match(name):
        return name
    return "`" + name.replace("\\", "\\\\").replace("`", "\\`") + "`"


class FirestoreRestStore(DocumentStore):
    """
    Document store backed by the Firestore REST API (v1).
    Blocking HTTP calls run in worker threads; the live subscription polls the
    collection and only delivers when its content changed.
    """

    def __init__(
        self,
        project_id: str,
        database: str = "(default)",
        api_key: Optional[str] = None,
        base_url: str = "https://firestore.googleapis.com/v1",
        poll_interval: float = 2.0,
        timeout: float = 15,
        page_size: int = 300,
        session: Optional[requests.Session] = None,
    ):
        self.root = f"{base_url.rstrip('/')}/projects/{project_id}/databases/{database}/documents"
        self.api_key = api_key
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()

    # --- HTTP plumbing ---

    def _collection_url(self, collection: str) -> str:
        return f"{self.root}/{quote(collection, safe='')}"

    def _document_url(self, collection: str, doc_id: str) -> str:
        return f"{self._collection_url(collection)}/{quote(doc_id, safe='')}"

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[list[tuple[str, str]]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        params = list(params or [])
        if self.api_key:
            params.append(("key", self.api_key))
        try:
            response = self.session.request(
                method, url, params=params, json=payload, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise StoreError(f"{method} {url} failed: {e}") from e

        if response.status_code == 409:
            raise DocumentExistsError(_error_message(response))
        if response.status_code == 404:
            raise DocumentNotFoundError(_error_message(response))
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise StoreError(f"{response.status_code}: {_error_message(response)}") from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Malformed response from {url}.") from e

    # --- Reads ---

    def list_documents(self, collection: str) -> list[DocumentSnapshot]:
        """Fetches the whole collection, following nextPageToken."""
        snapshots: list[DocumentSnapshot] = []
        page_token = None
        while True:
            params = [("pageSize", str(self.page_size))]
            if page_token:
                params.append(("pageToken", page_token))
            body = self._request("GET", self._collection_url(collection), params=params)
            for document in body.get("documents", []):
                doc_id = document["name"].rsplit("/", 1)[-1]
                snapshots.append(
                    DocumentSnapshot(id=doc_id, data=decode_fields(document.get("fields", {})))
                )
            page_token = body.get("nextPageToken")
            if not page_token:
                return snapshots

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        state = {"active": True}
        task = asyncio.get_running_loop().create_task(
            self._poll(collection, on_snapshot, on_error, state)
        )

        def unsubscribe() -> None:
            if not state["active"]:
                return
            state["active"] = False
            task.cancel()

        return unsubscribe

    async def _poll(
        self,
        collection: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
        state: dict[str, bool],
    ) -> None:
        last_delivered: Optional[list[DocumentSnapshot]] = None
        while state["active"]:
            try:
                snapshots = await asyncio.to_thread(self.list_documents, collection)
            except StoreError as e:
                logger.warning(f"Polling '{collection}' failed: {e}")
                _deliver(on_error, e, state)
            except Exception as e:
                logger.exception(f"Unexpected failure while polling '{collection}'")
                _deliver(on_error, StoreError(f"Polling '{collection}' failed: {e}"), state)
            else:
                if snapshots != last_delivered:
                    last_delivered = snapshots
                    _deliver(on_snapshot, snapshots, state)
            await asyncio.sleep(self.poll_interval)

    # --- Writes ---

    async def create(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._request,
            "POST",
            self._collection_url(collection),
            [("documentId", doc_id)],
            {"fields": encode_fields(fields)},
        )

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        params = [("updateMask.fieldPaths", _field_path(name)) for name in fields]
        params.append(("currentDocument.exists", "true"))
        await asyncio.to_thread(
            self._request,
            "PATCH",
            self._document_url(collection, doc_id),
            params,
            {"fields": encode_fields(fields)},
        )

    async def delete(self, collection: str, doc_id: str) -> None:
        await asyncio.to_thread(
            self._request,
            "DELETE",
            self._document_url(collection, doc_id),
            [("currentDocument.exists", "true")],
        )


def _error_message(response: requests.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or response.text
    except ValueError:
        return response.text


def _deliver(handler, payload, state: dict[str, bool]) -> None:
    # A failing listener must not end the polling loop.
    if not state["active"]:
        return
    try:
        handler(payload)
    except Exception:
        logger.exception(f"Subscription listener {handler!r} failed")
