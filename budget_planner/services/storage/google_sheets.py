"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets backs the remote document store:
1. Every (identity, collection) pair gets its own worksheet
2. One document per row: id, JSON payload, last write time
3. Document ids are assigned here on create

TRADEOFFS:
- Sheets has no change feed, so live subscriptions poll the worksheet
  and re-deliver the whole collection when its content changes
- A write made through this store wakes the matching subscriptions
  immediately instead of waiting for the next poll
- gspread is blocking; calls run in a worker thread
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from budget_planner.audit import get_logger
from budget_planner.config import GoogleSheetsSettings, get_settings
from budget_planner.models.records import Identity
from budget_planner.services.storage.interface import (
    ConnectionError,
    ErrorCallback,
    RemoteDocument,
    RemoteStore,
    SnapshotCallback,
    StorageError,
    Subscription,
    sort_documents,
)


logger = get_logger(__name__)

# Column layout of every collection worksheet
DOCUMENT_COLUMNS = [
    "id",
    "data_json",
    "updated_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_collection_sheet(self, uid: str, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet holding one identity's collection."""
        title = worksheet_title(uid, collection)
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        self._worksheets[title] = sheet
        return sheet


def worksheet_title(uid: str, collection: str) -> str:
    """Sheet titles cannot contain []*?/\\: so those are replaced."""
    safe_uid = "".join("_" if ch in "[]*?/\\:" else ch for ch in uid)
    return f"{safe_uid}__{collection}"


class _SheetWatcher:
    """Polling subscription over one worksheet."""

    def __init__(
        self,
        identity: Identity,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback],
        order_by: Optional[str],
        descending: bool,
    ):
        self.identity = identity
        self.collection = collection
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.order_by = order_by
        self.descending = descending
        self.wakeup = asyncio.Event()
        self.task: Optional[asyncio.Task] = None
        self.subscription: Optional[Subscription] = None
        self.fingerprint: Optional[tuple] = None


class GoogleSheetsRemoteStore(RemoteStore):
    """
    Google Sheets implementation of the remote document store.

    Each row holds one document; the payload is JSON-serialized.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        poll_interval: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._poll_interval = poll_interval or self._client.settings.poll_interval_seconds
        self._watchers: list[_SheetWatcher] = []

    # ------------------------------------------------------------------
    # Row helpers (blocking)
    # ------------------------------------------------------------------

    def _document_to_row(self, doc_id: str, data: dict[str, Any]) -> list:
        return [
            doc_id,
            json.dumps(data, sort_keys=True),
            datetime.now(timezone.utc).isoformat(),
        ]

    def _row_to_document(self, row: list) -> RemoteDocument:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        payload = safe_get(1)
        return RemoteDocument(
            id=safe_get(0),
            data=json.loads(payload) if payload else {},
        )

    def _find_row(self, sheet: gspread.Worksheet, doc_id: str) -> Optional[int]:
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == doc_id:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_document(self, uid: str, collection: str, doc_id: str, data: dict) -> None:
        sheet = self._client.get_collection_sheet(uid, collection)
        sheet.append_row(self._document_to_row(doc_id, data), value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_document(self, uid: str, collection: str, doc_id: str, data: dict) -> None:
        sheet = self._client.get_collection_sheet(uid, collection)
        idx = self._find_row(sheet, doc_id)
        row = self._document_to_row(doc_id, data)
        if idx is None:
            sheet.append_row(row, value_input_option="RAW")
            return
        for col_idx, value in enumerate(row[1:], start=2):
            sheet.update_cell(idx, col_idx, value)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _delete_document(self, uid: str, collection: str, doc_id: str) -> None:
        sheet = self._client.get_collection_sheet(uid, collection)
        idx = self._find_row(sheet, doc_id)
        if idx is not None:
            sheet.delete_rows(idx)

    def _read_documents(self, uid: str, collection: str) -> list[RemoteDocument]:
        sheet = self._client.get_collection_sheet(uid, collection)
        all_rows = sheet.get_all_values()[1:]  # Skip header

        documents = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                documents.append(self._row_to_document(row))
            except (ValueError, TypeError) as e:
                logger.warning(
                    "malformed_document_row",
                    collection=collection,
                    doc_id=row[0],
                    error=str(e),
                )
        return documents

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def create(
        self,
        identity: Identity,
        collection: str,
        data: dict[str, Any],
    ) -> str:
        doc_id = uuid4().hex
        try:
            await asyncio.to_thread(self._append_document, identity.uid, collection, doc_id, data)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create document: {e}")
        self._wake(identity, collection)
        return doc_id

    async def set(
        self,
        identity: Identity,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
    ) -> None:
        try:
            await asyncio.to_thread(self._write_document, identity.uid, collection, doc_id, data)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write document: {e}")
        self._wake(identity, collection)

    async def delete(
        self,
        identity: Identity,
        collection: str,
        doc_id: str,
    ) -> None:
        try:
            await asyncio.to_thread(self._delete_document, identity.uid, collection, doc_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete document: {e}")
        self._wake(identity, collection)

    async def get_all(
        self,
        identity: Identity,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[RemoteDocument]:
        try:
            documents = await asyncio.to_thread(self._read_documents, identity.uid, collection)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list documents: {e}")
        return sort_documents(documents, order_by, descending)

    def subscribe(
        self,
        identity: Identity,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        watcher = _SheetWatcher(identity, collection, on_snapshot, on_error, order_by, descending)

        def stop() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)
            if watcher.task is not None:
                watcher.task.cancel()

        watcher.subscription = Subscription(on_cancel=stop)
        self._watchers.append(watcher)
        watcher.task = asyncio.get_running_loop().create_task(self._poll(watcher))
        return watcher.subscription

    def _wake(self, identity: Identity, collection: str) -> None:
        for watcher in self._watchers:
            if watcher.identity.uid == identity.uid and watcher.collection == collection:
                watcher.wakeup.set()

    async def _poll(self, watcher: _SheetWatcher) -> None:
        while watcher.subscription is not None and watcher.subscription.active:
            # writes landing during the read must still wake the next wait
            watcher.wakeup.clear()
            try:
                documents = await self.get_all(
                    watcher.identity,
                    watcher.collection,
                    order_by=watcher.order_by,
                    descending=watcher.descending,
                )
                fingerprint = tuple(
                    (doc.id, json.dumps(doc.data, sort_keys=True)) for doc in documents
                )
                if fingerprint != watcher.fingerprint and watcher.subscription.active:
                    watcher.fingerprint = fingerprint
                    watcher.on_snapshot(documents)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "sheet_subscription_failed",
                    collection=watcher.collection,
                    error=str(e),
                )
                if watcher.on_error is not None:
                    watcher.on_error(e)

            try:
                await asyncio.wait_for(watcher.wakeup.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
