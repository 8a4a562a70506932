"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets is the hosted backend because:
1. Users can look at their own ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. One `spreadsheets.batchUpdate` call is atomic: the API applies every
   request in it or none of them

Each collection is a worksheet with a header row; each document is a row
keyed by its id in column A. Every value is written as a string, so
Decimal balances round-trip exactly.

TRADEOFFS:
- Sheets has no conditional writes. Preconditions (existence, account
  version) are checked against a read taken right before the commit,
  which narrows but does not close the window for a concurrent writer.
- Sheets has no push notifications. Subscribers get a snapshot on
  subscribe, after every commit made through this store (a commit
  rejected by a stale precondition included), and from an optional
  background poll that picks up other sessions' writes.
"""

import threading
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from fintrack.config import BackendConfig, get_settings
from fintrack.services.storage.interface import (
    ACCOUNTS,
    OWNER_FIELD,
    TRANSACTIONS,
    ConflictError,
    ConnectionError,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    SnapshotCallback,
    StorageError,
    StoredDocument,
    Subscription,
    WriteBatch,
    check_preconditions,
)


logger = structlog.get_logger(__name__)


# Column mappings; "id" is always column A
ACCOUNT_COLUMNS = [
    "id",
    "userId",
    "name",
    "bankName",
    "balance",
    "color",
    "createdAt",
    "version",
]

TRANSACTION_COLUMNS = [
    "id",
    "userId",
    "accountId",
    "amount",
    "type",
    "categoryId",
    "note",
    "date",
    "createdAt",
]

COLLECTION_COLUMNS = {
    ACCOUNTS: ACCOUNT_COLUMNS,
    TRANSACTIONS: TRANSACTION_COLUMNS,
}


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, config: Optional[BackendConfig] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._config = config or get_settings().backend.config

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
                    self._config.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._config.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._config.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._config.spreadsheet_id}"
                )
        return self._spreadsheet

    def sheet_name(self, collection: str) -> str:
        if collection == ACCOUNTS:
            return self._config.accounts_sheet
        if collection == TRANSACTIONS:
            return self._config.transactions_sheet
        raise StorageError(f"Unknown collection: {collection}")

    def get_worksheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        spreadsheet = self.get_spreadsheet()
        title = self.sheet_name(collection)
        columns = COLLECTION_COLUMNS[collection]
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


def row_to_document(collection: str, row: list[str]) -> StoredDocument:
    """Convert a spreadsheet row to a document."""
    columns = COLLECTION_COLUMNS[collection]
    padded = list(row) + [""] * (len(columns) - len(row))
    data = dict(zip(columns[1:], padded[1:len(columns)]))
    return StoredDocument(id=padded[0], data=data)


def document_to_row(collection: str, doc_id: str, data: dict[str, Any]) -> list[str]:
    """Convert a document to a spreadsheet row of strings."""
    columns = COLLECTION_COLUMNS[collection]
    values = [doc_id]
    for column in columns[1:]:
        value = data.get(column)
        values.append("" if value is None else str(value))
    return values


def _cells(values: list[str]) -> dict[str, Any]:
    return {
        "values": [
            {"userEnteredValue": {"stringValue": value}} for value in values
        ]
    }


class GoogleSheetsDocumentStore(DocumentStoreInterface):
    """
    Google Sheets implementation of the document store.

    A batch becomes a single spreadsheets.batchUpdate request list:
    row rewrites first, then row deletions bottom-up, then appends, so
    that row indices computed from the pre-commit read stay valid.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        if poll_interval_seconds is None:
            poll_interval_seconds = get_settings().backend.config.poll_interval_seconds
        self._poll_interval = poll_interval_seconds
        self._subscriptions: list[Subscription] = []
        self._last_delivered: dict[int, list[StoredDocument]] = {}
        self._lock = threading.RLock()
        self._stop_polling = threading.Event()
        self._poller: Optional[threading.Thread] = None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, collection: str) -> list[list[str]]:
        """All data rows of a collection (header excluded)."""
        sheet = self._client.get_worksheet(collection)
        return sheet.get_all_values()[1:]

    def _read_documents(self, collection: str) -> dict[str, dict[str, Any]]:
        documents = {}
        for row in self._read_rows(collection):
            if not row or not row[0]:  # Skip empty rows
                continue
            doc = row_to_document(collection, row)
            documents[doc.id] = doc.data
        return documents

    def _fetch_snapshot(self, collection: str, owner_id: str) -> list[StoredDocument]:
        try:
            documents = self._read_documents(collection)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {collection}: {e}")
        return [
            StoredDocument(id=doc_id, data=data)
            for doc_id, data in documents.items()
            if data.get(OWNER_FIELD) == owner_id
        ]

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        try:
            return self._read_documents(collection).get(doc_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {collection}/{doc_id}: {e}")

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def _detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
            self._last_delivered.pop(id(subscription), None)
            idle = not self._subscriptions
        if idle:
            self.stop_polling()

    async def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
    ) -> Subscription:
        snapshot = self._fetch_snapshot(collection, owner_id)
        subscription = Subscription(collection, owner_id, callback, self._detach)
        with self._lock:
            self._subscriptions.append(subscription)
            self._last_delivered[id(subscription)] = snapshot
        subscription.deliver(snapshot)
        self._ensure_polling()
        return subscription

    def refresh(self, collections: Optional[set[str]] = None, only_changed: bool = False) -> None:
        """Push a fresh snapshot to subscribers of the given collections."""
        with self._lock:
            targets = [
                sub for sub in self._subscriptions
                if collections is None or sub.collection in collections
            ]
        cache: dict[str, dict[str, dict[str, Any]]] = {}
        for subscription in targets:
            if subscription.collection not in cache:
                cache[subscription.collection] = self._read_documents(subscription.collection)
            snapshot = [
                StoredDocument(id=doc_id, data=data)
                for doc_id, data in cache[subscription.collection].items()
                if data.get(OWNER_FIELD) == subscription.owner_id
            ]
            with self._lock:
                previous = self._last_delivered.get(id(subscription))
                if only_changed and previous == snapshot:
                    continue
                self._last_delivered[id(subscription)] = snapshot
            subscription.deliver(snapshot)

    def _ensure_polling(self) -> None:
        if self._poll_interval <= 0 or self._poller is not None:
            return
        self._stop_polling.clear()
        self._poller = threading.Thread(
            target=self._poll_loop,
            name="sheets-poller",
            daemon=True,
        )
        self._poller.start()

    def _poll_loop(self) -> None:
        while not self._stop_polling.wait(self._poll_interval):
            try:
                self.refresh(only_changed=True)
            except Exception as e:
                logger.warning("sheets_store.poll_failed", error=str(e))

    def stop_polling(self) -> None:
        self._stop_polling.set()
        self._poller = None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def build_requests(
        self,
        batch: WriteBatch,
        current_rows: dict[str, list[list[str]]],
        sheet_ids: dict[str, int],
    ) -> list[dict[str, Any]]:
        """
        Translate a batch into Sheets batchUpdate requests.

        Args:
            batch: The batch to translate
            current_rows: {collection: data rows as read before commit}
            sheet_ids: {collection: worksheet id}
        """
        row_index: dict[str, dict[str, int]] = {}
        documents: dict[str, dict[str, dict[str, Any]]] = {}
        for collection, rows in current_rows.items():
            row_index[collection] = {}
            documents[collection] = {}
            for position, row in enumerate(rows, start=1):  # Row 0 is the header
                if row and row[0]:
                    doc = row_to_document(collection, row)
                    row_index[collection][doc.id] = position
                    documents[collection][doc.id] = doc.data

        updates, deletes, appends = [], [], []
        for op in batch.operations:
            sheet_id = sheet_ids[op.collection]
            if op.kind == "update":
                position = row_index[op.collection][op.doc_id]
                merged = {**documents[op.collection][op.doc_id], **op.data}
                documents[op.collection][op.doc_id] = merged
                values = document_to_row(op.collection, op.doc_id, merged)
                updates.append({
                    "updateCells": {
                        "range": {
                            "sheetId": sheet_id,
                            "startRowIndex": position,
                            "endRowIndex": position + 1,
                            "startColumnIndex": 0,
                            "endColumnIndex": len(values),
                        },
                        "rows": [_cells(values)],
                        "fields": "userEnteredValue",
                    }
                })
            elif op.kind == "delete":
                position = row_index[op.collection].get(op.doc_id)
                if position is not None:
                    deletes.append((sheet_id, position))
            elif op.kind == "create":
                values = document_to_row(op.collection, op.doc_id, op.data)
                appends.append({
                    "appendCells": {
                        "sheetId": sheet_id,
                        "rows": [_cells(values)],
                        "fields": "userEnteredValue",
                    }
                })

        delete_requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": position,
                        "endIndex": position + 1,
                    }
                }
            }
            for sheet_id, position in sorted(set(deletes), key=lambda d: d[1], reverse=True)
        ]
        return updates + delete_requests + appends

    async def commit(self, batch: WriteBatch) -> None:
        if not len(batch):
            return

        # Not retried: a failed write is reported to the user who retries it
        try:
            spreadsheet = self._client.get_spreadsheet()
            sheets = {c: self._client.get_worksheet(c) for c in batch.collections}
            current_rows = {c: self._read_rows(c) for c in batch.collections}
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to prepare commit: {e}")

        current: dict[str, dict[str, dict[str, Any]]] = {}
        for collection, rows in current_rows.items():
            docs = [row_to_document(collection, row) for row in rows if row and row[0]]
            current[collection] = {doc.id: doc.data for doc in docs}
        try:
            check_preconditions(batch, current)
        except (ConflictError, DuplicateError, NotFoundError) as e:
            # Subscribers are behind the sheet; catch them up so a retry can succeed
            logger.info("sheets_store.precondition_failed", error=str(e))
            self._refresh_quietly(batch.collections)
            raise

        requests = self.build_requests(
            batch,
            current_rows,
            {c: sheet.id for c, sheet in sheets.items()},
        )
        try:
            spreadsheet.batch_update({"requests": requests})
        except Exception as e:
            raise StorageError(f"Failed to commit batch: {e}")

        logger.info(
            "sheets_store.committed",
            operations=len(batch),
            collections=sorted(batch.collections),
        )

        self._refresh_quietly(batch.collections)

    def _refresh_quietly(self, collections: set[str]) -> None:
        try:
            self.refresh(collections)
        except Exception as e:
            # The next poll or reload will catch up
            logger.warning("sheets_store.refresh_failed", error=str(e))
