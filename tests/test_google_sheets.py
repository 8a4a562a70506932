"""
Tests for the Google Sheets document store.

No real API calls: the gspread client is replaced with mocks.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from fintrack.config import BackendConfig
from fintrack.ledger import BalanceConflictError, LedgerError, LedgerMutator
from fintrack.mirror import LiveCollectionMirror
from fintrack.models import TransactionType
from fintrack.services.storage import (
    ACCOUNTS,
    TRANSACTIONS,
    ConflictError,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    StorageError,
    WriteBatch,
)
from fintrack.services.storage.google_sheets import (
    ACCOUNT_COLUMNS,
    TRANSACTION_COLUMNS,
    document_to_row,
    row_to_document,
)


ACCOUNT_ROWS = [
    ["a1", "u", "Cash", "Wallet", "1000", "#ffffff", "1", "0"],
    ["a2", "u", "Bank", "Big Bank", "50.5", "#000000", "2", "3"],
    ["a3", "v", "Other", "", "7", "#123456", "3", "0"],
]
TRANSACTION_ROWS = [
    ["t1", "u", "a1", "10", "expense", "cat-1", "", "2024-06-01", "5"],
    ["t2", "u", "a2", "20", "income", "cat-3", "pay", "2024-06-02", "6"],
]


def make_worksheet(collection, rows, sheet_id):
    sheet = MagicMock()
    sheet.id = sheet_id
    header = ACCOUNT_COLUMNS if collection == ACCOUNTS else TRANSACTION_COLUMNS
    sheet.get_all_values.return_value = [header] + rows
    return sheet


@pytest.fixture
def sheets_client():
    client = MagicMock(spec=GoogleSheetsClient)
    worksheets = {
        ACCOUNTS: make_worksheet(ACCOUNTS, ACCOUNT_ROWS, 11),
        TRANSACTIONS: make_worksheet(TRANSACTIONS, TRANSACTION_ROWS, 22),
    }
    client.get_worksheet.side_effect = lambda collection: worksheets[collection]
    client.get_spreadsheet.return_value = MagicMock()
    return client


@pytest.fixture
def sheets_store(sheets_client):
    return GoogleSheetsDocumentStore(sheets_client, poll_interval_seconds=0)


class TestRowConversion:
    """Rows are strings; id is column A."""

    def test_row_to_document(self):
        doc = row_to_document(ACCOUNTS, ACCOUNT_ROWS[0])

        assert doc.id == "a1"
        assert doc.data["bankName"] == "Wallet"
        assert doc.data["version"] == "0"

    def test_short_row_is_padded(self):
        doc = row_to_document(TRANSACTIONS, ["t9", "u", "a1", "5"])

        assert doc.data["note"] == ""
        assert set(doc.data) == set(TRANSACTION_COLUMNS[1:])

    def test_document_to_row(self):
        row = document_to_row(ACCOUNTS, "a9", {"userId": "u", "name": "X", "balance": "1.10", "version": 2})

        assert row[0] == "a9"
        assert row[ACCOUNT_COLUMNS.index("balance")] == "1.10"
        assert row[ACCOUNT_COLUMNS.index("version")] == "2"
        assert row[ACCOUNT_COLUMNS.index("color")] == ""


class TestBuildRequests:
    """A batch becomes one ordered batchUpdate request list."""

    def test_order_is_updates_deletes_appends(self, sheets_store):
        batch = (
            WriteBatch()
            .create(TRANSACTIONS, "t3", {"userId": "u", "amount": "1"})
            .delete(TRANSACTIONS, "t1")
            .update(ACCOUNTS, "a1", {"balance": "999", "version": 1}, expected_version=0)
        )

        requests = sheets_store.build_requests(
            batch,
            {ACCOUNTS: ACCOUNT_ROWS, TRANSACTIONS: TRANSACTION_ROWS},
            {ACCOUNTS: 11, TRANSACTIONS: 22},
        )

        assert [next(iter(r)) for r in requests] == ["updateCells", "deleteDimension", "appendCells"]

        update = requests[0]["updateCells"]
        assert update["range"]["sheetId"] == 11
        assert update["range"]["startRowIndex"] == 1
        values = [c["userEnteredValue"]["stringValue"] for c in update["rows"][0]["values"]]
        assert values[ACCOUNT_COLUMNS.index("balance")] == "999"
        assert values[ACCOUNT_COLUMNS.index("name")] == "Cash"

        delete = requests[1]["deleteDimension"]["range"]
        assert (delete["sheetId"], delete["startIndex"], delete["endIndex"]) == (22, 1, 2)

    def test_deletes_run_bottom_up(self, sheets_store):
        batch = WriteBatch().delete(TRANSACTIONS, "t1").delete(TRANSACTIONS, "t2")

        requests = sheets_store.build_requests(batch, {TRANSACTIONS: TRANSACTION_ROWS}, {TRANSACTIONS: 22})

        starts = [r["deleteDimension"]["range"]["startIndex"] for r in requests]
        assert starts == [2, 1]

    def test_delete_of_missing_row_is_dropped(self, sheets_store):
        batch = WriteBatch().delete(TRANSACTIONS, "nope")

        assert sheets_store.build_requests(batch, {TRANSACTIONS: TRANSACTION_ROWS}, {TRANSACTIONS: 22}) == []


class TestSheetsStore:
    """Reads, subscriptions and commits against mocked worksheets."""

    @pytest.mark.asyncio
    async def test_subscribe_delivers_owner_snapshot(self, sheets_store):
        snapshots = []
        await sheets_store.subscribe(ACCOUNTS, "u", snapshots.append)

        assert [d.id for d in snapshots[0]] == ["a1", "a2"]

    @pytest.mark.asyncio
    async def test_get(self, sheets_store):
        assert (await sheets_store.get(TRANSACTIONS, "t2"))["note"] == "pay"
        assert await sheets_store.get(TRANSACTIONS, "missing") is None

    @pytest.mark.asyncio
    async def test_commit_sends_single_batch_update(self, sheets_store, sheets_client):
        batch = (
            WriteBatch()
            .create(TRANSACTIONS, "t3", {"userId": "u", "amount": "1"})
            .update(ACCOUNTS, "a1", {"balance": "999", "version": 1}, expected_version=0)
        )

        await sheets_store.commit(batch)

        spreadsheet = sheets_client.get_spreadsheet.return_value
        spreadsheet.batch_update.assert_called_once()
        body = spreadsheet.batch_update.call_args.args[0]
        assert len(body["requests"]) == 2

    @pytest.mark.asyncio
    async def test_stale_version_sends_nothing(self, sheets_store, sheets_client):
        batch = WriteBatch().update(ACCOUNTS, "a2", {"balance": "0", "version": 1}, expected_version=0)

        with pytest.raises(ConflictError):
            await sheets_store.commit(batch)

        sheets_client.get_spreadsheet.return_value.batch_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_failure_becomes_storage_error(self, sheets_store, sheets_client):
        sheets_client.get_spreadsheet.return_value.batch_update.side_effect = RuntimeError("quota")

        with pytest.raises(StorageError, match="quota"):
            await sheets_store.commit(WriteBatch().delete(TRANSACTIONS, "t1"))

    @pytest.mark.asyncio
    async def test_commit_refreshes_subscribers(self, sheets_store):
        snapshots = []
        await sheets_store.subscribe(TRANSACTIONS, "u", snapshots.append)

        await sheets_store.commit(WriteBatch().delete(TRANSACTIONS, "t1"))

        assert len(snapshots) == 2

    @pytest.mark.asyncio
    async def test_refresh_only_changed_skips_identical_snapshot(self, sheets_store):
        snapshots = []
        await sheets_store.subscribe(ACCOUNTS, "u", snapshots.append)

        sheets_store.refresh(only_changed=True)

        assert len(snapshots) == 1


class TestRejectedCommits:
    """A commit rejected by a stale read brings the mirror up to date."""

    @pytest.mark.asyncio
    async def test_conflict_refreshes_mirror_and_retry_succeeds(self, sheets_store, sheets_client):
        mirror = LiveCollectionMirror(sheets_store, "u")
        await mirror.start()
        ledger = LedgerMutator(sheets_store, mirror)
        assert mirror.find_account("a1").version == 0

        # Another session posted to a1 after this mirror last read the sheet
        moved = ["a1", "u", "Cash", "Wallet", "900", "#ffffff", "1", "1"]
        sheets_client.get_worksheet(ACCOUNTS).get_all_values.return_value = (
            [ACCOUNT_COLUMNS, moved] + ACCOUNT_ROWS[1:]
        )

        with pytest.raises(BalanceConflictError):
            await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        spreadsheet = sheets_client.get_spreadsheet.return_value
        spreadsheet.batch_update.assert_not_called()
        assert mirror.find_account("a1").version == 1
        assert mirror.find_account("a1").balance == Decimal("900")

        await ledger.create_transaction("a1", Decimal("10"), TransactionType.EXPENSE, "cat-1")

        spreadsheet.batch_update.assert_called_once()
        mirror.close()

    @pytest.mark.asyncio
    async def test_delete_after_account_vanished_falls_back_to_orphan(self, sheets_store, sheets_client):
        mirror = LiveCollectionMirror(sheets_store, "u")
        await mirror.start()
        ledger = LedgerMutator(sheets_store, mirror)
        transaction = next(t for t in mirror.transactions if t.id == "t1")

        # Another session deleted every account
        sheets_client.get_worksheet(ACCOUNTS).get_all_values.return_value = [ACCOUNT_COLUMNS]

        with pytest.raises(LedgerError, match="not found"):
            await ledger.delete_transaction(transaction)

        assert mirror.find_account("a1") is None

        result = await ledger.delete_transaction(transaction)

        assert result.balance_adjusted is False
        assert result.new_balance is None
        body = sheets_client.get_spreadsheet.return_value.batch_update.call_args.args[0]
        assert [next(iter(r)) for r in body["requests"]] == ["deleteDimension"]
        mirror.close()


class TestSheetsClient:
    """Collection to worksheet mapping."""

    def test_sheet_names_come_from_config(self):
        client = GoogleSheetsClient(BackendConfig(accountsSheet="Konten"))

        assert client.sheet_name(ACCOUNTS) == "Konten"
        assert client.sheet_name(TRANSACTIONS) == "transactions"

    def test_unknown_collection(self):
        with pytest.raises(StorageError):
            GoogleSheetsClient(BackendConfig()).sheet_name("budgets")
