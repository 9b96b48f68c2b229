"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the document store because:
1. The owner can view and correct their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No multi-row transactions; every write touches a single row
- Limited query capabilities (we filter in Python)

Connection setup and reads are retried with tenacity. Writes are not:
a retried append_row after a timeout can insert the same row twice.
"""

import json
from datetime import datetime
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger_assistant.config import get_settings
from ledger_assistant.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger_assistant.models.ledger import (
    Budget,
    BudgetCategory,
    Category,
    SortOrder,
    Transaction,
    TransactionFilter,
    TransactionKind,
    sort_transactions,
    utc_now,
)
from ledger_assistant.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
    check_changes,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "owner",
    "kind",
    "amount",
    "category",
    "item",
    "occurred_at",
    "created_at",
    "updated_at",
]

# Column mappings for Budgets sheet
BUDGET_COLUMNS = [
    "owner",
    "category",
    "amount",
    "period",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation and read retries.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @_read_retry
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

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 1000
        )

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.budgets_sheet_name, BUDGET_COLUMNS, 100
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )

    @_read_retry
    def read_rows(self, sheet: gspread.Worksheet) -> list[list[str]]:
        """All data rows of a worksheet (header excluded)."""
        return sheet.get_all_values()[1:]


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsLedgerStore(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger store.

    One transaction per row in the Transactions sheet, one budget per
    row in the Budgets sheet. Row order is insertion order.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._client = client or GoogleSheetsClient()
        self._clock = clock

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def _transaction_to_row(self, tx: Transaction) -> list:
        return [
            str(tx.id),
            tx.owner,
            tx.kind.value,
            str(tx.amount),
            tx.category.value,
            tx.item,
            tx.occurred_at.isoformat(),
            tx.created_at.isoformat(),
            tx.updated_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        return Transaction(
            id=UUID(_safe_get(row, 0)),
            owner=_safe_get(row, 1),
            kind=TransactionKind(_safe_get(row, 2)),
            amount=float(_safe_get(row, 3)),
            category=Category(_safe_get(row, 4)),
            item=_safe_get(row, 5),
            occurred_at=datetime.fromisoformat(_safe_get(row, 6)),
            created_at=datetime.fromisoformat(_safe_get(row, 7)),
            updated_at=datetime.fromisoformat(_safe_get(row, 8)),
        )

    def _load(self) -> list[tuple[int, Transaction]]:
        """(sheet row number, transaction) for every readable row."""
        sheet = self._client.get_transactions_sheet()
        loaded = []
        # Row 1 is the header
        for idx, row in enumerate(self._client.read_rows(sheet), start=2):
            if not row or not row[0]:
                continue
            try:
                loaded.append((idx, self._row_to_transaction(row)))
            except (ValueError, IndexError) as e:
                logger.warning("Skipping malformed transaction row", row=idx, error=str(e))
        return loaded

    def _locate(self, owner: str, transaction_id: UUID) -> Optional[tuple[int, Transaction]]:
        for idx, tx in self._load():
            if tx.id == transaction_id and tx.owner == owner:
                return idx, tx
        return None

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(
                self._transaction_to_row(transaction),
                value_input_option="RAW",
            )
            return transaction
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction(
        self,
        owner: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        try:
            found = self._locate(owner, transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")
        return found[1] if found else None

    async def find_transactions(
        self,
        query: TransactionFilter,
        order: SortOrder = SortOrder.NEWEST_CREATED,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        try:
            rows = self._load()
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        matches = [tx for _, tx in rows if query.matches(tx)]
        ordered = sort_transactions(matches, order)
        end = None if limit is None else offset + limit
        return ordered[offset:end]

    async def update_transaction(
        self,
        owner: str,
        transaction_id: UUID,
        changes: dict[str, Any],
    ) -> Optional[Transaction]:
        check_changes(changes)
        try:
            found = self._locate(owner, transaction_id)
            if found is None:
                return None
            idx, current = found
            updated = Transaction.model_validate({
                **current.model_dump(),
                **changes,
                "updated_at": self._clock(),
            })
            sheet = self._client.get_transactions_sheet()
            sheet.update(
                range_name=f"A{idx}",
                values=[self._transaction_to_row(updated)],
                value_input_option="RAW",
            )
            return updated
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(
        self,
        owner: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        try:
            found = self._locate(owner, transaction_id)
            if found is None:
                return None
            idx, current = found
            self._client.get_transactions_sheet().delete_rows(idx)
            return current
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def delete_transactions(self, query: TransactionFilter) -> int:
        try:
            doomed = [idx for idx, tx in self._load() if query.matches(tx)]
            sheet = self._client.get_transactions_sheet()
            # Bottom-up so earlier row numbers stay valid
            for idx in sorted(doomed, reverse=True):
                sheet.delete_rows(idx)
            return len(doomed)
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")

    async def list_owners(self) -> list[str]:
        try:
            return sorted({tx.owner for _, tx in self._load()})
        except Exception as e:
            raise StorageError(f"Failed to list owners: {e}")

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            budget.owner,
            budget.category.value,
            str(budget.amount),
            budget.period,
            budget.updated_at.isoformat(),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        return Budget(
            owner=_safe_get(row, 0),
            category=BudgetCategory(_safe_get(row, 1)),
            amount=float(_safe_get(row, 2)),
            updated_at=datetime.fromisoformat(_safe_get(row, 4)),
        )

    async def upsert_budget(self, budget: Budget) -> Budget:
        try:
            sheet = self._client.get_budgets_sheet()
            row = self._budget_to_row(budget)
            for idx, existing in enumerate(self._client.read_rows(sheet), start=2):
                if (
                    _safe_get(existing, 0) == budget.owner
                    and _safe_get(existing, 1) == budget.category.value
                ):
                    sheet.update(range_name=f"A{idx}", values=[row], value_input_option="RAW")
                    return budget
            sheet.append_row(row, value_input_option="RAW")
            return budget
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def get_budgets(
        self,
        owner: str,
        categories: Optional[Iterable[BudgetCategory]] = None,
    ) -> list[Budget]:
        wanted = set(categories) if categories is not None else None
        try:
            sheet = self._client.get_budgets_sheet()
            rows = self._client.read_rows(sheet)
        except Exception as e:
            raise StorageError(f"Failed to get budgets: {e}")

        budgets = []
        for row in rows:
            if _safe_get(row, 0) != owner:
                continue
            try:
                budget = self._row_to_budget(row)
            except ValueError as e:
                logger.warning("Skipping malformed budget row", owner=owner, error=str(e))
                continue
            if wanted is None or budget.category in wanted:
                budgets.append(budget)
        return budgets


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            owner=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in self._client.read_rows(sheet):
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, IndexError):
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("Failed to write audit event", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
