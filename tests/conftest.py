"""Pytest configuration and fixtures for LedgerImport tests.

The accounting API is faked with an ``httpx.MockTransport`` so every test
runs in-process; workbooks are built with openpyxl.
"""

import importlib
import io
import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from openpyxl import Workbook

from ledgerimport.client import AccountingClient
from ledgerimport.config.schema import LedgerImportConfig, PollingConfig, SecretsConfig
from ledgerimport.config.settings import Settings
from ledgerimport.models import SpreadsheetFile
from ledgerimport.services.notifications import Notification, NotificationKind, Notifier

# The package re-exports a ``settings`` proxy under the module's name
settings_module = importlib.import_module("ledgerimport.config.settings")

TEST_BASE_URL = "http://testserver/api/"


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fast polling and no config or secrets files."""
    config = LedgerImportConfig(
        polling=PollingConfig(interval_seconds=0.01, max_duration_seconds=0),
    )
    config.api.base_url = TEST_BASE_URL
    return Settings(config=config, secrets=SecretsConfig(api_token="test-token"))


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, test_settings):
    """Make get_settings() return the test settings instead of loading files."""
    monkeypatch.setattr(settings_module, "_settings", test_settings)
    yield test_settings
    settings_module.reset_settings()


# =============================================================================
# Notifications
# =============================================================================


class RecordingNotifier(Notifier):
    """Notifier that keeps every notification for assertions."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def kinds(self) -> list[NotificationKind]:
        return [n.kind for n in self.notifications]

    def of_kind(self, kind: NotificationKind) -> list[Notification]:
        return [n for n in self.notifications if n.kind is kind]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# =============================================================================
# Fake accounting API
# =============================================================================


class FakeApi:
    """Route table for ``httpx.MockTransport``.

    Routes are keyed by method and path relative to the API base. A route
    holds a list of responders; each request consumes one and the last one
    repeats.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Callable[[httpx.Request], httpx.Response]]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        status: int = 200,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Respond to ``method path`` with a JSON body (or raw content)."""

        def responder(request: httpx.Request) -> httpx.Response:
            if content is not None:
                return httpx.Response(status, content=content, headers=headers)
            if json is None:
                return httpx.Response(status)
            return httpx.Response(status, json=json)

        self.routes.setdefault((method, path), []).append(responder)

    def add_sequence(self, method: str, path: str, payloads: list[Any]) -> None:
        for payload in payloads:
            self.add(method, path, json=payload)

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes.setdefault((method, path), []).append(handler)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/")
        responders = self.routes.get((request.method, path))
        if not responders:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        responder = responders.pop(0) if len(responders) > 1 else responders[0]
        return responder(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.removeprefix("/api/") == path
        ]


def request_json(request: httpx.Request) -> Any:
    """Decode a JSON request body."""
    return json.loads(request.content)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def client(api) -> AsyncGenerator[AccountingClient, None]:
    """AccountingClient wired to the fake API."""
    async with AccountingClient(
        TEST_BASE_URL,
        token="test-token",
        transport=httpx.MockTransport(api),
    ) as accounting_client:
        yield accounting_client


# =============================================================================
# Workbooks
# =============================================================================


def build_workbook(sheets: dict[str, list[list[Any]]], filename: str = "ledger.xlsx") -> SpreadsheetFile:
    """Build an in-memory workbook with one worksheet per ``sheets`` entry."""
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return SpreadsheetFile(filename=filename, content=buffer.getvalue())


@pytest.fixture
def ledger_workbook() -> SpreadsheetFile:
    """Single-sheet general ledger workbook."""
    return build_workbook(
        {
            "GL": [
                ["Acct No", "Description", "Amount", "Date"],
                ["1000", "Cash", 150.25, "2024-03-01"],
                ["2000", "Payables", -75.5, "2024-03-02"],
            ]
        }
    )


# =============================================================================
# Payload helpers
# =============================================================================


def job_payload(job_id: int = 42, status: str = "Processing", **overrides: Any) -> dict:
    payload = {
        "jobID": job_id,
        "status": status,
        "fileName": "ledger.xlsx",
        "totalRecords": 100,
        "processedRecords": 0,
        "successfulRecords": 0,
        "failedRecords": 0,
        "percentageComplete": 0,
        "errorMessage": None,
    }
    payload.update(overrides)
    return payload


def staged_payload(job_id: int = 7, columns: list[str] | None = None, **overrides: Any) -> dict:
    columns = ["Acct No", "Description", "Amount"] if columns is None else columns
    payload = {
        "jobId": job_id,
        "fileName": "ledger.xlsx",
        "totalRows": 2,
        "detectedColumns": [
            {"columnName": name, "columnIndex": i, "sampleValues": [], "suggestedMapping": None}
            for i, name in enumerate(columns)
        ],
        "previewData": [],
        "errors": [],
        "warnings": [],
    }
    payload.update(overrides)
    return payload


def field_payload(name: str, required: bool = False, display: str = "") -> dict:
    return {
        "fieldName": name,
        "displayName": display or name,
        "description": "",
        "isRequired": required,
        "dataType": "string",
    }
