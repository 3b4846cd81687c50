"""Async REST client for the accounting import endpoints.

Thin wrapper over ``httpx.AsyncClient``: one method per endpoint, responses
parsed into the wire models, and every failure raised as ``ApiError``.
"""

import logging
from datetime import date, datetime
from typing import Any

import httpx
from pydantic import ValidationError

from ledgerimport.config import Settings, get_settings
from ledgerimport.errors import ApiError
from ledgerimport.models import (
    ColumnMapping,
    ExistingLedger,
    ImportFormat,
    ImportJob,
    ImportRowError,
    MappingField,
    MatchingStatistics,
    SpreadsheetFile,
    StagedImportSession,
    UploadReceipt,
)

logger = logging.getLogger(__name__)

# Keys the API uses for human-readable error text, in preference order
ERROR_MESSAGE_KEYS = ("message", "detail", "title", "error")


def _error_message(response: httpx.Response) -> str:
    """Extract a human-readable error message from a failed response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ERROR_MESSAGE_KEYS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    elif isinstance(payload, str) and payload.strip():
        return payload.strip()

    text = response.text.strip()
    if text:
        return text[:200]
    return response.reason_phrase or "Request failed"


def _isoformat(value: date | datetime) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return datetime(value.year, value.month, value.day).isoformat()


class AccountingClient:
    """Client for the accounting API's import, staging and matching endpoints.

    Use as an async context manager so the underlying connection pool is
    closed::

        async with AccountingClient.from_settings() as client:
            job = await client.get_job_status(42)
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        upload_timeout: float = 120.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # httpx joins relative paths onto the base only when it ends in "/"
        if not base_url.endswith("/"):
            base_url += "/"

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.base_url = base_url
        self.upload_timeout = upload_timeout
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AccountingClient":
        """Build a client from the loaded configuration."""
        settings = settings or get_settings()
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout=settings.api_timeout,
            upload_timeout=settings.upload_timeout,
            verify=settings.verify_tls,
            transport=transport,
        )

    async def __aenter__(self) -> "AccountingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a request and raise ApiError for transport or HTTP failures."""
        logger.debug("%s %s", method, path)
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self._http.request(
                method,
                path,
                params=params,
                json=json,
                data=data,
                files=files,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.debug("%s %s -> %d: %s", method, path, response.status_code, message)
            raise ApiError(message, status_code=response.status_code)
        return response

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        return self._json(response)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError("Response body is not valid JSON", response.status_code) from e

    @staticmethod
    def _parse(model: type, payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise ApiError(f"Unexpected {model.__name__} response: {e}") from e

    @classmethod
    def _parse_list(cls, model: type, payload: Any) -> list:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ApiError(f"Expected a list of {model.__name__}, got {type(payload).__name__}")
        return [cls._parse(model, item) for item in payload]

    async def _upload(
        self,
        path: str,
        source: SpreadsheetFile,
        fields: dict[str, str],
    ) -> Any:
        response = await self._request(
            "POST",
            path,
            data=fields,
            files={"file": source.as_upload()},
            timeout=self.upload_timeout,
        )
        return self._json(response)

    # =========================================================================
    # Direct uploads and job status
    # =========================================================================

    async def import_master_chart(
        self, program_id: int, source: SpreadsheetFile, sheet_name: str | None = None
    ) -> UploadReceipt:
        """Upload a master chart of accounts workbook; the server queues a job."""
        fields = {"sheetName": sheet_name} if sheet_name else {}
        payload = await self._upload(
            f"Accounting/programs/{program_id}/master-chart-of-accounts/import-excel",
            source,
            fields,
        )
        return self._parse(UploadReceipt, payload)

    async def import_program_chart(
        self, program_id: int, source: SpreadsheetFile, sheet_name: str | None = None
    ) -> UploadReceipt:
        """Upload a program chart of accounts workbook; the server queues a job."""
        fields = {"sheetName": sheet_name} if sheet_name else {}
        payload = await self._upload(
            f"Accounting/programs/{program_id}/chart-of-accounts/import-excel",
            source,
            fields,
        )
        return self._parse(UploadReceipt, payload)

    async def get_job_status(self, job_id: int) -> ImportJob:
        payload = await self._get_json(f"bulkupload/jobs/{job_id}")
        return self._parse(ImportJob, payload)

    async def get_job_errors(self, job_id: int) -> list[ImportRowError]:
        payload = await self._get_json(f"bulkupload/jobs/{job_id}/errors")
        return self._parse_list(ImportRowError, payload)

    # =========================================================================
    # Staging and mapping
    # =========================================================================

    async def stage_general_ledger(
        self,
        shop_id: int,
        program_id: int,
        source: SpreadsheetFile,
        sheet_name: str | None,
        import_date: datetime,
        ledger_date: date,
    ) -> StagedImportSession:
        """Stage a general ledger sheet for column mapping."""
        fields = {
            "importDate": _isoformat(import_date),
            "ledgerDate": _isoformat(ledger_date),
        }
        if sheet_name:
            fields["sheetName"] = sheet_name
        payload = await self._upload(
            f"Accounting/shops/{shop_id}/programs/{program_id}/general-ledger/stage-excel",
            source,
            fields,
        )
        return self._parse(StagedImportSession, payload)

    async def stage_shop_chart(
        self,
        shop_id: int,
        program_id: int,
        source: SpreadsheetFile,
        sheet_name: str | None = None,
    ) -> StagedImportSession:
        """Stage a shop chart of accounts sheet for column mapping.

        The chart endpoint names the job ``jobID`` and returns sample rows
        wrapped as ``{"rowNumber", "columnData"}``; they are unwrapped into
        plain column -> value preview rows.
        """
        fields = {"sheetName": sheet_name} if sheet_name else {}
        payload = await self._upload(
            f"Accounting/shops/{shop_id}/programs/{program_id}/chart-of-accounts/stage-excel",
            source,
            fields,
        )
        if not isinstance(payload, dict):
            raise ApiError("Unexpected staging response")
        sample_rows = payload.get("sampleData") or []
        payload = {
            **payload,
            "jobId": payload.get("jobID"),
            "previewData": [row.get("columnData", {}) for row in sample_rows if isinstance(row, dict)],
        }
        return self._parse(StagedImportSession, payload)

    async def get_import_formats(self) -> list[ImportFormat]:
        payload = await self._get_json("Accounting/general-ledger/import-formats")
        return self._parse_list(ImportFormat, payload)

    async def get_ledger_mapping_fields(self, format_type: str) -> list[MappingField]:
        payload = await self._get_json(f"Accounting/general-ledger/mapping-fields/{format_type}")
        return self._parse_list(MappingField, payload)

    async def get_chart_mapping_fields(self) -> list[MappingField]:
        payload = await self._get_json("Accounting/chart-of-accounts/mapping-fields")
        return self._parse_list(MappingField, payload)

    async def apply_ledger_mappings(
        self,
        job_id: int,
        shop_id: int,
        program_id: int,
        mappings: list[ColumnMapping],
        import_date: datetime,
        period_date: date,
    ) -> ImportJob:
        """Commit a staged general ledger with its column mappings."""
        body = {
            "mappings": [mapping.to_wire() for mapping in mappings],
            "importDate": _isoformat(import_date),
            "periodDate": _isoformat(period_date),
        }
        response = await self._request(
            "POST",
            f"Accounting/general-ledger/apply-mappings-and-import/{job_id}/{shop_id}/{program_id}",
            json=body,
            timeout=self.upload_timeout,
        )
        return self._job_from_commit(job_id, self._json(response))

    async def apply_chart_mappings(
        self,
        job_id: int,
        program_id: int,
        mappings: list[ColumnMapping],
    ) -> ImportJob:
        """Commit a staged chart of accounts with its column mappings."""
        response = await self._request(
            "POST",
            f"Accounting/chart-of-accounts/apply-mappings-and-import/{job_id}/{program_id}",
            json=[mapping.to_wire() for mapping in mappings],
            timeout=self.upload_timeout,
        )
        return self._job_from_commit(job_id, self._json(response))

    def _job_from_commit(self, job_id: int, payload: Any) -> ImportJob:
        # Commit responses may omit the job id; it is the staged session's id
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ApiError("Unexpected commit response")
        return self._parse(ImportJob, {"jobID": job_id, **payload})

    # =========================================================================
    # Chart of accounts reconciliation and existing data
    # =========================================================================

    async def get_matching_statistics(self, shop_id: int, program_id: int) -> MatchingStatistics:
        payload = await self._get_json(
            f"Accounting/shops/{shop_id}/programs/{program_id}/matching-statistics"
        )
        return self._parse(MatchingStatistics, payload)

    async def get_existing_ledger(
        self,
        shop_id: int,
        program_id: int,
        from_date: date,
        to_date: date,
    ) -> ExistingLedger:
        payload = await self._get_json(
            f"Accounting/shops/{shop_id}/general-ledger",
            params={
                "fromDate": _isoformat(from_date),
                "toDate": _isoformat(to_date),
                "programId": program_id,
            },
        )
        return self._parse(ExistingLedger, payload or {})

    # =========================================================================
    # Downloads
    # =========================================================================

    async def download_template(self) -> bytes:
        response = await self._request("GET", "Accounting/chart-of-accounts/template")
        return response.content

    async def export_shop_chart(
        self,
        shop_id: int,
        program_id: int,
        search_term: str | None = None,
        account_type: str | None = None,
        is_active: bool | None = None,
    ) -> bytes:
        params: dict[str, Any] = {}
        if search_term:
            params["SearchTerm"] = search_term
        if account_type:
            params["AccountType"] = account_type
        if is_active is not None:
            params["IsActive"] = str(is_active).lower()
        response = await self._request(
            "GET",
            f"Accounting/shops/{shop_id}/programs/{program_id}/chart-of-accounts/export",
            params=params or None,
        )
        return response.content
