"""Cell transports: the single read/write primitive against a remote sheet.

A transport does one thing: read the text of a named cell, or overwrite it.
It raises classified RemoteError subclasses for failures it understands and
lets anything else propagate. Retrying is not its job (see resilience.py).
"""

from __future__ import annotations

import errno
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from sheetplan.errors import NetworkError, RemoteError
from sheetplan.logging import Loggers

logger = Loggers.remote()


@runtime_checkable
class CellTransport(Protocol):
    """Named-cell read/write against a remote tabular service."""

    async def get_cell(self, ref: str) -> str:
        """Return the cell's text, or "" if the cell is empty or unset."""
        ...

    async def set_cell(self, ref: str, text: str) -> None:
        """Overwrite the cell's text."""
        ...


class MemoryCellTransport:
    """In-process transport backed by a dict.

    Used for local runs and tests. Counts calls so callers can assert
    how many round trips an operation made.

    Example:
        >>> transport = MemoryCellTransport({"AGENTSCAPE!C6": "# Plan: Demo"})
        >>> await transport.get_cell("AGENTSCAPE!C6")
        '# Plan: Demo'
    """

    def __init__(self, cells: dict[str, str] | None = None) -> None:
        self.cells: dict[str, str] = dict(cells or {})
        self.reads = 0
        self.writes = 0

    async def get_cell(self, ref: str) -> str:
        self.reads += 1
        return self.cells.get(ref, "")

    async def set_cell(self, ref: str, text: str) -> None:
        self.writes += 1
        self.cells[ref] = text


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def network_error_code(exc: BaseException) -> str | None:
    """Find a transport error code (e.g. "ECONNRESET") on an exception or its causes."""
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, httpx.TimeoutException):
            return "ETIMEDOUT"
        if isinstance(current, TimeoutError):
            return "ETIMEDOUT"
        if isinstance(current, OSError) and current.errno in errno.errorcode:
            return errno.errorcode[current.errno]
        if isinstance(current, OSError) and getattr(current, "errno", None) is not None:
            # socket.gaierror carries negative EAI_* codes
            if current.errno in (-2, -5):
                return "ENOTFOUND"
            if current.errno == -3:
                return "EAI_AGAIN"
        current = current.__cause__ or current.__context__
    return None


class SheetsCellTransport:
    """Google Sheets REST v4 transport over httpx.

    Reads use ``GET /spreadsheets/{id}/values/{range}`` and writes use
    ``PUT`` on the same path with a single-cell value matrix.

    Example:
        >>> transport = SheetsCellTransport("1AbC...", token="ya29...")
        >>> text = await transport.get_cell("AGENTSCAPE!C6")
    """

    def __init__(
        self,
        spreadsheet_id: str,
        token: str | None = None,
        base_url: str = "https://sheets.googleapis.com/v4",
        timeout: float = 30.0,
        value_input_option: str = "RAW",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._value_input_option = value_input_option
        self._client = client

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    def _url(self, ref: str) -> str:
        return (
            f"{self._base_url}/spreadsheets/{quote(self._spreadsheet_id, safe='')}"
            f"/values/{quote(ref, safe='')}"
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def get_cell(self, ref: str) -> str:
        response = await self._request("GET", ref)
        values = response.json().get("values") or []
        if not values or not values[0]:
            return ""
        return str(values[0][0])

    async def set_cell(self, ref: str, text: str) -> None:
        await self._request(
            "PUT",
            ref,
            params={"valueInputOption": self._value_input_option},
            json={"range": ref, "majorDimension": "ROWS", "values": [[text]]},
        )

    async def _request(self, method: str, ref: str, **kwargs) -> httpx.Response:
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, self._url(ref), headers=self._headers(), timeout=self._timeout, **kwargs
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(
                        method, self._url(ref), headers=self._headers(), timeout=self._timeout, **kwargs
                    )
        except httpx.TransportError as e:
            code = network_error_code(e) or transport_error_code(e)
            if code is None:
                raise RemoteError(
                    f"Request for {ref} failed: {str(e) or type(e).__name__}",
                    details={"ref": ref, "spreadsheet_id": self._spreadsheet_id},
                ) from e
            raise NetworkError(str(e) or type(e).__name__, error_code=code) from e

        logger.debug("sheets_request", method=method, ref=ref, status=response.status_code)
        if response.is_error:
            raise self._status_error(response, ref)
        return response

    def _status_error(self, response: httpx.Response, ref: str) -> RemoteError:
        message = response.reason_phrase or "request failed"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            message = body["error"].get("message") or message
        error = RemoteError.from_status(
            response.status_code,
            f"Sheets API {response.status_code} for {ref}: {message}",
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )
        error.details = {"ref": ref, "spreadsheet_id": self._spreadsheet_id}
        return error


def transport_error_code(exc: httpx.TransportError) -> str | None:
    """Fallback code for httpx transport errors with no OS-level cause.

    Returns None for faults in the request itself (unsupported scheme,
    local protocol violation, proxy failure), which retrying cannot fix.
    """
    if isinstance(exc, httpx.ConnectError):
        return "ECONNREFUSED"
    if isinstance(exc, (httpx.ReadError, httpx.RemoteProtocolError)):
        return "ECONNRESET"
    if isinstance(exc, httpx.WriteError):
        return "EPIPE"
    if isinstance(exc, httpx.CloseError):
        return "ECONNABORTED"
    return None
