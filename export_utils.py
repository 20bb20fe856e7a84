import base64
import csv
import io
import json
from datetime import datetime
from typing import Iterable, Any, Sequence, Callable, Optional
from fastapi.responses import Response, StreamingResponse


def decode_upload_bytes(data: bytes) -> str:
    # UTF-8 with BOM first (Windows editors), then plain UTF-8, then CP932
    for enc in ("utf-8-sig", "utf-8", "cp932"):
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def _iso(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _money(value: Any) -> str:
    return f"{float(value or 0):.2f}"


def rentals_to_csv_response(
    rentals: Iterable[Any],
    *,
    filename: str = "rentals_report.csv",
    columns: Optional[Sequence[tuple[str, Callable[[Any], str]]]] = None,
) -> StreamingResponse:
    """
    Stream rental summaries (anything with RentalSummary attributes) as a CSV
    download.
    """

    if columns is None:
        columns = [
            ("rental_id", lambda r: str(getattr(r, "rental_id", ""))),
            ("asset_id", lambda r: str(getattr(r, "asset_id", ""))),
            ("asset", lambda r: str(getattr(r, "asset_name", ""))),
            ("customer", lambda r: str(getattr(r, "customer_name", None) or "Unknown Customer")),
            ("out_date", lambda r: _iso(getattr(r, "out_date", None))),
            ("in_date", lambda r: _iso(getattr(r, "in_date", None))),
            ("billing_cycle", lambda r: str(getattr(r, "billing_cycle", ""))),
            ("rate", lambda r: _money(getattr(r, "rate", 0))),
            ("duration", lambda r: str(getattr(r, "duration", ""))),
            ("total_billed", lambda r: _money(getattr(r, "total_billed", 0))),
            ("total_paid", lambda r: _money(getattr(r, "total_paid", 0))),
            ("balance", lambda r: _money(getattr(r, "balance", 0))),
        ]

    def generate():
        buf = io.StringIO()
        w = csv.writer(buf)

        # header
        w.writerow([h for h, _ in columns])
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        # rows
        for r in rentals:
            w.writerow([getter(r) for _, getter in columns])
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(generate(), media_type="text/csv; charset=utf-8", headers=headers)


def backup_filename(when: datetime) -> str:
    return f"assettrack_backup_{when.date().isoformat()}.json"


def backup_to_json_response(data: dict, *, when: datetime) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{backup_filename(when)}"'}
    return Response(
        content=json.dumps(data, indent=2),
        media_type="application/json",
        headers=headers,
    )


def to_data_url(content: bytes, content_type: Optional[str]) -> str:
    """Embed an uploaded image or document as a data: URL string."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type or 'application/octet-stream'};base64,{encoded}"
