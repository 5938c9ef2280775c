# logguard/services/export.py
"""
CSV export of the anomaly result set

Column order and escaping match what analysts already import elsewhere:
a field is quoted (with inner quotes doubled) only when it is a string
containing a comma or a double quote. Numbers and other values are written
as-is, and newlines get no special treatment, so the csv module's
QUOTE_MINIMAL dialect is deliberately not used here.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..core.config import settings
from ..core.models import Anomaly

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "timestamp",
    "anomalyType",
    "description",
    "riskScore",
    "detectionMethod",
    "detectionCategory",
    "status",
    "sourceIP",
    "destinationIP",
    "user",
    "action",
    "url",
    "category",
]

SOURCE_COLUMNS = ["sourceIP", "destinationIP", "user", "action", "url", "category"]

CSV_MIME_TYPE = "text/csv;charset=utf-8"


@dataclass
class CsvExport:
    """A generated export, ready to download or write"""
    filename: str
    content: str
    row_count: int
    mime_type: str = CSV_MIME_TYPE

    def to_bytes(self) -> bytes:
        return self.content.encode("utf-8")


def iso_timestamp(value: datetime) -> str:
    """Full ISO-8601 in UTC with millisecond precision, e.g. 2024-01-15T10:00:00.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def export_row(anomaly: Anomaly) -> Dict[str, Any]:
    """Flatten one anomaly into the export columns"""
    row: Dict[str, Any] = {
        "timestamp": iso_timestamp(anomaly.timestamp),
        "anomalyType": anomaly.anomaly_type,
        "description": anomaly.description,
        "riskScore": anomaly.wire_risk_score,
        "detectionMethod": anomaly.detection_method,
        "detectionCategory": anomaly.category.value,
        "status": anomaly.status.value,
    }
    for column in SOURCE_COLUMNS:
        row[column] = anomaly.source_value(column)
    return row


def _coerce(value: Any) -> str:
    """Plain string form of a non-string value"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def encode_field(value: Any) -> str:
    """Quote a field only if it is a string holding a comma or a double quote"""
    if isinstance(value, str):
        if "," in value or '"' in value:
            return '"' + value.replace('"', '""') + '"'
        return value
    return _coerce(value)


def encode_csv(anomalies: Iterable[Anomaly]) -> str:
    """
    Encode anomalies as CSV text: one header line plus one line per anomaly

    The input is only read, never modified.
    """
    lines = [",".join(EXPORT_COLUMNS)]
    for anomaly in anomalies:
        row = export_row(anomaly)
        lines.append(",".join(encode_field(row[column]) for column in EXPORT_COLUMNS))
    return "\n".join(lines)


def export_filename(today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"anomalies-export-{today.isoformat()}.csv"


def export_anomalies(
    anomalies: Optional[List[Anomaly]],
    today: Optional[date] = None
) -> Optional[CsvExport]:
    """
    Build a CSV export of the full result set

    Args:
        anomalies: Every anomaly currently loaded (not just the selected rows)
        today: Date used in the file name (defaults to the current UTC date)

    Returns:
        CsvExport, or None when there is nothing to export
    """
    if not anomalies:
        logger.debug("Export skipped: no anomalies")
        return None

    content = encode_csv(anomalies)
    export = CsvExport(
        filename=export_filename(today),
        content=content,
        row_count=len(anomalies),
    )
    logger.info(f"Exported {export.row_count} anomalies to {export.filename}")
    return export


def write_export(export: CsvExport, directory: Optional[Path] = None) -> Path:
    """
    Write an export to disk

    Args:
        export: Result of export_anomalies()
        directory: Target directory (defaults to settings.export_dir)

    Returns:
        Path of the written file
    """
    directory = Path(directory or settings.export_dir)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / export.filename
    path.write_bytes(export.to_bytes())
    logger.info(f"Wrote {path}")
    return path
