import csv
import io
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from config import settings

logger = logging.getLogger(__name__)

Record = Union[Dict[str, Any], Any]


def _as_dict(record: Record) -> Dict[str, Any]:
    return record if isinstance(record, dict) else record.to_dict()


def to_csv(records: Iterable[Record]) -> str:
    """Render records as CSV text.

    The header is the first record's keys in order; every data value is
    double-quoted (None becomes an empty string) and rows are joined with
    a bare newline, with no trailing newline.
    """
    rows: List[Dict[str, Any]] = [_as_dict(r) for r in records]
    if not rows:
        return ""
    keys = list(rows[0].keys())

    buf = io.StringIO()
    header = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    body = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    header.writerow(keys)
    for row in rows:
        body.writerow(["" if row.get(k) is None else row.get(k) for k in keys])
    return buf.getvalue().rstrip("\n")


def export_csv(records: Iterable[Record], filename: str = "export.csv",
               directory: Optional[str] = None) -> Optional[Path]:
    """Write records to a UTF-8 CSV file. Nothing is written for an empty list."""
    records = list(records)
    if not records:
        logger.info(f"Nothing to export to {filename}")
        return None

    target = Path(directory or settings.export_dir) / filename
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8", newline="") as f:
        f.write(to_csv(records))
    logger.info(f"Exported {len(records)} records to {target}")
    return target
