# ============================================================================
# CAMPUS GUARDIAN — Incident Export
# ============================================================================
# Flatten the currently loaded incident page to CSV or XLSX for download.
# Pure projection: nothing is read from or written to the store here.
# ============================================================================

import csv
import io
import logging
from typing import Dict, List

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from ..errors import NoData

logger = logging.getLogger("incidents.export")

CSV_FILENAME = "incident_reports.csv"
XLSX_FILENAME = "incident_reports.xlsx"

HEADERS = ["ID", "Date", "Type", "Status", "Reported By", "Target Student", "Description"]


def _row(inc: Dict) -> List[str]:
    return [
        str(inc.get("id") or ""),
        str(inc.get("timestamp") or ""),
        str(inc.get("type") or ""),
        str(inc.get("status") or ""),
        str(inc.get("reporterName") or ""),
        str(inc.get("targetStudentName") or "N/A"),
        str(inc.get("audioTranscript") or ""),
    ]


def _require_rows(incidents: List[Dict]):
    if not incidents:
        raise NoData("There are no incidents to export.")


def incidents_to_csv(incidents: List[Dict]) -> str:
    """Header row as-is, then every data field quoted with inner quotes doubled."""
    _require_rows(incidents)
    buf = io.StringIO()
    buf.write(",".join(HEADERS) + "\r\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL)
    for inc in incidents:
        writer.writerow(_row(inc))
    logger.info("CSV export: %d incidents", len(incidents))
    return buf.getvalue()


def incidents_to_xlsx(incidents: List[Dict]) -> bytes:
    _require_rows(incidents)
    wb = Workbook()
    ws = wb.active
    ws.title = "Incidents"
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="2C3E50", end_color="2C3E50", fill_type="solid")

    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
    for inc in incidents:
        ws.append(_row(inc))

    ws.column_dimensions["A"].width = 24
    ws.column_dimensions["B"].width = 20
    ws.column_dimensions["G"].width = 60

    out = io.BytesIO()
    wb.save(out)
    logger.info("XLSX export: %d incidents", len(incidents))
    return out.getvalue()
