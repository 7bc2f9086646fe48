"""
Campus Guardian — Export Tests
===============================
Tests: CSV layout and quoting, XLSX workbook, empty input
"""

import io

import pytest
from openpyxl import load_workbook

from guardian.errors import NoData
from guardian.incidents import incidents_to_csv, incidents_to_xlsx

INCIDENTS = [
    {
        "id": "inc1",
        "timestamp": "2024-03-05 10:00:00",
        "type": "Verbal Abuse",
        "status": "reported",
        "reporterName": "Ravi Guard",
        "targetStudentName": "A. Kumar",
        "audioTranscript": 'He shouted "leave now", then left',
    },
    {
        "id": "inc2",
        "timestamp": "2024-03-06 09:30:00",
        "type": "Other",
        "status": "resolved",
        "reporterName": "Ravi Guard",
        "targetStudentName": None,
        "audioTranscript": "Noise near the canteen",
    },
]


class TestCsv:

    def test_header_row_unquoted(self):
        lines = incidents_to_csv(INCIDENTS).split("\r\n")
        assert lines[0] == "ID,Date,Type,Status,Reported By,Target Student,Description"

    def test_fields_quoted_and_quotes_doubled(self):
        lines = incidents_to_csv(INCIDENTS).split("\r\n")
        assert lines[1] == (
            '"inc1","2024-03-05 10:00:00","Verbal Abuse","reported","Ravi Guard","A. Kumar",'
            '"He shouted ""leave now"", then left"'
        )

    def test_missing_target_is_na(self):
        lines = incidents_to_csv(INCIDENTS).split("\r\n")
        assert '"N/A"' in lines[2]

    def test_one_row_per_incident(self):
        body = incidents_to_csv(INCIDENTS)
        assert body.endswith("\r\n")
        assert len(body.split("\r\n")) == 4

    def test_empty_input(self):
        with pytest.raises(NoData) as exc:
            incidents_to_csv([])
        assert exc.value.status_code == 400


class TestXlsx:

    def test_workbook_contents(self):
        wb = load_workbook(io.BytesIO(incidents_to_xlsx(INCIDENTS)))
        ws = wb.active
        rows = list(ws.iter_rows(values_only=True))
        assert rows[0] == ("ID", "Date", "Type", "Status", "Reported By", "Target Student", "Description")
        assert rows[1][6] == 'He shouted "leave now", then left'
        assert rows[2][5] == "N/A"
        assert ws["A1"].font.bold is True

    def test_empty_input(self):
        with pytest.raises(NoData):
            incidents_to_xlsx([])
