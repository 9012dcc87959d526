"""Test CLI (stesso DB temporaneo dei test API)."""
from __future__ import annotations

import re
from datetime import datetime

from clinic_backend.cli import main


class TestCli:
    def test_init_and_list(self, database, capsys):
        assert main(["init", "--no-demo"]) == 0
        assert main(["list", "cabinets"]) == 0
        out = capsys.readouterr().out
        assert "MRI-1" in out
        assert "CT-1" in out

    def test_book_then_set_status(self, reference_data, capsys):
        rc = main([
            "book",
            "--patient-id", str(reference_data["pat_a"]),
            "--doctor-id", str(reference_data["doc_alfa"]),
            "--service-id", str(reference_data["srv_ct_chest"]),
            "--cabinet-id", str(reference_data["cab_ct1"]),
            "--start", "2030-04-01T09:00:00Z",
        ])
        assert rc == 0
        new_id = re.search(r"ID: (\d+)", capsys.readouterr().out).group(1)

        assert main(["set-status", "--appointment-id", new_id, "--status", "DONE"]) == 0
        assert f"Appuntamento {new_id}: DONE" in capsys.readouterr().out

    def test_invalid_input_returns_error_code(self, reference_data, capsys):
        rc = main([
            "book",
            "--patient-id", "0",
            "--doctor-id", str(reference_data["doc_alfa"]),
            "--service-id", str(reference_data["srv_ct_chest"]),
            "--cabinet-id", str(reference_data["cab_ct1"]),
            "--start", "2030-04-01T09:00:00Z",
        ])
        assert rc == 1
        assert "Invalid PatientId" in capsys.readouterr().err

    def test_export_csv(self, reference_data, add_appointment, tmp_path, capsys):
        add_appointment(
            reference_data["pat_a"], reference_data["doc_alfa"], reference_data["srv_mri_knee"],
            reference_data["cab_mri1"], datetime(2030, 1, 1, 9),
        )
        out = tmp_path / "export.csv"
        assert main(["export-csv", "--output", str(out)]) == 0

        data = out.read_bytes()
        assert data.startswith(b"\xef\xbb\xbfsep=;\r\n")
        assert b"Petrenko M." in data
        assert "Esportati 1" in capsys.readouterr().out
