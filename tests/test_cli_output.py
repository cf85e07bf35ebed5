from __future__ import annotations

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from plateverify import cli
from plateverify.cli import save_result_json


class CliOutputTests(unittest.TestCase):
    def test_save_result_json_writes_file(self) -> None:
        payload = {"status": "VERIFIED"}
        with tempfile.TemporaryDirectory() as tmp:
            out_path = save_result_json(payload, input_file="photos/TS07EA1234.jpg", output_dir=tmp)
            self.assertTrue(out_path.exists())
            data = json.loads(out_path.read_text(encoding="utf-8"))
            self.assertEqual(data["status"], "VERIFIED")
            self.assertTrue(out_path.name.startswith("TS07EA1234_"))
            self.assertEqual(out_path.suffix, ".json")

    def test_unsafe_names_are_sanitized(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out_path = save_result_json({}, input_file="captures/cam 3 (north).json", output_dir=tmp)
            self.assertTrue(out_path.name.startswith("cam_3_north_"))
            out_path = save_result_json({}, input_file="@@@.json", output_dir=tmp)
            self.assertTrue(out_path.name.startswith("analysis_"))

    def test_main_reconciles_analysis_with_registry_rows(self) -> None:
        analysis = {
            "candidates": [
                {"text": "TS 21 J 5859", "confidence": 0.82, "strategy": "general"},
                {"text": "TS21J5859", "confidence": 0.78, "strategy": "focused"},
            ],
            "vehicle": {"make": "Hero", "model": "Splendor Plus", "color": "Black"},
            "violation_types": ["No Helmet"],
        }
        rows = [{"Registration Number": "TS21J5859", "Make": "HERO", "Model": "SPLENDOR PLUS", "Colour": "BLACK"}]
        with tempfile.TemporaryDirectory() as tmp:
            analysis_path = Path(tmp) / "TS21J5859.json"
            registry_path = Path(tmp) / "registry.json"
            analysis_path.write_text(json.dumps(analysis), encoding="utf-8")
            registry_path.write_text(json.dumps(rows), encoding="utf-8")
            argv = [
                "plateverify",
                "--analysis",
                str(analysis_path),
                "--registry",
                str(registry_path),
                "--output-dir",
                str(Path(tmp) / "out"),
            ]
            with mock.patch.object(sys, "argv", argv), mock.patch("builtins.print") as printed:
                cli.main()
            payload = json.loads(printed.call_args[0][0])
            self.assertEqual(payload["status"], "VERIFIED")
            self.assertEqual(payload["plate"]["text"], "TS21J5859")
            self.assertEqual(payload["registry_source"], "static table")
            self.assertTrue(Path(payload["output_file"]).exists())

    def test_missing_analysis_file_exits(self) -> None:
        with mock.patch.object(sys, "argv", ["plateverify", "--analysis", "does/not/exist.json"]):
            with self.assertRaises(SystemExit):
                cli.main()


if __name__ == "__main__":
    unittest.main()
