from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from plateverify.models import VehicleAttributes
from plateverify.registry import SAMPLE_REGISTRY, records_from_rows
from plateverify.verification import compare_record, verify_vehicle


class VerifierTests(unittest.TestCase):
    def test_exact_match_is_verified(self) -> None:
        table = records_from_rows(
            [{"Registration Number": "TS07EA1234", "Make": "MARUTI SUZUKI", "Model": "ALTO", "Colour": "WHITE"}]
        )
        attrs = VehicleAttributes(make="Maruti Suzuki", model="Alto", color="White")
        result = verify_vehicle("TS07EA1234", attrs, table)
        self.assertEqual(result.status, "VERIFIED")
        self.assertTrue(result.matches)
        self.assertEqual(result.field_scores, {"make": 100.0, "model": 100.0, "color": 100.0})
        self.assertEqual(result.overall_score, 100.0)
        self.assertTrue(all(detail.field_match for detail in result.field_details.values()))

    def test_unknown_model_does_not_block_match(self) -> None:
        attrs = VehicleAttributes(make="Hero", model="Unknown", color="Black")
        result = verify_vehicle("TS21J5859", attrs, SAMPLE_REGISTRY)
        self.assertEqual(result.field_scores["make"], 100.0)
        self.assertLess(result.field_scores["model"], 80.0)
        self.assertTrue(result.matches)
        self.assertEqual(result.status, "VERIFIED")
        self.assertTrue(result.field_details["model"].field_match)

    def test_missing_plate_is_not_found(self) -> None:
        attrs = VehicleAttributes(make="Honda", model="Activa", color="Grey")
        result = verify_vehicle("TS99ZZ0000", attrs, SAMPLE_REGISTRY)
        self.assertEqual(result.status, "NOT_FOUND")
        self.assertFalse(result.matches)
        self.assertEqual(result.field_scores, {"make": 0.0, "model": 0.0, "color": 0.0})
        self.assertEqual(result.overall_score, 0.0)
        self.assertIsNone(result.field_details["make"].registry_value)
        self.assertEqual(result.field_details["make"].ai_value, "Honda")

    def test_mismatched_make_is_low_confidence(self) -> None:
        attrs = VehicleAttributes(make="Honda", model="Activa", color="Red")
        result = verify_vehicle("TS21J5859", attrs, SAMPLE_REGISTRY)
        self.assertEqual(result.status, "LOW_CONFIDENCE")
        self.assertFalse(result.matches)
        self.assertEqual(result.field_scores["make"], 20.0)
        self.assertFalse(result.field_details["make"].field_match)
        self.assertEqual(result.field_details["make"].registry_value, "HERO")

    def test_color_never_gates_the_verdict(self) -> None:
        attrs = VehicleAttributes(make="Maruti Suzuki", model="Alto", color=["White", "Black"])
        result = verify_vehicle("TS07EA1234", attrs, SAMPLE_REGISTRY)
        self.assertEqual(result.field_scores["color"], 50.0)
        self.assertFalse(result.field_details["color"].field_match)
        self.assertEqual(result.overall_score, 83.33)
        self.assertEqual(result.status, "VERIFIED")

    def test_lookup_ignores_case_and_spaces(self) -> None:
        attrs = VehicleAttributes(make="Hyundai", model="i10", color="Maroon")
        result = verify_vehicle("ts08 fa5678", attrs, SAMPLE_REGISTRY)
        self.assertEqual(result.registration_number, "TS08FA5678")
        self.assertEqual(result.status, "VERIFIED")
        self.assertEqual(result.field_scores["color"], 100.0)

    def test_lookup_ignores_punctuation(self) -> None:
        table = records_from_rows(
            [{"Registration Number": "TS-07-EA-1234", "Make": "MARUTI SUZUKI", "Model": "ALTO", "Colour": "WHITE"}]
        )
        attrs = VehicleAttributes(make="Maruti Suzuki", model="Alto", color="White")
        result = verify_vehicle("TS07EA1234", attrs, table)
        self.assertEqual(result.status, "VERIFIED")
        self.assertEqual(result.registration_number, "TS-07-EA-1234")

    def test_compare_record_skips_the_lookup(self) -> None:
        record = records_from_rows(
            [{"Registration Number": "TS 21 J 5859", "Make": "HERO", "Model": "SPLENDOR PLUS", "Colour": "BLACK"}]
        )[0]
        result = compare_record(VehicleAttributes(make="Hero", model="Splendor Plus", color="Black"), record)
        self.assertEqual(result.status, "VERIFIED")
        self.assertEqual(result.overall_score, 100.0)

    def test_empty_attributes_score_zero(self) -> None:
        attrs = VehicleAttributes(make="", model="", color="")
        result = verify_vehicle("TS07EA1234", attrs, SAMPLE_REGISTRY)
        self.assertEqual(result.field_scores, {"make": 0.0, "model": 0.0, "color": 0.0})
        self.assertEqual(result.status, "LOW_CONFIDENCE")

    def test_verifier_is_idempotent(self) -> None:
        attrs = VehicleAttributes(make="Hero", model="Splendor", color="dark black")
        first = verify_vehicle("TS21J5859", attrs, SAMPLE_REGISTRY)
        second = verify_vehicle("TS21J5859", attrs, SAMPLE_REGISTRY)
        self.assertEqual(first, second)

    def test_malformed_table_raises(self) -> None:
        attrs = VehicleAttributes(make="Hero", model="Splendor", color="Black")
        with self.assertRaises(AttributeError):
            verify_vehicle("TS21J5859", attrs, [{"Registration Number": "TS21J5859"}])


if __name__ == "__main__":
    unittest.main()
