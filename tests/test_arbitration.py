from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from plateverify.arbitration import arbitrate, detector_reading_from_candidates
from plateverify.config import Settings
from plateverify.consensus import make_candidate, resolve_consensus, resolve_fallback
from plateverify.models import DetectorReading


def _accepted_consensus():
    return resolve_consensus(
        [make_candidate("TS07EA1234", 0.8, "general"), make_candidate("TS07EA1234", 0.7, "focused")],
        min_consensus_score=0.4,
    )


def _weak_consensus():
    return resolve_consensus(
        [make_candidate("TS07EA1234", 0.5), make_candidate("TS07EA1284", 0.5), make_candidate("TS07FA1234", 0.5)],
        min_consensus_score=0.4,
    )


class ArbitrationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = Settings()

    def test_regional_detector_reading_wins_with_high_cap(self) -> None:
        detector = DetectorReading(success=True, plate_text="TS09EA1234", confidence=0.99, region="Telangana")
        result = arbitrate(detector, _accepted_consensus(), settings=self.settings)
        self.assertEqual(result.source, "specialized-detector")
        self.assertEqual(result.plate.text, "TS09EA1234")
        self.assertAlmostEqual(result.plate.confidence, 0.95)
        self.assertEqual(result.plate.region, "Telangana")
        self.assertIsNone(result.failure)

    def test_non_regional_detector_reading_uses_lower_cap(self) -> None:
        detector = DetectorReading(success=True, plate_text="KA05AB1234", confidence=0.99, region="Other")
        result = arbitrate(detector, _accepted_consensus(), settings=self.settings)
        self.assertEqual(result.plate.text, "KA05AB1234")
        self.assertAlmostEqual(result.plate.confidence, 0.85)
        self.assertEqual(result.plate.region, "Other")

    def test_caps_are_configurable(self) -> None:
        settings = Settings(detector_region_cap=0.9)
        detector = DetectorReading(success=True, plate_text="TS09EA1234", confidence=0.99)
        self.assertAlmostEqual(arbitrate(detector, _accepted_consensus(), settings=settings).plate.confidence, 0.9)

    def test_failed_detector_falls_back_to_consensus(self) -> None:
        detector = DetectorReading(success=False, error="No text detected in image")
        result = arbitrate(detector, _accepted_consensus(), settings=self.settings)
        self.assertEqual(result.source, "consensus")
        self.assertEqual(result.plate.text, "TS07EA1234")

    def test_weak_consensus_prefers_fallback(self) -> None:
        fallback = resolve_fallback([make_candidate("TS21J5859", 0.9, "fallback")])
        result = arbitrate(None, _weak_consensus(), fallback, settings=self.settings)
        self.assertEqual(result.source, "fallback")
        self.assertEqual(result.plate.text, "TS21J5859")

    def test_weak_consensus_kept_when_nothing_else(self) -> None:
        result = arbitrate(None, _weak_consensus(), settings=self.settings)
        self.assertEqual(result.source, "consensus")
        self.assertTrue(result.plate.below_threshold)

    def test_transient_detector_failure_is_distinguishable(self) -> None:
        detector = DetectorReading(success=False, error="quota exceeded", transient=True)
        result = arbitrate(detector, resolve_consensus([]), settings=self.settings)
        self.assertIsNone(result.plate)
        self.assertEqual(result.failure, "transient")

    def test_no_plate_anywhere_is_normal_failure(self) -> None:
        detector = DetectorReading(success=False, error="No reliable license plate detected")
        result = arbitrate(detector, resolve_consensus([]), settings=self.settings)
        self.assertIsNone(result.plate)
        self.assertEqual(result.failure, "no_plate")
        self.assertIn("No reliable license plate detected", result.reason)


class DetectorCandidateTests(unittest.TestCase):
    def test_regional_candidate_preferred_over_confidence(self) -> None:
        candidates = [
            make_candidate("KA05AB1234", 0.99, "specialized-detector"),
            make_candidate("TS09EA1234", 0.6, "specialized-detector"),
            make_candidate("TS09EA1299", 0.9, "general"),
        ]
        reading = detector_reading_from_candidates(candidates, Settings())
        self.assertTrue(reading.success)
        self.assertEqual(reading.plate_text, "TS09EA1234")
        self.assertEqual(reading.region, "Telangana")
        self.assertEqual(len(reading.candidates), 2)

    def test_no_detector_candidates(self) -> None:
        self.assertIsNone(detector_reading_from_candidates([make_candidate("TS09EA1234", 0.9)], Settings()))


if __name__ == "__main__":
    unittest.main()
