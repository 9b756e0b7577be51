from __future__ import annotations

import unittest
from unittest.mock import patch

from leave_portal.models import AttendanceSettings
from leave_portal.services.geofence import distance_m, round_meters, validate_geofence


def _company(radius: int = 500) -> AttendanceSettings:
    return AttendanceSettings(
        company_latitude=45.4642,
        company_longitude=9.19,
        attendance_radius_meters=radius,
        checkout_enabled=True,
    )


class GeofenceServiceTests(unittest.TestCase):
    def test_distance_m_zero_for_same_point(self) -> None:
        self.assertAlmostEqual(distance_m(45.4642, 9.19, 45.4642, 9.19), 0.0, places=6)

    def test_distance_m_known_reference(self) -> None:
        # One degree of longitude on the equator.
        self.assertAlmostEqual(distance_m(0.0, 0.0, 0.0, 1.0), 111_195, delta=300)

    def test_round_meters_is_half_up(self) -> None:
        self.assertEqual(round_meters(0.5), 1)
        self.assertEqual(round_meters(2.5), 3)
        self.assertEqual(round_meters(500.1), 500)

    def test_exact_radius_is_inside(self) -> None:
        with patch("leave_portal.services.geofence.distance_m", return_value=500.0):
            result = validate_geofence(45.0, 9.0, _company())
        self.assertTrue(result.is_valid)
        self.assertEqual(result.distance_m, 500)
        self.assertIsNone(result.message)

    def test_just_past_radius_is_rejected(self) -> None:
        with patch("leave_portal.services.geofence.distance_m", return_value=500.1):
            result = validate_geofence(45.0, 9.0, _company())
        self.assertFalse(result.is_valid)
        self.assertEqual(
            result.message,
            "Devi essere entro 500 metri dall'azienda per registrare la presenza. Distanza attuale: 500 metri.",
        )

    def test_business_trip_skips_the_check(self) -> None:
        with patch("leave_portal.services.geofence.distance_m") as distance_mock:
            result = validate_geofence(41.9, 12.5, _company(), is_business_trip=True)
        self.assertTrue(result.is_valid)
        distance_mock.assert_not_called()

    def test_unset_company_location_permits(self) -> None:
        settings_row = AttendanceSettings(company_latitude=None, company_longitude=None, attendance_radius_meters=500)
        self.assertTrue(validate_geofence(41.9, 12.5, settings_row).is_valid)
        self.assertTrue(validate_geofence(41.9, 12.5, None).is_valid)

    def test_far_location_reports_rounded_distance(self) -> None:
        # Roughly 1.1 km north of the company.
        result = validate_geofence(45.4742, 9.19, _company(radius=200))
        self.assertFalse(result.is_valid)
        self.assertGreater(result.distance_m, 1000)
        self.assertIn("entro 200 metri", result.message)


if __name__ == "__main__":
    unittest.main()
