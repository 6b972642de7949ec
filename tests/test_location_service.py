from __future__ import annotations

import unittest
from types import SimpleNamespace

from hrpay.services.location import (
    NO_DIRECTORY_NAME,
    NO_GPS_NAME,
    OUTSIDE_NAME,
    distance_m,
    format_coordinates,
    parse_coordinates,
    resolve_location_details,
)


def _office(office_id: int, lat: float, lng: float, *, radius: int = 100, address: str | None = "Makati"):
    return SimpleNamespace(
        id=office_id,
        name=f"Office {office_id}",
        address=address,
        latitude=lat,
        longitude=lng,
        radius_meters=radius,
    )


class LocationServiceTests(unittest.TestCase):
    def test_distance_m_zero_for_same_point(self) -> None:
        value = distance_m(14.5547, 121.0244, 14.5547, 121.0244)
        self.assertAlmostEqual(value, 0.0, places=6)

    def test_distance_m_known_reference(self) -> None:
        # Approximate distance for 1 degree longitude on equator.
        value = distance_m(0.0, 0.0, 0.0, 1.0)
        self.assertAlmostEqual(value, 111_195, delta=300)

    def test_parse_coordinates(self) -> None:
        self.assertEqual(parse_coordinates("14.5547, 121.0244"), (14.5547, 121.0244))
        self.assertIsNone(parse_coordinates(None))
        self.assertIsNone(parse_coordinates("14.5547"))
        self.assertIsNone(parse_coordinates("north,east"))
        self.assertIsNone(parse_coordinates("nan,121.0"))

    def test_format_coordinates_uses_six_decimals(self) -> None:
        self.assertEqual(format_coordinates(14.5, 121.0244444), "14.500000, 121.024444")

    def test_no_gps_data(self) -> None:
        details = resolve_location_details(None, [_office(1, 14.5547, 121.0244)])

        self.assertEqual(details.name, NO_GPS_NAME)
        self.assertFalse(details.is_within_allowed_area)
        self.assertIsNone(details.coordinates)

    def test_no_offices_registered(self) -> None:
        details = resolve_location_details("14.5547,121.0244", [])

        self.assertEqual(details.name, NO_DIRECTORY_NAME)
        self.assertEqual(details.coordinates, "14.554700, 121.024400")
        self.assertFalse(details.is_within_allowed_area)

    def test_inside_nearest_office_radius(self) -> None:
        offices = [_office(1, 14.5547, 121.0244), _office(2, 14.6000, 121.1000)]

        details = resolve_location_details("14.5548,121.0245", offices)

        self.assertTrue(details.is_within_allowed_area)
        self.assertEqual(details.office_id, 1)
        self.assertEqual(details.name, "Office 1")
        self.assertEqual(details.address, "Makati")
        self.assertLess(details.distance_m, 100)

    def test_outside_every_office_radius(self) -> None:
        offices = [_office(1, 14.5547, 121.0244, radius=50)]

        details = resolve_location_details("14.5600,121.0244", offices)

        self.assertFalse(details.is_within_allowed_area)
        self.assertEqual(details.name, OUTSIDE_NAME)
        self.assertEqual(details.office_id, 1)
        self.assertGreater(details.distance_m, 500)


if __name__ == "__main__":
    unittest.main()
