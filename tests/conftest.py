"""
Pytest configuration and shared fixtures.
"""

import pytest

from match_types import Candidate
from tests.factories import make_candidate


@pytest.fixture
def mt07() -> Candidate:
    """The MT-07 used throughout the end-to-end scenarios."""
    return make_candidate()


@pytest.fixture
def catalog_records():
    """Catalog documents shaped like the MongoDB collection."""
    return [
        {
            'id': 'a1', 'model': 'MT-07', 'segment': 'NAKED', 'year': 2024,
            'stock': 5, 'test_drive_available': True, 'active': True,
            'price_cash': 189900.0, 'engine_cc': 689, 'color_options': ['Azul'],
        },
        {
            'id': 'b2', 'model': 'NMAX 155', 'segment': 'SCOOTER', 'year': 2023,
            'stock': 2, 'test_drive_available': False, 'active': True,
            'price_cash': 62900.0,
        },
    ]
