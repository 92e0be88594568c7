"""Pytest configuration and fixtures for pricing tests."""

import pytest


@pytest.fixture
def sample_days():
    """Two-day itinerary whose standard option costs 12,000 for 2 adults + 1 child.

    Standard:    Riverside Inn 3000 × 2 nights = 6000 (day 2 has no hotel)
    Optional:    Palace Suites 4000 × 2 nights = 8000
    Alternative: no option-3 hotel, falls back to the first record = 6000
    Services:    sightseeing 2500 + transport 2000 + dining 1500 = 6000
    """
    return [
        {
            'id': 'day-1',
            'city': 'Bangkok',
            'activities': [
                # 1000×2 adults + 500×1 child
                {'name': 'Grand Palace', 'adultPrice': 1000, 'childPrice': 500},
            ],
            'transport': {'name': 'Airport transfer', 'finalCost': 2000},
            'meals': [
                # 500 per head × 3 travelers
                {'name': 'Dinner cruise', 'flatRate': 500},
            ],
            'accommodations': [
                {'name': 'Riverside Inn', 'option': 1, 'pricePerNight': 3000, 'nights': 2, 'numberOfRooms': 1},
                {'name': 'Palace Suites', 'option': 2, 'pricePerNight': 4000, 'nights': 2, 'numberOfRooms': 1},
            ],
        },
        {
            'id': 'day-2',
            'city': 'Bangkok',
            'activities': [],
            'meals': [],
        },
    ]


@pytest.fixture
def reference_slabs():
    return [
        {'minAmount': 0, 'maxAmount': 5000, 'percentage': 10},
        {'minAmount': 5001, 'maxAmount': 10000, 'percentage': 8},
        {'minAmount': 10001, 'maxAmount': float('inf'), 'percentage': 7},
    ]


@pytest.fixture
def tax_configs():
    return {
        'IN': {
            'countryCode': 'IN',
            'taxType': 'GST',
            'isActive': True,
            'rates': {'hotel': 12, 'transport': 5, 'all': 10},
            'tds': {'isApplicable': True, 'rate': 2, 'threshold': 50000},
        },
        'TH': {
            'countryCode': 'TH',
            'taxType': 'VAT',
            'isActive': True,
            'rates': {'all': 10},
        },
        'XX': {
            'countryCode': 'XX',
            'taxType': 'VAT',
            'isActive': False,
            'rates': {'all': 20},
        },
    }
