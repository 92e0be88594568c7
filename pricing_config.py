"""
Pricing configuration: environment-driven defaults and reference data.

Values come from the process environment (optionally a local .env file).
The reference tax tables stand in for the country tax configuration that an
external settings service would normally supply.
"""

import os
import logging
from copy import deepcopy

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


PRICING_CONFIG = {
    'default_markup_percent': float(os.environ.get('PRICING_DEFAULT_MARKUP_PERCENT', 15)),
    'use_slab_markup': _env_bool('PRICING_USE_SLAB_MARKUP'),
    'distribution_method': os.environ.get('PRICING_DISTRIBUTION_METHOD', 'even'),
    'discount_base': os.environ.get('PRICING_DISCOUNT_BASE', 'subtotal'),
    'default_country': os.environ.get('PRICING_DEFAULT_COUNTRY', 'IN'),
}

API_CONFIG = {
    'host': os.environ.get('PRICING_API_HOST', '0.0.0.0'),
    'port': int(os.environ.get('PRICING_API_PORT', 5001)),
    'debug': _env_bool('PRICING_API_DEBUG'),
}


# =====================================================
# MARKUP DEFAULTS
# =====================================================

DEFAULT_MARKUP_SLABS = [
    {'minAmount': 0, 'maxAmount': 5000, 'percentage': 10},
    {'minAmount': 5001, 'maxAmount': 10000, 'percentage': 8},
    {'minAmount': 10001, 'maxAmount': None, 'percentage': 7},
]


def get_global_markup_settings(config=None):
    """Global markup defaults that proposals inherit unless they override them."""
    config = config or PRICING_CONFIG
    return {
        'type': 'slab' if config['use_slab_markup'] else 'percentage',
        'percentage': config['default_markup_percent'],
        'slabs': deepcopy(DEFAULT_MARKUP_SLABS),
        'slabApplicationMode': 'total',
    }


# =====================================================
# TAX REFERENCE TABLES
# =====================================================
# rates: service type → percent, 'all' is the fallback
# tds:   withheld above threshold (India only)

DEFAULT_TAX_CONFIGS = {
    'IN': {
        'countryCode': 'IN',
        'taxType': 'GST',
        'isActive': True,
        'rates': {
            'transport': 5,
            'hotel': 12,
            'sightseeing': 18,
            'restaurant': 18,
            'activity': 18,
            'all': 12,
        },
        'tds': {
            'isApplicable': True,
            'rate': 2,
            'threshold': 50000,
        },
    },
    'TH': {
        'countryCode': 'TH',
        'taxType': 'VAT',
        'isActive': True,
        'rates': {'all': 7},
    },
    'AE': {
        'countryCode': 'AE',
        'taxType': 'VAT',
        'isActive': True,
        'rates': {'all': 5},
    },
    'SG': {
        'countryCode': 'SG',
        'taxType': 'GST',
        'isActive': True,
        'rates': {'all': 9},
    },
}


def get_tax_configs():
    return deepcopy(DEFAULT_TAX_CONFIGS)
