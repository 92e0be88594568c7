"""
Travel Proposal Pricing - Flask Backend
=======================================
Thin JSON host around pricing_engine.py.

No pricing arithmetic happens in this file. Request blocks are sanitised here
and forwarded to the engine; every number in a response comes from the engine.

Routes:
- POST /calculate              : all three package options + selected option
- POST /api/markup/preview     : markup for a single base amount
- POST /api/discounts/preview  : discount composition for a base amount
- POST /api/tax/preview        : tax for an amount or per-service breakdown
- POST /api/distribution       : adult/child split of a final total
- GET  /api/settings           : global defaults and configured tax countries
- GET  /health                 : liveness
"""

from flask import Flask, request, jsonify
from flask_cors import CORS
from decimal import Decimal
from enum import Enum
import json
import logging

from pricing_engine import (
    ProposalPricingEngine,
    MarkupCalculator,
    DiscountComposer,
    TaxCalculator,
    DistributionCalculator,
    PricingEngineError,
    InvalidConfigurationError,
    resolve_markup_settings,
    validate_itinerary,
    validate_travelers,
)
from pricing_config import (
    PRICING_CONFIG,
    API_CONFIG,
    get_global_markup_settings,
    get_tax_configs,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


def json_ready(obj):
    """Recursively convert engine output (Decimal, Enum) into JSON-native values."""
    if isinstance(obj, Decimal):
        return float(obj) if obj.is_finite() else None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: json_ready(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [json_ready(v) for v in obj]
    return obj


def build_engine():
    return ProposalPricingEngine(
        global_settings=get_global_markup_settings(),
        tax_configs=get_tax_configs(),
        distribution_method=PRICING_CONFIG['distribution_method'],
        discount_base=PRICING_CONFIG['discount_base'],
    )


def _error_response(message, status):
    return jsonify({
        'success': False,
        'error': message,
        'options': [],
        'selectedOption': None,
        'selected': None,
        'baseTotal': 0,
        'markup': 0,
        'finalTotal': 0,
    }), status


# =====================================================
# PAYLOAD HELPERS
# =====================================================
# Optional blocks are sanitised server-side before reaching the engine.
# Structural problems the engine must judge (unknown discount types,
# bad traveler counts) are passed through and reported as 400s.
# =====================================================

def _extract_tax_block(payload: dict) -> dict | None:
    """
    Extract the optional tax block from the calculate payload.
    Returns a sanitised dict if present, else None (no tax step).
    """
    tax_raw = payload.get('tax')
    if not tax_raw or not isinstance(tax_raw, dict):
        return None

    country_code = str(tax_raw.get('countryCode') or PRICING_CONFIG['default_country']).strip().upper()[:3]
    service_type = str(tax_raw.get('serviceType') or 'all').strip().lower()[:30]

    return {
        'enabled': bool(tax_raw.get('enabled', True)),
        'countryCode': country_code,
        'serviceType': service_type,
        'isInclusive': bool(tax_raw.get('isInclusive', False)),
    }


def _extract_discounts(payload: dict) -> list:
    discounts_raw = payload.get('discounts')
    if not isinstance(discounts_raw, list):
        return []

    discounts = []
    for raw in discounts_raw:
        if not isinstance(raw, dict):
            continue
        try:
            value = float(raw.get('value', 0))
        except (ValueError, TypeError):
            value = 0.0
        discounts.append({
            'id': str(raw.get('id', '')).strip()[:100],
            'type': str(raw.get('type', 'percentage')).strip().lower(),
            'value': value,
            'category': str(raw.get('category', 'custom')).strip()[:50],
            'description': str(raw.get('description', '')).strip()[:200],
            'isActive': bool(raw.get('isActive', False)),
        })
    return discounts


# =====================================================
# CALCULATION ENDPOINT
# =====================================================

@app.route('/calculate', methods=['POST'])
def calculate():
    """
    Price all three package options for an itinerary.

    An absent or empty itinerary is not an error: the response carries an
    empty option list, which consumers treat as "insufficient data".
    """
    try:
        payload = request.get_json(silent=True)

        if not payload or not isinstance(payload, dict):
            logger.error("Empty payload received")
            return _error_response('No data provided', 400)

        if payload.get('adults') in (None, ''):
            logger.error("Missing required field: adults")
            return _error_response('Missing required fields: adults', 400)

        days = payload.get('days')
        logger.info(
            f"Calculate request: days={len(days) if isinstance(days, list) else 0}, "
            f"adults={payload.get('adults')}, children={payload.get('children', 0)}"
        )

        payload['tax'] = _extract_tax_block(payload)
        payload['discounts'] = _extract_discounts(payload)
        if payload['tax']:
            logger.info(
                f"Tax block detected: country={payload['tax']['countryCode']}, "
                f"service={payload['tax']['serviceType']}, inclusive={payload['tax']['isInclusive']}"
            )

        _, warnings = validate_itinerary(days or [])

        try:
            snapshot = build_engine().calculate_proposal_price(payload)
        except InvalidConfigurationError as e:
            logger.error(f"Invalid configuration: {e}", exc_info=True)
            return _error_response(f'Invalid configuration: {str(e)}', 400)

        result = snapshot.to_dict()
        result['success'] = True
        result['warnings'] = warnings

        selected = snapshot.selected
        logger.info(
            f"Calculation successful: options={len(snapshot.options)}, "
            f"selected={snapshot.selected_option.value}, "
            f"finalTotal={selected['finalTotal'] if selected else 0}"
        )
        return jsonify(json_ready(result))

    except PricingEngineError as e:
        logger.error(f"Pricing engine error: {e}", exc_info=True)
        return _error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Unexpected calculation error: {e}", exc_info=True)
        return _error_response(f'Server error: {str(e)}', 500)


# =====================================================
# COMPONENT PREVIEW ENDPOINTS
# =====================================================

@app.route('/api/markup/preview', methods=['POST'])
def markup_preview():
    """Markup for one base amount under proposal or inherited global settings."""
    data = request.get_json(silent=True) or {}
    try:
        settings = resolve_markup_settings(data.get('markupSettings'), get_global_markup_settings())
        pax = int(data.get('pax', 1))
        result = MarkupCalculator.calculate_detail(data.get('baseAmount', 0), settings, pax)
        return jsonify(json_ready({'success': True, **result}))
    except (PricingEngineError, ValueError, TypeError) as e:
        logger.error(f"Markup preview error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': str(e)}), 400


@app.route('/api/discounts/preview', methods=['POST'])
def discounts_preview():
    data = request.get_json(silent=True) or {}
    try:
        result = DiscountComposer.compose(_extract_discounts(data), data.get('baseAmount', 0))
        return jsonify(json_ready({'success': True, **result}))
    except PricingEngineError as e:
        logger.error(f"Discount preview error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': str(e)}), 400


@app.route('/api/tax/preview', methods=['POST'])
def tax_preview():
    """
    Tax preview. With a `services` list each line is taxed at its own rate;
    otherwise `amount` is taxed at the `serviceType` rate.
    """
    data = request.get_json(silent=True) or {}
    country_code = str(data.get('countryCode') or PRICING_CONFIG['default_country']).strip().upper()
    is_inclusive = bool(data.get('isInclusive', False))

    if isinstance(data.get('services'), list):
        result = TaxCalculator.calculate_service_breakdown(
            data['services'], country_code, is_inclusive, get_tax_configs()
        )
    else:
        result = TaxCalculator.calculate(
            data.get('amount', 0),
            country_code,
            data.get('serviceType', 'all'),
            is_inclusive,
            get_tax_configs(),
        )
    return jsonify(json_ready({'success': True, **result}))


@app.route('/api/distribution', methods=['POST'])
def distribution():
    data = request.get_json(silent=True) or {}
    try:
        adults, children = validate_travelers(data.get('adults', 1), data.get('children', 0))
        result = DistributionCalculator.calculate(
            data.get('finalTotal', 0),
            adults,
            children,
            data.get('method') or PRICING_CONFIG['distribution_method'],
            data.get('childRatio', 1),
        )
        return jsonify(json_ready({'success': True, **result}))
    except PricingEngineError as e:
        logger.error(f"Distribution error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': str(e)}), 400


@app.route('/api/settings', methods=['GET'])
def settings():
    tax_configs = get_tax_configs()
    return jsonify(json_ready({
        'markupSettings': get_global_markup_settings(),
        'distributionMethod': PRICING_CONFIG['distribution_method'],
        'discountBase': PRICING_CONFIG['discount_base'],
        'defaultCountry': PRICING_CONFIG['default_country'],
        'taxCountries': sorted(tax_configs),
        'taxConfigs': tax_configs,
    }))


@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok'})


# =====================================================
# ENTRY POINT
# =====================================================

if __name__ == '__main__':
    logger.info(f"Starting pricing API with config: {json.dumps(PRICING_CONFIG)}")
    app.run(debug=API_CONFIG['debug'], host=API_CONFIG['host'], port=API_CONFIG['port'])
