"""
Travel Proposal Pricing Engine
==============================
Core calculation logic for day-by-day travel proposals:
  - Service cost aggregation (sightseeing, transport, dining, accommodation)
  - Accommodation selection per package option (standard/optional/alternative)
  - Markup (flat percentage or amount-banded slabs)
  - Non-compounding discount composition
  - Country/service-type tax with optional TDS deduction
  - Adult/child price distribution
  - Orchestration into one PricingOption per package type

This is the SINGLE SOURCE OF TRUTH for all proposal price computation.
The Flask layer and any frontend MUST call this engine, never compute prices themselves.

Every calculation here is a pure function of its inputs: no I/O, no shared
mutable state. Calling the pipeline twice with identical inputs yields
identical Decimal outputs.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from enum import Enum
from typing import Dict, List, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')
UNBOUNDED = Decimal('Infinity')


# =====================================================
# EXCEPTIONS
# =====================================================

class PricingEngineError(Exception):
    """Base exception for pricing engine errors"""
    pass

class InvalidConfigurationError(PricingEngineError):
    pass


# =====================================================
# NUMERIC HELPERS
# =====================================================

def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Coerce any numeric-ish input to a finite Decimal.

    None, empty strings, booleans, garbage and non-finite values all
    collapse to `default` so they never leak NaN/Infinity into totals.
    """
    if value is None or value == '' or isinstance(value, bool):
        return default
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not result.is_finite():
        return default
    return result


def to_upper_bound(value: Any) -> Decimal:
    """Slab maxAmount: missing or infinite means an open-ended top tier."""
    if value is None or value == '':
        return UNBOUNDED
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return UNBOUNDED
    if result.is_nan():
        return UNBOUNDED
    return result


def money(value: Decimal) -> Decimal:
    # quantize needs room for every integer digit plus two decimals
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, ROUND_HALF_UP)


def safe_divide(numerator: Decimal, denominator: Any) -> Decimal:
    """Division where a zero (or missing) denominator yields 0, never Infinity."""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return ZERO
    return numerator / denominator


def _first_present(record: Dict, *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != '':
            return value
    return None


# =====================================================
# PACKAGE TYPES
# =====================================================

class PackageType(str, Enum):
    """The three accommodation/pricing bundles computed for every itinerary."""

    STANDARD = 'standard'
    OPTIONAL = 'optional'
    ALTERNATIVE = 'alternative'

    @property
    def option_number(self) -> int:
        return _OPTION_NUMBERS[self]

    @classmethod
    def parse(cls, value: Any) -> 'PackageType':
        """Accept an enum member, its name/value, or the numeric option tag 1/2/3."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            for member, number in _OPTION_NUMBERS.items():
                if number == value:
                    return member
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized.isdigit():
                return cls.parse(int(normalized))
            for member in cls:
                if member.value == normalized:
                    return member
        raise InvalidConfigurationError(f"Unknown package type: {value!r}")


_OPTION_NUMBERS = {
    PackageType.STANDARD: 1,
    PackageType.OPTIONAL: 2,
    PackageType.ALTERNATIVE: 3,
}

MARKUP_TYPES = ('percentage', 'slab')
DISCOUNT_TYPES = ('percentage', 'fixed')
DISTRIBUTION_METHODS = ('even', 'separate')
DISCOUNT_BASES = ('subtotal', 'base')
SLAB_APPLICATION_MODES = ('total', 'per-person')


# =====================================================
# TRAVELERS
# =====================================================

def _traveler_count(value: Any) -> int:
    """Whole-number count; booleans and fractional values are rejected, not truncated."""
    if isinstance(value, bool):
        raise InvalidConfigurationError("Traveler counts must be integers")
    if isinstance(value, (float, Decimal)):
        number = Decimal(str(value))
        if not number.is_finite() or number != number.to_integral_value():
            raise InvalidConfigurationError(f"Traveler counts must be whole numbers, got {value}")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidConfigurationError("Traveler counts must be integers")


def validate_travelers(adults: Any, children: Any) -> Tuple[int, int]:
    """Package pricing requires at least one adult and a non-negative child count."""
    adults = _traveler_count(adults)
    children = _traveler_count(0 if children is None else children)

    if adults < 1:
        raise InvalidConfigurationError("At least 1 adult required")
    if children < 0:
        raise InvalidConfigurationError("Children cannot be negative")
    return adults, children


# =====================================================
# ITINERARY VALIDATION
# =====================================================

def validate_itinerary(days: Any) -> Tuple[bool, List[str]]:
    """
    Advisory integrity check for an itinerary snapshot.

    Never blocks pricing; callers surface the errors as warnings.
    """
    errors = []

    if not isinstance(days, list):
        return False, ['Invalid data format: expected array of days']

    if not days:
        errors.append('No itinerary days found')

    for index, day in enumerate(days):
        if not isinstance(day, dict):
            errors.append(f"Day {index + 1}: Invalid day record")
            continue
        if _first_present(day, 'id', 'day') is None:
            errors.append(f"Day {index + 1}: Missing day identifier")
        if _first_present(day, 'city', 'title') is None:
            errors.append(f"Day {index + 1}: Missing location information")

    return not errors, errors


# =====================================================
# SERVICE COST AGGREGATOR
# =====================================================

class ServiceCostAggregator:
    """
    Sums sightseeing, transport, dining and accommodation costs from
    itinerary day records into per-category totals and per-person costs.
    """

    @staticmethod
    def line_item_cost(item: Dict, adults: int, children: int) -> Decimal:
        """
        Cost of one sightseeing activity or meal.

        Adult/child rates win when both are defined, then a per-head flat
        rate, then any precomputed finalCost/cost, else 0.
        """
        if not isinstance(item, dict):
            return ZERO

        adult_price = item.get('adultPrice')
        child_price = item.get('childPrice')
        if adult_price is not None and child_price is not None:
            return to_decimal(adult_price) * adults + to_decimal(child_price) * children

        flat_rate = item.get('flatRate')
        if flat_rate is not None:
            return to_decimal(flat_rate) * (adults + children)

        return to_decimal(_first_present(item, 'finalCost', 'cost'))

    @classmethod
    def _aggregate_items(cls, days: List[Dict], key: str, adults: int, children: int) -> Dict[str, Any]:
        total = ZERO
        adult_rate = ZERO
        child_rate = ZERO
        flat_rate = ZERO
        has_split_rates = False
        has_flat_rate = False

        for day in days:
            items = day.get(key) or []
            if not isinstance(items, list):
                continue
            for item in items:
                total += cls.line_item_cost(item, adults, children)
                if not isinstance(item, dict):
                    continue
                if item.get('adultPrice') is not None and item.get('childPrice') is not None:
                    adult_rate += to_decimal(item['adultPrice'])
                    child_rate += to_decimal(item['childPrice'])
                    has_split_rates = True
                elif item.get('flatRate') is not None:
                    flat_rate += to_decimal(item['flatRate'])
                    has_flat_rate = True

        return {
            'total': total,
            'adultPrice': adult_rate if has_split_rates else None,
            'childPrice': child_rate if has_split_rates else None,
            'flatRate': flat_rate if has_flat_rate else None,
        }

    @staticmethod
    def _transport_cost(transport: Any) -> Decimal:
        # A day may carry one transfer or a list of them
        if isinstance(transport, list):
            return sum((ServiceCostAggregator._transport_cost(t) for t in transport), ZERO)
        if not isinstance(transport, dict):
            return ZERO
        return to_decimal(_first_present(transport, 'finalCost', 'cost', 'totalCost'))

    @staticmethod
    def accommodation_total(accommodation: Dict) -> Decimal:
        """pricePerNight × nights × numberOfRooms; nights and rooms default to 1."""
        price_per_night = to_decimal(_first_present(accommodation, 'pricePerNight', 'pricePerNightPerRoom'))
        nights = to_decimal(_first_present(accommodation, 'nights', 'numberOfNights'), Decimal('1'))
        rooms = to_decimal(accommodation.get('numberOfRooms'), Decimal('1'))
        return price_per_night * nights * rooms

    @classmethod
    def calculate(cls, days: Optional[List[Dict]], adults: int, children: int) -> Dict[str, Any]:
        """
        Aggregate one ServiceCostBreakdown.

        Args:
            days: itinerary day records (activities, transport, meals, accommodations)
            adults: number of adult travelers
            children: number of child travelers

        Returns:
            Dict with sightseeing, transport, dining and accommodation blocks
        """
        days = [d for d in (days or []) if isinstance(d, dict)]
        total_pax = adults + children

        sightseeing = cls._aggregate_items(days, 'activities', adults, children)
        dining = cls._aggregate_items(days, 'meals', adults, children)

        transport_total = sum((cls._transport_cost(d.get('transport')) for d in days), ZERO)

        accommodation_total = ZERO
        total_rooms = 0
        total_nights = 0
        for day in days:
            accommodations = day.get('accommodations') or []
            if not isinstance(accommodations, list):
                continue
            # Every record counts here, whatever its option tag
            for accommodation in accommodations:
                if not isinstance(accommodation, dict):
                    continue
                accommodation_total += cls.accommodation_total(accommodation)
                total_rooms += int(to_decimal(accommodation.get('numberOfRooms'), Decimal('1')))
                total_nights += int(to_decimal(_first_present(accommodation, 'nights', 'numberOfNights'), Decimal('1')))

        return {
            'sightseeing': sightseeing,
            'transport': {
                'totalCost': transport_total,
                'perPersonCost': money(safe_divide(transport_total, total_pax)),
            },
            'dining': dining,
            'accommodation': {
                'totalCost': accommodation_total,
                'perPersonCost': money(safe_divide(accommodation_total, total_pax)),
                'totalRooms': total_rooms,
                'totalNights': total_nights,
            },
        }


# =====================================================
# ACCOMMODATION SELECTOR
# =====================================================

class AccommodationSelector:
    """
    Picks, per package option, the applicable hotel record for each day.
    A curated selection (hotels the user explicitly chose per option)
    replaces derivation from the raw itinerary entirely.
    """

    @staticmethod
    def _matches_option(record: Dict, package_type: PackageType) -> bool:
        for key in ('option', 'optionNumber'):
            value = record.get(key)
            if value is None:
                continue
            try:
                if PackageType.parse(value) is package_type:
                    return True
            except InvalidConfigurationError:
                continue
        return False

    @staticmethod
    def build_option(
        accommodation: Dict,
        package_type: PackageType,
        day_id: Any,
        city: str
    ) -> Dict[str, Any]:
        nights = to_decimal(_first_present(accommodation, 'nights', 'numberOfNights'), Decimal('1'))
        rooms = to_decimal(accommodation.get('numberOfRooms'), Decimal('1'))
        return {
            'id': f"{day_id}_{package_type.value}",
            'hotelName': _first_present(accommodation, 'hotelName', 'name') or 'Unnamed Hotel',
            'city': city or '',
            'roomType': accommodation.get('roomType') or 'Standard Room',
            'nights': int(nights),
            'pricePerNight': to_decimal(_first_present(accommodation, 'pricePerNight', 'pricePerNightPerRoom')),
            'numberOfRooms': int(rooms),
            'totalPrice': ServiceCostAggregator.accommodation_total(accommodation),
            'type': package_type.value,
            'dayId': day_id,
        }

    @classmethod
    def select(
        cls,
        days: Optional[List[Dict]],
        package_type: Any,
        selected_accommodations: Optional[List[Dict]] = None
    ) -> List[Dict[str, Any]]:
        """
        Resolve the AccommodationOption list for one package type.

        Args:
            days: itinerary day records
            package_type: PackageType (or its string/numeric form)
            selected_accommodations: optional curated hotel records tagged by `type`

        Returns:
            One accommodation option per day that has a hotel
        """
        package_type = PackageType.parse(package_type)

        if selected_accommodations:
            curated = [
                record for record in selected_accommodations
                if isinstance(record, dict)
                and (cls._matches_option(record, package_type)
                     or str(record.get('type', '')).lower() == package_type.value)
            ]
            return [
                cls.build_option(
                    record,
                    package_type,
                    _first_present(record, 'dayId', 'day'),
                    record.get('city') or '',
                )
                for record in curated
            ]

        options = []
        for day in days or []:
            if not isinstance(day, dict):
                continue
            accommodations = [a for a in (day.get('accommodations') or []) if isinstance(a, dict)]
            if not accommodations:
                continue

            accommodation = next(
                (a for a in accommodations if cls._matches_option(a, package_type)),
                accommodations[0]
            )
            day_id = _first_present(day, 'id', 'day')
            city = day.get('city') or accommodation.get('city') or day.get('title') or ''
            options.append(cls.build_option(accommodation, package_type, day_id, city))

        return options


# =====================================================
# MARKUP CALCULATOR
# =====================================================

def resolve_markup_settings(
    proposal_settings: Optional[Dict[str, Any]],
    global_settings: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """Proposal settings unless they are absent or inherit the global defaults."""
    if not proposal_settings or proposal_settings.get('inheritFromGlobal'):
        return dict(global_settings or {})
    return dict(proposal_settings)


class MarkupCalculator:
    """
    Applies either a flat percentage or an amount-banded slab rate.

    Slab lookup is stable: slabs are sorted by minAmount ascending (ties keep
    their declaration order) and the first inclusive match wins, so
    overlapping slabs resolve to the lowest-minAmount match. No match means
    zero markup.
    """

    @staticmethod
    def sort_slabs(slabs: Optional[List[Dict]]) -> List[Dict]:
        return sorted(
            (s for s in (slabs or []) if isinstance(s, dict)),
            key=lambda s: to_decimal(s.get('minAmount'))
        )

    @classmethod
    def find_slab(cls, amount: Any, slabs: Optional[List[Dict]]) -> Optional[Dict]:
        amount = to_decimal(amount)
        for slab in cls.sort_slabs(slabs):
            if not slab.get('isActive', True):
                continue
            if to_decimal(slab.get('minAmount')) <= amount <= to_upper_bound(slab.get('maxAmount')):
                return slab
        return None

    @staticmethod
    def _markup_type(settings: Dict[str, Any]) -> str:
        markup_type = settings.get('type')
        if markup_type is None:
            markup_type = 'slab' if settings.get('useSlabPricing') else 'percentage'
        markup_type = str(markup_type).strip().lower()
        if markup_type not in MARKUP_TYPES:
            raise InvalidConfigurationError(f"Unknown markup type: {markup_type}")
        return markup_type

    @classmethod
    def calculate_detail(
        cls,
        base_amount: Any,
        settings: Optional[Dict[str, Any]],
        pax_count: int = 1
    ) -> Dict[str, Any]:
        """
        Markup with the rule that produced it.

        Returns:
            Dict with markup, type, rate and the matched slab (or None)
        """
        base_amount = to_decimal(base_amount)
        settings = settings or {}
        markup_type = cls._markup_type(settings)

        if markup_type == 'percentage':
            rate = to_decimal(_first_present(settings, 'percentage', 'defaultMarkupPercentage'))
            return {
                'markup': money(base_amount * rate / HUNDRED),
                'type': 'percentage',
                'rate': rate,
                'slab': None,
            }

        mode = str(settings.get('slabApplicationMode') or 'total').lower()
        if mode not in SLAB_APPLICATION_MODES:
            raise InvalidConfigurationError(f"Unknown slab application mode: {mode}")

        comparison_amount = base_amount
        if mode == 'per-person':
            comparison_amount = safe_divide(base_amount, pax_count)

        slab = cls.find_slab(comparison_amount, _first_present(settings, 'slabs', 'markupSlabs'))
        if slab is None:
            logger.info(f"No markup slab matches amount {comparison_amount}; markup is 0")
            return {'markup': ZERO, 'type': 'slab', 'rate': ZERO, 'slab': None}

        rate = to_decimal(_first_present(slab, 'percentage', 'markupValue', 'value'))
        if str(slab.get('markupType') or 'percentage').lower() == 'fixed':
            markup = money(rate * max(pax_count, 0))
        else:
            markup = money(base_amount * rate / HUNDRED)

        logger.info(
            f"Markup slab matched: {slab.get('minAmount')}-{slab.get('maxAmount')} "
            f"@ {rate} ({slab.get('markupType') or 'percentage'}) → {markup}"
        )
        return {'markup': markup, 'type': 'slab', 'rate': rate, 'slab': slab}

    @classmethod
    def calculate(cls, base_amount: Any, settings: Optional[Dict[str, Any]], pax_count: int = 1) -> Decimal:
        return cls.calculate_detail(base_amount, settings, pax_count)['markup']


# =====================================================
# DISCOUNT COMPOSER
# =====================================================

class DiscountComposer:
    """
    Applies active discounts independently against one base amount.

    Discounts never compound: each is computed against the same base and the
    amounts are summed. The result is not clamped at zero.
    """

    @staticmethod
    def discount_amount(discount: Dict, base_amount: Decimal) -> Decimal:
        discount_type = str(discount.get('type') or 'percentage').lower()
        if discount_type not in DISCOUNT_TYPES:
            raise InvalidConfigurationError(f"Unknown discount type: {discount_type}")

        value = to_decimal(discount.get('value'))
        if discount_type == 'percentage':
            return money(base_amount * value / HUNDRED)
        return money(value)

    @classmethod
    def compose(cls, discounts: Optional[List[Dict]], base_amount: Any) -> Dict[str, Any]:
        base_amount = to_decimal(base_amount)
        lines = []
        total = ZERO

        for discount in discounts or []:
            if not isinstance(discount, dict) or not discount.get('isActive'):
                continue
            amount = cls.discount_amount(discount, base_amount)
            total += amount
            lines.append({
                'id': discount.get('id'),
                'description': discount.get('description', ''),
                'category': discount.get('category', 'custom'),
                'type': str(discount.get('type') or 'percentage').lower(),
                'value': to_decimal(discount.get('value')),
                'amount': amount,
            })

        after_discounts = base_amount - total
        if after_discounts < 0:
            logger.warning(f"Discounts {total} exceed base {base_amount}; total is negative")

        return {
            'baseAmount': base_amount,
            'discounts': lines,
            'totalDiscountAmount': total,
            'afterDiscounts': after_discounts,
        }


# =====================================================
# TAX CALCULATOR
# =====================================================

class TaxCalculator:
    """
    Country/service-type tax, inclusive or exclusive, plus optional TDS.

    A missing, inactive or malformed country configuration degrades to zero
    tax. This calculator never raises.
    """

    @staticmethod
    def no_tax(amount: Decimal, is_inclusive: bool = False) -> Dict[str, Any]:
        return {
            'baseAmount': amount,
            'taxAmount': ZERO,
            'tdsAmount': ZERO,
            'totalAmount': amount,
            'taxType': 'None',
            'taxRate': ZERO,
            'isInclusive': bool(is_inclusive),
        }

    @staticmethod
    def find_config(country_code: Any, tax_configs: Optional[Dict[str, Dict]]) -> Optional[Dict]:
        if not country_code or not isinstance(tax_configs, dict):
            return None
        config = tax_configs.get(str(country_code).strip().upper())
        if not isinstance(config, dict) or not config.get('isActive', True):
            return None
        return config

    @staticmethod
    def rate_for(config: Dict, service_type: Any) -> Decimal:
        rates = config.get('rates')
        if not isinstance(rates, dict):
            return ZERO
        service_type = str(service_type or 'all').strip().lower()
        if rates.get(service_type) is not None:
            rate = to_decimal(rates[service_type])
        else:
            rate = to_decimal(rates.get('all'))
        if rate < 0:
            logger.warning(f"Negative tax rate {rate} for {service_type!r} ignored; using 0")
            return ZERO
        return rate

    @staticmethod
    def tds_for(config: Dict, amount: Decimal) -> Decimal:
        tds = config.get('tds')
        if not isinstance(tds, dict) or not tds.get('isApplicable', True):
            return ZERO
        threshold = to_decimal(tds.get('threshold'))
        if amount <= threshold:
            return ZERO
        return money(amount * to_decimal(tds.get('rate')) / HUNDRED)

    @staticmethod
    def _apply_rate(amount: Decimal, rate: Decimal, is_inclusive: bool) -> Tuple[Decimal, Decimal]:
        """Returns (taxable base, tax amount)."""
        if is_inclusive:
            base = money(amount / (1 + rate / HUNDRED))
            return base, amount - base
        return amount, money(amount * rate / HUNDRED)

    @classmethod
    def calculate(
        cls,
        amount: Any,
        country_code: Any,
        service_type: Any = 'all',
        is_inclusive: bool = False,
        tax_configs: Optional[Dict[str, Dict]] = None
    ) -> Dict[str, Any]:
        """
        Compute one TaxResult.

        Args:
            amount: post-discount amount
            country_code: ISO country code used to look up the tax table
            service_type: service key in the table (falls back to 'all')
            is_inclusive: whether `amount` already contains the tax
            tax_configs: country code → tax configuration

        Returns:
            Dict with baseAmount, taxAmount, tdsAmount, totalAmount,
            taxType, taxRate, isInclusive
        """
        amount = to_decimal(amount)
        config = cls.find_config(country_code, tax_configs)
        if config is None:
            logger.info(f"No active tax configuration for {country_code!r}; tax skipped")
            return cls.no_tax(amount, is_inclusive)

        rate = cls.rate_for(config, service_type)
        base, tax_amount = cls._apply_rate(amount, rate, is_inclusive)
        total = amount if is_inclusive else amount + tax_amount

        tds_amount = cls.tds_for(config, amount)
        total -= tds_amount

        return {
            'baseAmount': base,
            'taxAmount': tax_amount,
            'tdsAmount': tds_amount,
            'totalAmount': total,
            'taxType': config.get('taxType') or 'Tax',
            'taxRate': rate,
            'isInclusive': bool(is_inclusive),
        }

    @classmethod
    def calculate_service_breakdown(
        cls,
        services: Optional[List[Dict]],
        country_code: Any,
        is_inclusive: bool = False,
        tax_configs: Optional[Dict[str, Dict]] = None
    ) -> Dict[str, Any]:
        """
        Tax each service line at its own rate; TDS is evaluated once on the sum.

        services: [{'service': 'hotel', 'amount': 12000}, ...]
        """
        config = cls.find_config(country_code, tax_configs)
        lines = []
        amount_total = ZERO
        base_total = ZERO
        tax_total = ZERO

        for service in services or []:
            if not isinstance(service, dict):
                continue
            name = str(service.get('service') or 'all')
            amount = to_decimal(service.get('amount'))
            rate = cls.rate_for(config, name.lower()) if config else ZERO
            base, tax_amount = cls._apply_rate(amount, rate, is_inclusive)

            amount_total += amount
            base_total += base
            tax_total += tax_amount
            lines.append({
                'service': name,
                'amount': amount,
                'taxRate': rate,
                'taxAmount': tax_amount,
            })

        tds_amount = cls.tds_for(config, amount_total) if config else ZERO
        total = amount_total if is_inclusive else amount_total + tax_total

        return {
            'baseAmount': base_total,
            'taxAmount': tax_total,
            'tdsAmount': tds_amount,
            'totalAmount': total - tds_amount,
            'taxType': (config.get('taxType') or 'Tax') if config else 'None',
            'isInclusive': bool(is_inclusive),
            'services': lines,
        }


# =====================================================
# DISTRIBUTION CALCULATOR
# =====================================================

class DistributionCalculator:
    """
    Splits a final total into adult and child shares.

    even:     every traveler pays finalTotal / (adults + children)
    separate: a child pays childRatio × the adult rate, with the adult rate
              chosen so the shares still add up to finalTotal

    The child total is always the remainder finalTotal - adultTotal, so the
    two totals add up to finalTotal exactly.
    """

    @staticmethod
    def calculate(
        final_total: Any,
        adults: int,
        children: int,
        method: str = 'even',
        child_ratio: Any = 1
    ) -> Dict[str, Any]:
        final_total = to_decimal(final_total)
        method = str(method or 'even').strip().lower()
        if method not in DISTRIBUTION_METHODS:
            raise InvalidConfigurationError(f"Unknown distribution method: {method}")

        adults = max(int(adults or 0), 0)
        children = max(int(children or 0), 0)
        total_pax = adults + children

        if method == 'even':
            adult_price = safe_divide(final_total, total_pax)
            child_price = adult_price if children else ZERO
        else:
            ratio = to_decimal(child_ratio, Decimal('1'))
            if ratio < 0:
                ratio = Decimal('1')
            adult_price = safe_divide(final_total, adults + ratio * children)
            child_price = adult_price * ratio if children else ZERO

        if children == 0:
            adult_total = final_total if adults else ZERO
        else:
            adult_total = money(adult_price * adults)
        child_total = final_total - adult_total if total_pax else ZERO

        return {
            'method': method,
            'perPerson': money(safe_divide(final_total, total_pax)),
            'adultPrice': money(adult_price),
            'childPrice': money(child_price),
            'adultTotal': adult_total,
            'childTotal': child_total,
            'totalPrice': final_total,
        }


# =====================================================
# PRICING SNAPSHOT
# =====================================================

class PricingSnapshot:
    """
    The three computed PricingOptions plus the selected-option pointer.
    Switching the selection never recomputes anything.
    """

    def __init__(self, options: List[Dict[str, Any]], selected_option: Any = PackageType.STANDARD):
        self.options = options
        self.selected_option = PackageType.parse(selected_option)

    def select(self, package_type: Any) -> Optional[Dict[str, Any]]:
        self.selected_option = PackageType.parse(package_type)
        return self.selected

    @property
    def selected(self) -> Optional[Dict[str, Any]]:
        return self.option(self.selected_option)

    def option(self, package_type: Any) -> Optional[Dict[str, Any]]:
        package_type = PackageType.parse(package_type)
        return next((o for o in self.options if o['type'] == package_type.value), None)

    @property
    def is_empty(self) -> bool:
        return not self.options

    def to_dict(self) -> Dict[str, Any]:
        return {
            'options': self.options,
            'selectedOption': self.selected_option.value,
            'selected': self.selected,
        }


# =====================================================
# MAIN PRICING ENGINE
# =====================================================

class ProposalPricingEngine:
    """
    Sequences accommodation selection, cost aggregation, markup, discounts,
    tax and distribution into one PricingOption per package type.

    Global defaults (markup settings, tax tables, distribution method,
    discount base) are passed in explicitly; per-proposal overrides arrive
    with each payload and are resolved once per calculation pass.
    """

    def __init__(
        self,
        global_settings: Optional[Dict[str, Any]] = None,
        tax_configs: Optional[Dict[str, Dict]] = None,
        distribution_method: str = 'even',
        discount_base: str = 'subtotal'
    ):
        self.global_settings = dict(global_settings or {'type': 'percentage', 'percentage': 0})
        self.tax_configs = dict(tax_configs or {})
        self.distribution_method = distribution_method
        self.discount_base = discount_base

    # -------------------------------------------------
    # MAIN ENTRY POINT
    # -------------------------------------------------

    def calculate_proposal_price(self, payload: Dict[str, Any]) -> PricingSnapshot:
        """
        Main pricing calculation.

        Payload keys:
            days, adults, children                       (required: adults)
            markupSettings, globalSettings               (optional overrides)
            discounts, tax, selectedAccommodations       (optional)
            distributionMethod, childRatio, discountBase (optional)
            selectedOption                               (default 'standard')

        An absent or empty itinerary short-circuits to a snapshot with no options.
        """
        adults, children = validate_travelers(payload.get('adults'), payload.get('children', 0))
        selected_option = payload.get('selectedOption') or PackageType.STANDARD

        days = payload.get('days')
        if not days or not isinstance(days, list):
            logger.info("No itinerary data; pricing short-circuited with no options")
            return PricingSnapshot([], selected_option)

        settings = resolve_markup_settings(
            payload.get('markupSettings'),
            payload.get('globalSettings') or self.global_settings
        )

        method = payload.get('distributionMethod') or self.distribution_method
        discount_base = str(payload.get('discountBase') or self.discount_base).lower()
        if discount_base not in DISCOUNT_BASES:
            raise InvalidConfigurationError(f"Unknown discount base: {discount_base}")

        # Same for every package type; compute once per pass
        service_costs = ServiceCostAggregator.calculate(days, adults, children)

        options = [
            self._price_option(
                package_type, payload, days, service_costs, settings,
                adults, children, method, discount_base
            )
            for package_type in PackageType
        ]
        return PricingSnapshot(options, selected_option)

    def _price_option(
        self, package_type, payload, days, service_costs, settings,
        adults, children, method, discount_base
    ) -> Dict[str, Any]:
        accommodations = AccommodationSelector.select(
            days, package_type, payload.get('selectedAccommodations')
        )

        accommodation_total = sum((a['totalPrice'] for a in accommodations), ZERO)
        base_total = (
            accommodation_total +
            service_costs['sightseeing']['total'] +
            service_costs['transport']['totalCost'] +
            service_costs['dining']['total']
        )

        markup_detail = MarkupCalculator.calculate_detail(base_total, settings, adults + children)
        markup = markup_detail['markup']
        subtotal = base_total + markup

        discount_against = subtotal if discount_base == 'subtotal' else base_total
        discounts = DiscountComposer.compose(payload.get('discounts'), discount_against)
        after_discounts = subtotal - discounts['totalDiscountAmount']
        # discounts are always taken off the subtotal, whichever base sized them
        discounts['afterDiscounts'] = after_discounts

        tax = self._calculate_tax(after_discounts, payload.get('tax'))
        final_total = tax['totalAmount']

        distribution = DistributionCalculator.calculate(
            final_total, adults, children, method, payload.get('childRatio', 1)
        )

        logger.info(
            f"Option {package_type.value}: base={base_total}, markup={markup}, "
            f"discounts={discounts['totalDiscountAmount']}, tax={tax['taxAmount']}, "
            f"tds={tax['tdsAmount']}, final={final_total}"
        )

        return {
            'type': package_type.value,
            'accommodations': accommodations,
            'serviceCosts': service_costs,
            'baseTotal': base_total,
            'markup': markup,
            'markupDetail': markup_detail,
            'subtotal': subtotal,
            'discounts': discounts,
            'afterDiscounts': after_discounts,
            'tax': tax,
            'finalTotal': final_total,
            'distribution': distribution,
        }

    def _calculate_tax(self, amount: Decimal, tax_block: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not tax_block or not tax_block.get('enabled', True):
            return TaxCalculator.no_tax(amount)
        return TaxCalculator.calculate(
            amount,
            tax_block.get('countryCode'),
            tax_block.get('serviceType', 'all'),
            bool(tax_block.get('isInclusive', False)),
            tax_block.get('taxConfigs') or self.tax_configs,
        )
