"""Integration tests for the proposal pricing pipeline."""

from decimal import Decimal

import pytest

from pricing_engine import (
    InvalidConfigurationError,
    PackageType,
    PricingSnapshot,
    ProposalPricingEngine,
)


@pytest.fixture
def engine(tax_configs):
    return ProposalPricingEngine(
        global_settings={'type': 'percentage', 'percentage': 15},
        tax_configs=tax_configs,
        distribution_method='separate',
    )


def test_end_to_end_standard_option(engine, sample_days):
    """Base 12,000 + 15% markup = 13,800 with no discounts or tax, split per capita."""
    snapshot = engine.calculate_proposal_price({'days': sample_days, 'adults': 2, 'children': 1})
    standard = snapshot.selected

    assert standard['type'] == 'standard'
    assert standard['baseTotal'] == Decimal('12000')
    assert standard['markup'] == Decimal('1800.00')
    assert standard['finalTotal'] == Decimal('13800.00')

    distribution = standard['distribution']
    assert distribution['method'] == 'separate'
    assert distribution['adultPrice'] == Decimal('4600.00')
    assert distribution['childPrice'] == Decimal('4600.00')
    assert distribution['adultTotal'] + distribution['childTotal'] == Decimal('13800.00')


def test_all_three_options_are_computed(engine, sample_days):
    snapshot = engine.calculate_proposal_price({'days': sample_days, 'adults': 2, 'children': 1})
    totals = {o['type']: o['baseTotal'] for o in snapshot.options}

    assert [o['type'] for o in snapshot.options] == ['standard', 'optional', 'alternative']
    assert totals == {
        'standard': Decimal('12000'),
        'optional': Decimal('14000'),
        'alternative': Decimal('12000'),
    }


def test_switching_selection_does_not_recompute(engine, sample_days):
    snapshot = engine.calculate_proposal_price({'days': sample_days, 'adults': 2, 'children': 1})
    options_before = snapshot.options

    optional = snapshot.select('optional')

    assert snapshot.options is options_before
    assert snapshot.selected_option is PackageType.OPTIONAL
    assert optional['finalTotal'] == Decimal('16100.00')
    assert snapshot.to_dict()['selectedOption'] == 'optional'


def test_missing_itinerary_short_circuits(engine):
    """No days means no options and no selected option, not an error."""
    for days in (None, []):
        snapshot = engine.calculate_proposal_price({'days': days, 'adults': 2})

        assert snapshot.is_empty
        assert snapshot.selected is None
        assert snapshot.to_dict()['options'] == []


def test_discounts_apply_to_post_markup_subtotal(engine, sample_days):
    payload = {
        'days': sample_days,
        'adults': 2,
        'children': 1,
        'discounts': [
            {'id': 'early', 'type': 'percentage', 'value': 10, 'isActive': True},
            {'id': 'promo', 'type': 'fixed', 'value': 300, 'isActive': True},
        ],
    }
    standard = engine.calculate_proposal_price(payload).selected

    assert standard['subtotal'] == Decimal('13800.00')
    assert standard['discounts']['totalDiscountAmount'] == Decimal('1680.00')
    assert standard['afterDiscounts'] == Decimal('12120.00')
    assert standard['finalTotal'] == Decimal('12120.00')


def test_discount_base_can_be_pre_markup(engine, sample_days):
    payload = {
        'days': sample_days,
        'adults': 2,
        'children': 1,
        'discountBase': 'base',
        'discounts': [{'id': 'early', 'type': 'percentage', 'value': 10, 'isActive': True}],
    }
    standard = engine.calculate_proposal_price(payload).selected

    assert standard['discounts']['totalDiscountAmount'] == Decimal('1200.00')
    assert standard['afterDiscounts'] == Decimal('12600.00')
    assert standard['discounts']['afterDiscounts'] == Decimal('12600.00')


def test_tax_applies_after_discounts(engine, sample_days):
    payload = {
        'days': sample_days,
        'adults': 2,
        'children': 1,
        'discounts': [{'id': 'promo', 'type': 'fixed', 'value': 1800, 'isActive': True}],
        'tax': {'enabled': True, 'countryCode': 'TH', 'serviceType': 'all', 'isInclusive': False},
    }
    standard = engine.calculate_proposal_price(payload).selected

    assert standard['afterDiscounts'] == Decimal('12000.00')
    assert standard['tax']['taxAmount'] == Decimal('1200.00')
    assert standard['finalTotal'] == Decimal('13200.00')
    assert standard['distribution']['totalPrice'] == Decimal('13200.00')


def test_disabled_tax_block_is_skipped(engine, sample_days):
    payload = {
        'days': sample_days,
        'adults': 2,
        'children': 1,
        'tax': {'enabled': False, 'countryCode': 'TH'},
    }
    standard = engine.calculate_proposal_price(payload).selected

    assert standard['tax']['taxType'] == 'None'
    assert standard['finalTotal'] == Decimal('13800.00')


def test_proposal_markup_overrides_global(engine, sample_days):
    payload = {
        'days': sample_days,
        'adults': 2,
        'children': 1,
        'markupSettings': {
            'inheritFromGlobal': False,
            'type': 'slab',
            'slabs': [{'minAmount': 10001, 'maxAmount': None, 'percentage': 7}],
        },
    }
    standard = engine.calculate_proposal_price(payload).selected

    assert standard['markup'] == Decimal('840.00')
    assert standard['markupDetail']['type'] == 'slab'


def test_curated_accommodations_drive_base_total(engine, sample_days):
    payload = {
        'days': sample_days,
        'adults': 2,
        'children': 1,
        'selectedAccommodations': [
            {'hotelName': 'Beach Villa', 'type': 'standard', 'pricePerNight': 1000, 'nights': 3, 'dayId': 'day-1'},
        ],
    }
    snapshot = engine.calculate_proposal_price(payload)

    assert snapshot.option('standard')['baseTotal'] == Decimal('9000')
    assert snapshot.option('optional')['accommodations'] == []
    assert snapshot.option('optional')['baseTotal'] == Decimal('6000')


def test_identical_inputs_give_identical_outputs(engine, sample_days):
    payload = {'days': sample_days, 'adults': 2, 'children': 1}

    first = engine.calculate_proposal_price(dict(payload)).to_dict()
    second = engine.calculate_proposal_price(dict(payload)).to_dict()

    assert first == second


@pytest.mark.parametrize(
    'adults, children',
    [(0, 2), (-1, 0), (2, -1), ('two', 0), (2.7, 0), (2, 0.9), (True, 0), (2, float('nan'))],
)
def test_invalid_traveler_counts(engine, sample_days, adults, children):
    with pytest.raises(InvalidConfigurationError):
        engine.calculate_proposal_price({'days': sample_days, 'adults': adults, 'children': children})


def test_unknown_selected_option_is_rejected(engine, sample_days):
    with pytest.raises(InvalidConfigurationError):
        engine.calculate_proposal_price({'days': sample_days, 'adults': 1, 'selectedOption': 'premium'})


def test_snapshot_defaults_to_standard():
    snapshot = PricingSnapshot([{'type': 'standard', 'finalTotal': Decimal('1')}])

    assert snapshot.selected_option is PackageType.STANDARD
    assert snapshot.selected['finalTotal'] == Decimal('1')
    assert snapshot.option('alternative') is None
