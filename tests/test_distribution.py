"""Unit tests for adult/child price distribution."""

from decimal import Decimal

import pytest

from pricing_engine import DistributionCalculator, InvalidConfigurationError


def test_separate_with_no_children_never_divides_by_zero():
    """5,000 for 2 adults and no children: 2,500 each, child price exactly 0."""
    result = DistributionCalculator.calculate(5000, 2, 0, 'separate')

    assert result['adultPrice'] == Decimal('2500.00')
    assert result['childPrice'] == Decimal('0')
    assert result['childTotal'] == Decimal('0')
    assert result['adultTotal'] == Decimal('5000')
    assert result['adultPrice'].is_finite()
    assert result['childPrice'].is_finite()


def test_even_with_no_children_gives_adults_everything():
    result = DistributionCalculator.calculate(Decimal('1000.01'), 3, 0, 'even')

    assert result['adultTotal'] == Decimal('1000.01')
    assert result['childTotal'] == Decimal('0')
    assert result['childPrice'] == Decimal('0')


@pytest.mark.parametrize(
    'final_total, adults, children',
    [
        (1000, 2, 1),
        (Decimal('13800'), 2, 1),
        (Decimal('999.99'), 1, 6),
        (Decimal('12345.67'), 4, 3),
        (7, 3, 3),
    ],
)
def test_even_distribution_conserves_total(final_total, adults, children):
    result = DistributionCalculator.calculate(final_total, adults, children, 'even')

    assert float(result['adultTotal'] + result['childTotal']) == pytest.approx(float(final_total), abs=1e-6)


def test_even_distribution_per_person():
    result = DistributionCalculator.calculate(9000, 2, 1, 'even')

    assert result['perPerson'] == Decimal('3000.00')
    assert result['adultPrice'] == Decimal('3000.00')
    assert result['childPrice'] == Decimal('3000.00')
    assert result['adultTotal'] == Decimal('6000.00')
    assert result['childTotal'] == Decimal('3000.00')


def test_separate_default_ratio_is_per_capita():
    """13,800 for 2 adults + 1 child: 4,600 each, not the whole total per child."""
    result = DistributionCalculator.calculate(13800, 2, 1, 'separate')

    assert result['adultPrice'] == Decimal('4600.00')
    assert result['childPrice'] == Decimal('4600.00')
    assert result['adultTotal'] + result['childTotal'] == Decimal('13800')


def test_separate_with_child_ratio():
    """A child at 50% of the adult rate: 2 adults + 2 children are 3 adult units."""
    result = DistributionCalculator.calculate(9000, 2, 2, 'separate', child_ratio=0.5)

    assert result['adultPrice'] == Decimal('3000.00')
    assert result['childPrice'] == Decimal('1500.00')
    assert result['adultTotal'] == Decimal('6000.00')
    assert result['childTotal'] == Decimal('3000.00')


def test_zero_travelers_yield_zero():
    result = DistributionCalculator.calculate(5000, 0, 0, 'even')

    assert result['perPerson'] == Decimal('0')
    assert result['adultTotal'] == Decimal('0')
    assert result['childTotal'] == Decimal('0')


def test_unknown_method_is_rejected():
    with pytest.raises(InvalidConfigurationError):
        DistributionCalculator.calculate(100, 1, 0, 'weighted')
