import random

import pytest

from chronicle.dice import DiceExpressionError, parse_expression, roll


class FixedRolls:
    """Stand-in for the random module that returns preset values in order."""

    def __init__(self, *values):
        self.values = list(values)

    def randint(self, low, high):
        value = self.values.pop(0)
        assert low <= value <= high
        return value


@pytest.mark.parametrize('expression, expected', [
    ('2d6', (2, 6, 0)),
    ('1d20+5', (1, 20, 5)),
    ('3d8 - 2', (3, 8, -2)),
    ('1D100', (1, 100, 0)),
])
def test_parse_expression(expression, expected):
    assert parse_expression(expression) == expected


@pytest.mark.parametrize('expression', ['d20', '2d', '11d6', '1d1', '1d101', '1d6+101', 'fireball', ''])
def test_parse_expression_rejects(expression):
    with pytest.raises(DiceExpressionError):
        parse_expression(expression)


def test_roll_sums_dice_and_modifier():
    result = roll('3d6+2', rng=FixedRolls(1, 4, 6))
    assert result['individual_rolls'] == [1, 4, 6]
    assert result['result'] == 13
    assert result['modifier'] == 2
    assert result['expression'] == '3d6+2'
    assert result['critical'] is False


def test_roll_normalizes_expression():
    assert roll('1d8 - 1', rng=FixedRolls(5))['expression'] == '1d8-1'


def test_advantage_keeps_higher_die():
    result = roll('1d20+1', advantage=True, rng=FixedRolls(4, 17))
    assert result['individual_rolls'] == [4, 17]
    assert result['result'] == 18
    assert result['advantage'] is True


def test_disadvantage_keeps_lower_die():
    result = roll('1d20', disadvantage=True, rng=FixedRolls(4, 17))
    assert result['result'] == 4


def test_advantage_ignored_for_other_dice():
    result = roll('2d6', advantage=True, rng=FixedRolls(3, 3))
    assert result['individual_rolls'] == [3, 3]
    assert result['advantage'] is False


def test_natural_twenty_and_one_are_critical():
    assert roll('1d20', rng=FixedRolls(20))['critical'] is True
    assert roll('1d20+5', rng=FixedRolls(1))['critical'] is True
    assert roll('1d20', advantage=True, rng=FixedRolls(1, 20))['critical'] is True
    # Only the kept die counts
    assert roll('1d20', disadvantage=True, rng=FixedRolls(1, 20))['critical'] is True
    assert roll('1d20', disadvantage=True, rng=FixedRolls(5, 20))['critical'] is False


def test_both_advantage_and_disadvantage_rejected():
    with pytest.raises(DiceExpressionError):
        roll('1d20', advantage=True, disadvantage=True)


def test_results_stay_in_range():
    rng = random.Random(1234)
    for _ in range(200):
        result = roll('4d6-2', rng=rng)
        assert 2 <= result['result'] <= 22
