import random
import re

# "2d6", "1d20+5", "3d8 - 2"
DICE_PATTERN = re.compile(r'^(\d+)d(\d+)(?:\s*([+-])\s*(\d+))?$', re.IGNORECASE)

MAX_DICE = 10
MIN_SIDES = 2
MAX_SIDES = 100
MAX_MODIFIER = 100


class DiceExpressionError(Exception):
    """Raised when a dice expression can't be parsed or is out of range."""
    pass


def parse_expression(expression):
    """Split 'NdS+M' into (count, sides, modifier)."""
    match = DICE_PATTERN.match((expression or '').strip())
    if not match:
        raise DiceExpressionError(f'Invalid dice expression: {expression!r}. Use the form 2d6+3')

    count, sides = int(match.group(1)), int(match.group(2))
    modifier = int(match.group(4) or 0)
    if match.group(3) == '-':
        modifier = -modifier

    if not 1 <= count <= MAX_DICE:
        raise DiceExpressionError(f'Number of dice must be between 1 and {MAX_DICE}')
    if not MIN_SIDES <= sides <= MAX_SIDES:
        raise DiceExpressionError(f'Dice must have between {MIN_SIDES} and {MAX_SIDES} sides')
    if abs(modifier) > MAX_MODIFIER:
        raise DiceExpressionError(f'Modifier must be between -{MAX_MODIFIER} and {MAX_MODIFIER}')
    return count, sides, modifier


def roll(expression, advantage=False, disadvantage=False, rng=None):
    """Roll a dice expression and return a result dict.

    Advantage/disadvantage only applies to a single d20: it is rolled twice and
    the higher (or lower) die is kept. Both rolls are reported in
    individual_rolls. A single d20 landing on 20 or 1 is flagged critical.
    """
    if advantage and disadvantage:
        raise DiceExpressionError('Cannot roll with both advantage and disadvantage')

    rng = rng or random
    count, sides, modifier = parse_expression(expression)
    single_d20 = count == 1 and sides == 20

    if single_d20 and (advantage or disadvantage):
        rolls = [rng.randint(1, 20), rng.randint(1, 20)]
        kept = max(rolls) if advantage else min(rolls)
        dice_total = kept
    else:
        rolls = [rng.randint(1, sides) for _ in range(count)]
        dice_total = sum(rolls)
        kept = rolls[0] if single_d20 else None

    return {
        'expression': f'{count}d{sides}' + (f'{modifier:+d}' if modifier else ''),
        'individual_rolls': rolls,
        'modifier': modifier,
        'result': dice_total + modifier,
        'advantage': bool(advantage and single_d20),
        'disadvantage': bool(disadvantage and single_d20),
        'critical': single_d20 and kept in (1, 20),
    }
