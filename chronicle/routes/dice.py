from flask import Blueprint, request
from flask_login import login_required, current_user
from chronicle import db
from chronicle.dice import DiceExpressionError, roll
from chronicle.errors import ValidationFailed
from chronicle.models import DiceRoll
from chronicle.routes.helpers import ok, get_json_body, get_owned_campaign, get_owned, check_errors
from chronicle.validation import validate_dice_roll

dice_bp = Blueprint('dice', __name__, url_prefix='/api')

DEFAULT_HISTORY = 50
MAX_HISTORY = 200


@dice_bp.route('/campaigns/<campaign_id>/dice-rolls', methods=['GET'])
@login_required
def roll_history(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    try:
        limit = int(request.args.get('limit', DEFAULT_HISTORY))
    except ValueError:
        limit = DEFAULT_HISTORY
    limit = max(1, min(limit, MAX_HISTORY))

    query = DiceRoll.query.filter_by(campaign_id=campaign.id)
    if request.args.get('include_private') not in ('1', 'true', 'yes'):
        query = query.filter(DiceRoll.is_private.is_(False))
    rolls = query.order_by(DiceRoll.created_at.desc()).limit(limit).all()
    return ok([r.to_dict() for r in rolls])


@dice_bp.route('/campaigns/<campaign_id>/dice-rolls', methods=['POST'])
@login_required
def create_roll(campaign_id):
    """Roll on the server so the result can't be made up by the client."""
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_dice_roll(data))

    try:
        outcome = roll(data['expression'],
                       advantage=bool(data.get('advantage')),
                       disadvantage=bool(data.get('disadvantage')))
    except DiceExpressionError as e:
        raise ValidationFailed({'expression': [str(e)]})

    dice_roll = DiceRoll(
        campaign_id=campaign.id,
        player_name=(data.get('player_name') or current_user.display_name
                     or current_user.username),
        context=data.get('context'),
        is_private=bool(data.get('is_private')),
        tags=data.get('tags') or [],
        **outcome,
    )
    db.session.add(dice_roll)
    db.session.commit()
    return ok(dice_roll.to_dict(), 'Dice rolled', 201)


@dice_bp.route('/campaigns/<campaign_id>/dice-rolls', methods=['DELETE'])
@login_required
def clear_history(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    deleted = DiceRoll.query.filter_by(campaign_id=campaign.id).delete()
    db.session.commit()
    return ok({'deleted_count': deleted}, 'Roll history cleared')


@dice_bp.route('/dice-rolls/<roll_id>', methods=['DELETE'])
@login_required
def delete_roll(roll_id):
    dice_roll = get_owned(DiceRoll, roll_id, 'Roll')
    db.session.delete(dice_roll)
    db.session.commit()
    return ok(None, 'Roll deleted successfully')
