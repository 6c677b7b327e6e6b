from flask import Blueprint, current_app
from flask_login import login_required
from chronicle import db
from chronicle.errors import BadRequest
from chronicle.models import Item, Character, Location
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields, resolve_reference,
)
from chronicle.validation import validate_item

items_bp = Blueprint('items', __name__, url_prefix='/api')

ITEM_FIELDS = {
    'name': 'name',
    'type': 'type',
    'description': 'description',
    'tags': 'tags',
}


def _apply_item(item, data, campaign_id):
    apply_fields(item, data, ITEM_FIELDS)
    if 'owner' in data:
        item.owner_id = resolve_reference(Character, data['owner'], campaign_id, 'owner', 'Owner')
    if 'location' in data:
        item.location_id = resolve_reference(Location, data['location'], campaign_id,
                                             'location', 'Location')


@items_bp.route('/campaigns/<campaign_id>/items', methods=['GET'])
@login_required
def list_items(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    return list_response(Item.query.filter_by(campaign_id=campaign.id), Item,
                         search_fields=('name', 'description'),
                         sortable=('created_at', 'updated_at', 'name', 'type'))


@items_bp.route('/campaigns/<campaign_id>/items', methods=['POST'])
@login_required
def create_item(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_item(data))

    item = Item(campaign_id=campaign.id, tags=[])
    _apply_item(item, data, campaign.id)
    db.session.add(item)
    db.session.commit()
    return ok(item.to_dict(), 'Item created successfully', 201)


@items_bp.route('/items/<item_id>', methods=['GET'])
@login_required
def get_item(item_id):
    return ok(get_owned(Item, item_id, 'Item').to_dict())


@items_bp.route('/items/<item_id>', methods=['PUT'])
@login_required
def update_item(item_id):
    item = get_owned(Item, item_id, 'Item')
    data = get_json_body()
    check_errors(validate_item(data, partial=True))
    _apply_item(item, data, item.campaign_id)
    db.session.commit()
    return ok(item.to_dict(), 'Item updated successfully')


@items_bp.route('/items/<item_id>', methods=['DELETE'])
@login_required
def delete_item(item_id):
    item = get_owned(Item, item_id, 'Item')
    db.session.delete(item)
    db.session.commit()
    return ok(None, 'Item deleted successfully')


@items_bp.route('/items/<item_id>/transfer', methods=['POST'])
@login_required
def transfer_item(item_id):
    """Hand an item to a character ({"to_character": id}) or leave it somewhere
    ({"to_location": id}). An item is either carried or placed, not both."""
    item = get_owned(Item, item_id, 'Item')
    data = get_json_body()

    if data.get('to_character'):
        item.owner_id = resolve_reference(Character, data['to_character'], item.campaign_id,
                                          'to_character', 'Character')
        item.location_id = None
        message = 'Item transferred to character successfully'
    elif data.get('to_location'):
        item.location_id = resolve_reference(Location, data['to_location'], item.campaign_id,
                                             'to_location', 'Location')
        item.owner_id = None
        message = 'Item transferred to location successfully'
    else:
        raise BadRequest('Transfer target not specified. Send to_character or to_location')

    db.session.commit()
    current_app.logger.info(f'Item {item.id} transferred (owner={item.owner_id}, location={item.location_id})')
    return ok(item.to_dict(), message)
