from flask import Blueprint
from flask_login import login_required
from chronicle import db
from chronicle.models import Character, Location, Relationship
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields, resolve_reference,
)
from chronicle.validation import validate_character

characters_bp = Blueprint('characters', __name__, url_prefix='/api')

# payload key -> model attribute
CHARACTER_FIELDS = {
    'name': 'name',
    'type': 'type',
    'race': 'race',
    'class': 'character_class',
    'description': 'description',
    'tags': 'tags',
}


def _apply_character(character, data, campaign_id):
    apply_fields(character, data, CHARACTER_FIELDS)
    if 'location' in data:
        character.location_id = resolve_reference(
            Location, data['location'], campaign_id, 'location', 'Location')


@characters_bp.route('/campaigns/<campaign_id>/characters', methods=['GET'])
@login_required
def list_characters(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    query = Character.query.filter_by(campaign_id=campaign.id)
    return list_response(query, Character,
                         search_fields=('name', 'description', 'race', 'character_class'),
                         sortable=('created_at', 'updated_at', 'name', 'type'))


@characters_bp.route('/campaigns/<campaign_id>/characters', methods=['POST'])
@login_required
def create_character(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_character(data))

    character = Character(campaign_id=campaign.id, tags=[])
    _apply_character(character, data, campaign.id)
    db.session.add(character)
    db.session.commit()
    return ok(character.to_dict(), 'Character created successfully', 201)


@characters_bp.route('/characters/<character_id>', methods=['GET'])
@login_required
def get_character(character_id):
    character = get_owned(Character, character_id, 'Character')
    data = character.to_dict()
    data['items'] = [{'id': i.id, 'name': i.name, 'type': i.type} for i in character.items]
    data['relationship_count'] = len(character.all_relationships)
    return ok(data)


@characters_bp.route('/characters/<character_id>', methods=['PUT'])
@login_required
def update_character(character_id):
    character = get_owned(Character, character_id, 'Character')
    data = get_json_body()
    check_errors(validate_character(data, partial=True))
    _apply_character(character, data, character.campaign_id)
    db.session.commit()
    return ok(character.to_dict(), 'Character updated successfully')


@characters_bp.route('/characters/<character_id>', methods=['DELETE'])
@login_required
def delete_character(character_id):
    character = get_owned(Character, character_id, 'Character')
    # Relationships go with the character; owned items and quests it gave are kept, unlinked
    db.session.delete(character)
    db.session.commit()
    return ok(None, 'Character deleted successfully')


@characters_bp.route('/characters/<character_id>/relationships')
@login_required
def character_relationships(character_id):
    character = get_owned(Character, character_id, 'Character')
    rels = Relationship.query.filter(
        (Relationship.from_character_id == character.id) |
        (Relationship.to_character_id == character.id)
    ).order_by(Relationship.created_at).all()

    result = []
    for rel in rels:
        entry = rel.to_dict()
        outgoing = rel.from_character_id == character.id
        other = rel.to_character if outgoing else rel.from_character
        entry['direction'] = 'outgoing' if outgoing else 'incoming'
        entry['other_character'] = {'id': other.id, 'name': other.name, 'type': other.type}
        result.append(entry)
    return ok(result)
