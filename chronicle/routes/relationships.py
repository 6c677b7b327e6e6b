from flask import Blueprint, request
from flask_login import login_required
from chronicle import db
from chronicle.errors import BadRequest, ValidationFailed
from chronicle.models import Relationship, Character
from chronicle.network import build_network, network_statistics, find_paths
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields, resolve_reference,
)
from chronicle.validation import validate_relationship

relationships_bp = Blueprint('relationships', __name__, url_prefix='/api')

RELATIONSHIP_FIELDS = {'type': 'type', 'description': 'description'}


def _set_ends(rel, source_id, target_id):
    """Point a relationship at two characters of its campaign, keeping the
    (from, to) pair unique."""
    source_id = resolve_reference(Character, source_id, rel.campaign_id, 'from_character', 'Source character')
    target_id = resolve_reference(Character, target_id, rel.campaign_id, 'to_character', 'Target character')
    if source_id == target_id:
        raise ValidationFailed({'to_character': ['Characters cannot have relationships with themselves']})

    clash = Relationship.query.filter_by(from_character_id=source_id, to_character_id=target_id).first()
    if clash is not None and clash is not rel:
        raise ValidationFailed({'to_character': ['A relationship between these characters already exists']})
    rel.from_character_id = source_id
    rel.to_character_id = target_id


@relationships_bp.route('/campaigns/<campaign_id>/relationships', methods=['GET'])
@login_required
def list_relationships(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    query = Relationship.query.filter_by(campaign_id=campaign.id)
    character = request.args.get('character')
    if character:
        query = query.filter((Relationship.from_character_id == character) |
                             (Relationship.to_character_id == character))
    return list_response(query, Relationship, search_fields=('description',),
                         sortable=('created_at', 'updated_at', 'type'))


@relationships_bp.route('/campaigns/<campaign_id>/relationships', methods=['POST'])
@login_required
def create_relationship(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_relationship(data))

    rel = Relationship(campaign_id=campaign.id)
    apply_fields(rel, data, RELATIONSHIP_FIELDS)
    _set_ends(rel, data['from_character'], data['to_character'])
    db.session.add(rel)
    db.session.commit()
    return ok(rel.to_dict(), 'Relationship created successfully', 201)


@relationships_bp.route('/campaigns/<campaign_id>/relationships/network')
@login_required
def relationship_network(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    characters = Character.query.filter_by(campaign_id=campaign.id).order_by(Character.name).all()
    rels = Relationship.query.filter_by(campaign_id=campaign.id).all()
    return ok(build_network(characters, rels))


@relationships_bp.route('/campaigns/<campaign_id>/relationships/statistics')
@login_required
def relationship_statistics(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    characters = Character.query.filter_by(campaign_id=campaign.id).all()
    rels = Relationship.query.filter_by(campaign_id=campaign.id).all()
    return ok(network_statistics(characters, rels))


@relationships_bp.route('/campaigns/<campaign_id>/relationships/find-path')
@login_required
def relationship_path(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    source = request.args.get('from')
    target = request.args.get('to')
    if not source or not target:
        raise BadRequest('Both from and to character ids are required')
    try:
        max_depth = int(request.args.get('max_depth', 3))
    except ValueError:
        raise BadRequest('max_depth must be a whole number')

    for field, ref in (('from', source), ('to', target)):
        resolve_reference(Character, ref, campaign.id, field, 'Character')

    rels = Relationship.query.filter_by(campaign_id=campaign.id).all()
    paths = find_paths(rels, source, target, max_depth)
    return ok({'from': source, 'to': target, 'max_depth': max_depth, 'paths': paths,
               'connected': bool(paths)})


@relationships_bp.route('/relationships/<relationship_id>', methods=['GET'])
@login_required
def get_relationship(relationship_id):
    return ok(get_owned(Relationship, relationship_id, 'Relationship').to_dict())


@relationships_bp.route('/relationships/<relationship_id>', methods=['PUT'])
@login_required
def update_relationship(relationship_id):
    rel = get_owned(Relationship, relationship_id, 'Relationship')
    data = get_json_body()
    check_errors(validate_relationship(data, partial=True))
    apply_fields(rel, data, RELATIONSHIP_FIELDS)
    if 'from_character' in data or 'to_character' in data:
        _set_ends(rel, data.get('from_character', rel.from_character_id),
                  data.get('to_character', rel.to_character_id))
    db.session.commit()
    return ok(rel.to_dict(), 'Relationship updated successfully')


@relationships_bp.route('/relationships/<relationship_id>', methods=['DELETE'])
@login_required
def delete_relationship(relationship_id):
    rel = get_owned(Relationship, relationship_id, 'Relationship')
    db.session.delete(rel)
    db.session.commit()
    return ok(None, 'Relationship deleted successfully')
