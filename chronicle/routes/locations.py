from collections import defaultdict
from flask import Blueprint, request
from flask_login import login_required
from chronicle import db
from chronicle.errors import ValidationFailed
from chronicle.models import Location, Item
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields, resolve_reference,
)
from chronicle.validation import validate_location

locations_bp = Blueprint('locations', __name__, url_prefix='/api')

LOCATION_FIELDS = {
    'name': 'name',
    'type': 'type',
    'description': 'description',
    'tags': 'tags',
}


def _set_parent(location, parent_id):
    parent_id = resolve_reference(Location, parent_id, location.campaign_id,
                                  'parent_location', 'Parent location')
    if parent_id is not None and location.id is not None:
        if parent_id == location.id:
            raise ValidationFailed({'parent_location': ['A location cannot be its own parent']})
        parent = db.session.get(Location, parent_id)
        if parent.is_descendant_of(location.id):
            raise ValidationFailed({'parent_location': ['A location cannot be moved inside one of its own sub-locations']})
    location.parent_id = parent_id


def build_tree(locations):
    """Nest a flat list of locations into {..., "children": [...]} dicts, by name."""
    by_parent = defaultdict(list)
    ids = {loc.id for loc in locations}
    for loc in locations:
        # Orphans (parent outside the list) are shown at the top level
        key = loc.parent_id if loc.parent_id in ids else None
        by_parent[key].append(loc)

    def node(loc):
        entry = loc.to_dict()
        entry['children'] = [node(child) for child in
                             sorted(by_parent.get(loc.id, []), key=lambda l: l.name.lower())]
        return entry

    return [node(root) for root in sorted(by_parent.get(None, []), key=lambda l: l.name.lower())]


@locations_bp.route('/campaigns/<campaign_id>/locations', methods=['GET'])
@login_required
def list_locations(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    query = Location.query.filter_by(campaign_id=campaign.id)
    parent = request.args.get('parent')
    if parent == 'root':
        query = query.filter(Location.parent_id.is_(None))
    elif parent:
        query = query.filter(Location.parent_id == parent)
    return list_response(query, Location, search_fields=('name', 'description'),
                         sortable=('created_at', 'updated_at', 'name', 'type'))


@locations_bp.route('/campaigns/<campaign_id>/locations/hierarchy')
@login_required
def location_hierarchy(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    locations = Location.query.filter_by(campaign_id=campaign.id).order_by(Location.name).all()
    return ok(build_tree(locations))


@locations_bp.route('/campaigns/<campaign_id>/locations', methods=['POST'])
@login_required
def create_location(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_location(data))

    location = Location(campaign_id=campaign.id, tags=[])
    apply_fields(location, data, LOCATION_FIELDS)
    _set_parent(location, data.get('parent_location'))
    db.session.add(location)
    db.session.commit()
    return ok(location.to_dict(), 'Location created successfully', 201)


@locations_bp.route('/locations/<location_id>', methods=['GET'])
@login_required
def get_location(location_id):
    location = get_owned(Location, location_id, 'Location')
    data = location.to_dict()
    data['children'] = [{'id': c.id, 'name': c.name, 'type': c.type}
                        for c in sorted(location.children, key=lambda l: l.name.lower())]
    data['characters'] = [{'id': c.id, 'name': c.name, 'type': c.type} for c in location.characters]
    if request.args.get('include_hierarchy') in ('1', 'true', 'yes'):
        data['hierarchy_path'] = location.hierarchy_path
        data['ancestors'] = [{'id': a.id, 'name': a.name} for a in reversed(location.ancestors)]
    return ok(data)


@locations_bp.route('/locations/<location_id>', methods=['PUT'])
@login_required
def update_location(location_id):
    location = get_owned(Location, location_id, 'Location')
    data = get_json_body()
    check_errors(validate_location(data, partial=True))
    apply_fields(location, data, LOCATION_FIELDS)
    if 'parent_location' in data:
        _set_parent(location, data['parent_location'])
    db.session.commit()
    return ok(location.to_dict(), 'Location updated successfully')


@locations_bp.route('/locations/<location_id>', methods=['DELETE'])
@login_required
def delete_location(location_id):
    location = get_owned(Location, location_id, 'Location')
    # Sub-locations move up to the top level; characters and items lose their location
    for child in list(location.children):
        child.parent_id = None
    db.session.delete(location)
    db.session.commit()
    return ok(None, 'Location deleted successfully')


@locations_bp.route('/locations/<location_id>/items')
@login_required
def location_items(location_id):
    location = get_owned(Location, location_id, 'Location')
    items = Item.query.filter_by(location_id=location.id).order_by(Item.name).all()
    return ok([item.to_dict() for item in items])
