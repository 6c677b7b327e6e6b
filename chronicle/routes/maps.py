import os
import uuid
from flask import Blueprint, current_app, request, send_from_directory
from flask_login import login_required
from sqlalchemy.orm.attributes import flag_modified
from chronicle import db, save_upload
from chronicle.errors import NotFound, ValidationFailed
from chronicle.models import CampaignMap, Location
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields, resolve_reference,
)
from chronicle.validation import validate_map, validate_map_marker

maps_bp = Blueprint('maps', __name__, url_prefix='/api')

MAP_FIELDS = {
    'name': 'name',
    'description': 'description',
    'image_url': 'image_url',
    'width': 'width',
    'height': 'height',
}

# URL segment -> model attribute holding that marker list
MARKER_KINDS = {'pins': 'pins', 'routes': 'routes'}


def _map_payload():
    """Map fields from a JSON body, or from a multipart form carrying an image."""
    if request.mimetype == 'multipart/form-data':
        data = request.form.to_dict()
        for key in ('width', 'height'):
            if data.get(key, '').strip():
                try:
                    data[key] = int(data[key])
                except ValueError:
                    raise ValidationFailed({key: [f'{key} must be a whole number']})
            else:
                data.pop(key, None)
        return data
    return get_json_body()


def _store_image(campaign_map):
    image = request.files.get('image')
    if image is None or not image.filename:
        return
    filename = save_upload(image)
    if filename is None:
        allowed = ', '.join(sorted(current_app.config['ALLOWED_EXTENSIONS']))
        raise ValidationFailed({'image': [f'Unsupported image type. Allowed: {allowed}']})
    remove_map_image(campaign_map)
    campaign_map.image_filename = filename


def remove_map_image(campaign_map):
    if campaign_map.image_filename:
        path = os.path.join(current_app.config['UPLOAD_FOLDER'], campaign_map.image_filename)
        if os.path.exists(path):
            os.remove(path)
        campaign_map.image_filename = None


def _marker_kind(kind):
    if kind not in MARKER_KINDS:
        raise NotFound('Unknown marker type')
    return MARKER_KINDS[kind]


def _clean_marker(data, campaign_id):
    check_errors(validate_map_marker(data))
    marker = {k: v for k, v in data.items() if k != 'id'}
    if 'location_id' in marker:
        marker['location_id'] = resolve_reference(Location, marker['location_id'], campaign_id,
                                                  'location_id', 'Location')
    return marker


@maps_bp.route('/campaigns/<campaign_id>/maps', methods=['GET'])
@login_required
def list_maps(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    return list_response(CampaignMap.query.filter_by(campaign_id=campaign.id), CampaignMap,
                         search_fields=('name', 'description'),
                         sortable=('created_at', 'updated_at', 'name'))


@maps_bp.route('/campaigns/<campaign_id>/maps', methods=['POST'])
@login_required
def create_map(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = _map_payload()
    check_errors(validate_map(data))

    campaign_map = CampaignMap(campaign_id=campaign.id, pins=[], routes=[])
    apply_fields(campaign_map, data, MAP_FIELDS)
    _store_image(campaign_map)
    db.session.add(campaign_map)
    db.session.commit()
    return ok(campaign_map.to_dict(), 'Map created successfully', 201)


@maps_bp.route('/maps/<map_id>', methods=['GET'])
@login_required
def get_map(map_id):
    campaign_map = get_owned(CampaignMap, map_id, 'Map')
    data = campaign_map.to_dict()
    linked = [pin['location_id'] for pin in campaign_map.pins or [] if pin.get('location_id')]
    locations = Location.query.filter(Location.id.in_(linked)).all() if linked else []
    data['linked_locations'] = [{'id': loc.id, 'name': loc.name} for loc in locations]
    return ok(data)


@maps_bp.route('/maps/<map_id>/image')
@login_required
def map_image(map_id):
    campaign_map = get_owned(CampaignMap, map_id, 'Map')
    if not campaign_map.image_filename:
        raise NotFound('Map has no uploaded image')
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], campaign_map.image_filename)


@maps_bp.route('/maps/<map_id>', methods=['PUT'])
@login_required
def update_map(map_id):
    campaign_map = get_owned(CampaignMap, map_id, 'Map')
    data = _map_payload()
    check_errors(validate_map(data, partial=True))
    apply_fields(campaign_map, data, MAP_FIELDS)
    _store_image(campaign_map)
    db.session.commit()
    return ok(campaign_map.to_dict(), 'Map updated successfully')


@maps_bp.route('/maps/<map_id>', methods=['DELETE'])
@login_required
def delete_map(map_id):
    campaign_map = get_owned(CampaignMap, map_id, 'Map')
    remove_map_image(campaign_map)
    db.session.delete(campaign_map)
    db.session.commit()
    return ok(None, 'Map deleted successfully')


@maps_bp.route('/maps/<map_id>/<kind>', methods=['POST'])
@login_required
def add_marker(map_id, kind):
    attr = _marker_kind(kind)
    campaign_map = get_owned(CampaignMap, map_id, 'Map')
    marker = _clean_marker(get_json_body(), campaign_map.campaign_id)
    marker['id'] = str(uuid.uuid4())

    setattr(campaign_map, attr, list(getattr(campaign_map, attr) or []) + [marker])
    flag_modified(campaign_map, attr)
    db.session.commit()
    return ok(campaign_map.to_dict(), f'{kind[:-1].title()} added', 201)


@maps_bp.route('/maps/<map_id>/<kind>/<marker_id>', methods=['PUT'])
@login_required
def update_marker(map_id, kind, marker_id):
    attr = _marker_kind(kind)
    campaign_map = get_owned(CampaignMap, map_id, 'Map')
    changes = _clean_marker(get_json_body(), campaign_map.campaign_id)

    markers = [dict(m) for m in getattr(campaign_map, attr) or []]
    for marker in markers:
        if marker.get('id') == marker_id:
            marker.update(changes)
            break
    else:
        raise NotFound(f'{kind[:-1].title()} not found')

    setattr(campaign_map, attr, markers)
    flag_modified(campaign_map, attr)
    db.session.commit()
    return ok(campaign_map.to_dict(), f'{kind[:-1].title()} updated')


@maps_bp.route('/maps/<map_id>/<kind>/<marker_id>', methods=['DELETE'])
@login_required
def remove_marker(map_id, kind, marker_id):
    attr = _marker_kind(kind)
    campaign_map = get_owned(CampaignMap, map_id, 'Map')
    markers = getattr(campaign_map, attr) or []
    remaining = [m for m in markers if m.get('id') != marker_id]
    if len(remaining) == len(markers):
        raise NotFound(f'{kind[:-1].title()} not found')

    setattr(campaign_map, attr, remaining)
    flag_modified(campaign_map, attr)
    db.session.commit()
    return ok(campaign_map.to_dict(), f'{kind[:-1].title()} removed')
