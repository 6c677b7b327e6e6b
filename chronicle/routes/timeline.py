from collections import defaultdict
from flask import Blueprint
from sqlalchemy.orm.attributes import flag_modified
from flask_login import login_required
from chronicle import db
from chronicle.errors import BadRequest
from chronicle.models import TimelineEvent, Character, Location
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields, resolve_reference, resolve_reference_list,
)
from chronicle.validation import validate_timeline_event

timeline_bp = Blueprint('timeline', __name__, url_prefix='/api')

EVENT_FIELDS = {
    'title': 'title',
    'description': 'description',
    'date': 'date',
    'session_number': 'session_number',
    'type': 'type',
    'tags': 'tags',
}

# entity_type in POST /timeline/<id>/entities -> (model, event attribute)
LINKABLE = {
    'character': (Character, 'related_characters'),
    'location': (Location, 'related_locations'),
}


def _apply_event(event, data):
    apply_fields(event, data, EVENT_FIELDS)
    # null falls back to the defaults rather than clearing them
    if event.type is None:
        event.type = 'story'
    if event.tags is None:
        event.tags = []
    if 'related_characters' in data:
        event.related_characters = resolve_reference_list(
            Character, data['related_characters'], event.campaign_id,
            'related_characters', 'Character')
    if 'related_locations' in data:
        event.related_locations = resolve_reference_list(
            Location, data['related_locations'], event.campaign_id,
            'related_locations', 'Location')


def _chronological(query):
    # Events without a session number sort after numbered ones
    return query.order_by(TimelineEvent.session_number.is_(None),
                          TimelineEvent.session_number.asc(),
                          TimelineEvent.date.asc(),
                          TimelineEvent.created_at.asc())


@timeline_bp.route('/campaigns/<campaign_id>/timeline', methods=['GET'])
@login_required
def list_events(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    return list_response(TimelineEvent.query.filter_by(campaign_id=campaign.id), TimelineEvent,
                         search_fields=('title', 'description'),
                         sortable=('session_number', 'date', 'created_at', 'updated_at', 'title'),
                         default_sort='session_number', default_order='asc')


@timeline_bp.route('/campaigns/<campaign_id>/timeline/grouped')
@login_required
def grouped_events(campaign_id):
    """Events bucketed by session number, in play order."""
    campaign = get_owned_campaign(campaign_id)
    events = _chronological(TimelineEvent.query.filter_by(campaign_id=campaign.id)).all()

    groups = defaultdict(list)
    for event in events:
        groups[event.session_number].append(event.to_dict())

    ordered = sorted(groups.items(), key=lambda kv: (kv[0] is None, kv[0] or 0))
    return ok([{
        'session_number': number,
        'label': f'Session {number}' if number is not None else 'Unassigned',
        'events': items,
    } for number, items in ordered])


@timeline_bp.route('/campaigns/<campaign_id>/timeline', methods=['POST'])
@login_required
def create_event(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_timeline_event(data))

    event = TimelineEvent(campaign_id=campaign.id, type='story', tags=[],
                          related_characters=[], related_locations=[])
    _apply_event(event, data)
    db.session.add(event)
    db.session.commit()
    return ok(event.to_dict(), 'Timeline event created successfully', 201)


@timeline_bp.route('/timeline/<event_id>', methods=['GET'])
@login_required
def get_event(event_id):
    event = get_owned(TimelineEvent, event_id, 'Timeline event')
    data = event.to_dict()
    chars = Character.query.filter(Character.id.in_(event.related_characters or [])).all()
    locs = Location.query.filter(Location.id.in_(event.related_locations or [])).all()
    data['characters'] = [{'id': c.id, 'name': c.name} for c in chars]
    data['locations'] = [{'id': loc.id, 'name': loc.name} for loc in locs]
    return ok(data)


@timeline_bp.route('/timeline/<event_id>', methods=['PUT'])
@login_required
def update_event(event_id):
    event = get_owned(TimelineEvent, event_id, 'Timeline event')
    data = get_json_body()
    check_errors(validate_timeline_event(data, partial=True))
    _apply_event(event, data)
    db.session.commit()
    return ok(event.to_dict(), 'Timeline event updated successfully')


@timeline_bp.route('/timeline/<event_id>', methods=['DELETE'])
@login_required
def delete_event(event_id):
    event = get_owned(TimelineEvent, event_id, 'Timeline event')
    db.session.delete(event)
    db.session.commit()
    return ok(None, 'Timeline event deleted successfully')


def _linked_entity(event, data, must_exist=True):
    entity_type = data.get('entity_type')
    if entity_type not in LINKABLE:
        raise BadRequest('entity_type must be "character" or "location"')
    model, attr = LINKABLE[entity_type]
    entity_id = data.get('entity_id') or None
    if must_exist:
        # Unlinking skips this so ids of since-deleted rows can still be removed
        entity_id = resolve_reference(model, entity_id, event.campaign_id,
                                      'entity_id', entity_type.title())
    if entity_id is None:
        raise BadRequest('entity_id is required')
    return attr, entity_id


@timeline_bp.route('/timeline/<event_id>/entities', methods=['POST'])
@login_required
def add_event_entity(event_id):
    event = get_owned(TimelineEvent, event_id, 'Timeline event')
    attr, entity_id = _linked_entity(event, get_json_body())

    current = list(getattr(event, attr) or [])
    if entity_id not in current:
        current.append(entity_id)
        setattr(event, attr, current)
        flag_modified(event, attr)
    db.session.commit()
    return ok(event.to_dict(), 'Entity linked to event')


@timeline_bp.route('/timeline/<event_id>/entities', methods=['DELETE'])
@login_required
def remove_event_entity(event_id):
    event = get_owned(TimelineEvent, event_id, 'Timeline event')
    attr, entity_id = _linked_entity(event, get_json_body(), must_exist=False)

    setattr(event, attr, [i for i in (getattr(event, attr) or []) if i != entity_id])
    flag_modified(event, attr)
    db.session.commit()
    return ok(event.to_dict(), 'Entity unlinked from event')
