"""
chronicle/export.py: Campaign export and import

Exports come in two shapes:
  - a JSON envelope: {"meta": {...}, "campaign": {...}, "characters": [...], ...}
  - one CSV document per entity type, for spreadsheets

Imports take the JSON envelope back and always create a NEW campaign
("<name> (Imported)") owned by the importing user, with fresh ids. References
between entities (an item's owner, a location's parent, a timeline event's
related characters, ...) are rewritten through an old id -> new id map.
"""

import csv
import io
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from chronicle import db
from chronicle.errors import BadRequest
from chronicle.models import (
    Campaign, Character, Location, Item, Note, Relationship, TimelineEvent, Quest,
    CHARACTER_TYPES, LOCATION_TYPES, ITEM_TYPES, RELATIONSHIP_TYPES, EVENT_TYPES,
    QUEST_STATUSES, QUEST_PRIORITIES,
)

# Collections written to (and read from) the JSON envelope, in export order
EXPORT_ENTITIES = {
    'characters': Character,
    'locations': Location,
    'items': Item,
    'notes': Note,
    'relationships': Relationship,
    'timeline_events': TimelineEvent,
    'quests': Quest,
}

REQUIRED_IMPORT_KEYS = ('campaign', 'characters', 'locations', 'items', 'notes',
                        'relationships', 'timeline_events')
IMPORT_SECTIONS = ('characters', 'locations', 'items', 'notes', 'relationships',
                   'timeline_events', 'quests')

EXPORT_FORMATS = {
    'json': 'JSON (complete data)',
    'csv_characters': 'CSV - Characters',
    'csv_locations': 'CSV - Locations',
    'csv_items': 'CSV - Items',
    'csv_notes': 'CSV - Notes',
    'csv_relationships': 'CSV - Relationships',
    'csv_timeline_events': 'CSV - Timeline Events',
    'csv_quests': 'CSV - Quests',
}


def type_breakdown(model, campaign_id, column='type'):
    """{value: count} for one column of one entity type in a campaign."""
    col = getattr(model, column)
    rows = db.session.query(col, func.count(model.id)) \
        .filter(model.campaign_id == campaign_id) \
        .group_by(col).all()
    return {value: count for value, count in rows if value is not None}


def campaign_statistics(campaign):
    stats = {
        f'total_{key}': model.query.filter_by(campaign_id=campaign.id).count()
        for key, model in EXPORT_ENTITIES.items()
    }
    stats['character_breakdown'] = type_breakdown(Character, campaign.id)
    stats['location_breakdown'] = type_breakdown(Location, campaign.id)
    stats['item_breakdown'] = type_breakdown(Item, campaign.id)
    return stats


def export_campaign(campaign, entities=None, include_stats=False):
    """Build the JSON export envelope for a campaign.

    `entities` limits which collections are included (all when None).
    """
    config = current_app.config
    data = {
        'meta': {
            'exported_at': datetime.utcnow().isoformat() + 'Z',
            'version': config.get('EXPORT_VERSION', '1.0.0'),
            'exporter': config.get('EXPORTER_NAME', 'Campaign Chronicle'),
            'campaign_id': campaign.id,
            'campaign_name': campaign.name,
        },
        'campaign': {
            'id': campaign.id,
            'name': campaign.name,
            'description': campaign.description,
            'created_at': campaign.created_at.isoformat() if campaign.created_at else None,
            'updated_at': campaign.updated_at.isoformat() if campaign.updated_at else None,
        },
    }

    for key, model in EXPORT_ENTITIES.items():
        if entities and key not in entities:
            continue
        rows = model.query.filter_by(campaign_id=campaign.id).order_by(model.created_at).all()
        data[key] = [row.to_dict() for row in rows]

    if include_stats:
        data['statistics'] = campaign_statistics(campaign)
    return data


# --- CSV ---------------------------------------------------------------------

def _joined(values):
    return ', '.join(str(v) for v in (values or []))


def _iso(value):
    return value.isoformat() if value else ''


# entity type -> (model, header row, row builder)
CSV_LAYOUTS = {
    'characters': (
        Character,
        ['ID', 'Name', 'Type', 'Race', 'Class', 'Location', 'Description', 'Tags', 'Created At'],
        lambda c: [c.id, c.name, c.type, c.race, c.character_class,
                   c.location.name if c.location else '', c.description,
                   _joined(c.tags), _iso(c.created_at)],
    ),
    'locations': (
        Location,
        ['ID', 'Name', 'Type', 'Parent Location', 'Description', 'Tags', 'Created At'],
        lambda loc: [loc.id, loc.name, loc.type, loc.parent.name if loc.parent else '',
                     loc.description, _joined(loc.tags), _iso(loc.created_at)],
    ),
    'items': (
        Item,
        ['ID', 'Name', 'Type', 'Owner', 'Location', 'Description', 'Tags', 'Created At'],
        lambda i: [i.id, i.name, i.type, i.owner.name if i.owner else '',
                   i.location.name if i.location else '', i.description,
                   _joined(i.tags), _iso(i.created_at)],
    ),
    'notes': (
        Note,
        ['ID', 'Title', 'Content', 'Word Count', 'Tags', 'Created At'],
        lambda n: [n.id, n.title, n.content, len((n.content or '').split()),
                   _joined(n.tags), _iso(n.created_at)],
    ),
    'relationships': (
        Relationship,
        ['ID', 'From Character', 'To Character', 'Type', 'Description', 'Created At'],
        lambda r: [r.id, r.from_character.name if r.from_character else '',
                   r.to_character.name if r.to_character else '', r.type,
                   r.description, _iso(r.created_at)],
    ),
    'timeline_events': (
        TimelineEvent,
        ['ID', 'Title', 'Description', 'Date', 'Session Number', 'Type',
         'Related Characters', 'Related Locations', 'Tags', 'Created At'],
        lambda e: [e.id, e.title, e.description, e.date, e.session_number, e.type,
                   _joined(e.related_characters), _joined(e.related_locations),
                   _joined(e.tags), _iso(e.created_at)],
    ),
    'quests': (
        Quest,
        ['ID', 'Title', 'Status', 'Priority', 'Quest Giver', 'Completion', 'Description',
         'Rewards', 'Tags', 'Created At'],
        lambda q: [q.id, q.title, q.status, q.priority,
                   q.quest_giver.name if q.quest_giver else '',
                   f'{q.completion_percentage}%', q.description, q.rewards,
                   _joined(q.tags), _iso(q.created_at)],
    ),
}


def export_csv(campaign, entity_type):
    """Render one entity type of a campaign as a CSV string.

    Fields containing commas, quotes or newlines are quoted, with embedded
    quotes doubled (standard RFC 4180 escaping).
    """
    if entity_type not in CSV_LAYOUTS:
        raise BadRequest(f'Invalid entity type: {entity_type}. '
                         f'Choose one of: {", ".join(CSV_LAYOUTS)}')
    model, headers, build_row = CSV_LAYOUTS[entity_type]

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(headers)
    rows = model.query.filter_by(campaign_id=campaign.id).order_by(model.created_at).all()
    for row in rows:
        writer.writerow(['' if value is None else value for value in build_row(row)])
    return buf.getvalue()


# --- Import ------------------------------------------------------------------

def validate_import_data(data):
    """Return a list of problems with an import envelope (empty when usable).

    Only the shape is checked: required sections, a version, a campaign
    object with a name, and entity sections that are lists of objects.
    Entity field values are taken as-is.
    """
    if not isinstance(data, dict):
        return ['Import data must be a JSON object']
    errors = []
    for key in REQUIRED_IMPORT_KEYS:
        if key not in data or data[key] is None:
            errors.append(f'Missing required import section: {key}')
    meta = data.get('meta')
    if not isinstance(meta, dict) or not meta.get('version'):
        errors.append('Missing version information in import data')
    campaign = data.get('campaign')
    if campaign is not None and not isinstance(campaign, dict):
        errors.append('Campaign must be a JSON object')
    elif isinstance(campaign, dict) and not (isinstance(campaign.get('name'), str) and campaign['name'].strip()):
        errors.append('Campaign name is required in import data')
    for key in IMPORT_SECTIONS:
        rows = data.get(key)
        if rows is None:
            continue
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            errors.append(f'Import section {key} must be a list of objects')
    return errors


def _choice(value, allowed, default):
    return value if value in allowed else default


def _remap_list(ids, id_map):
    # References to rows that weren't part of the import are dropped
    return [id_map[old] for old in (ids or []) if old in id_map]


def import_campaign(user, data):
    """Create a new campaign for `user` from an export envelope.

    Returns (campaign, counts) where counts is {entity type: rows created}.
    Raises BadRequest if the envelope fails validate_import_data().
    """
    problems = validate_import_data(data)
    if problems:
        raise BadRequest('Invalid import data', errors={'import': problems})

    source = data['campaign']
    campaign = Campaign(
        user_id=user.id,
        name=f"{source['name']} (Imported)"[:255],
        description=source.get('description'),
    )
    db.session.add(campaign)
    db.session.flush()

    location_ids, character_ids = {}, {}
    counts = {}

    # Locations first, parents patched in a second pass once every id exists
    created_locations = []
    for row in data.get('locations') or []:
        loc = Location(
            campaign_id=campaign.id,
            name=row.get('name') or 'Unnamed location',
            type=_choice(row.get('type'), LOCATION_TYPES, 'Region'),
            description=row.get('description'),
            tags=row.get('tags') or [],
        )
        db.session.add(loc)
        db.session.flush()
        location_ids[row.get('id')] = loc.id
        created_locations.append((loc, row.get('parent_location')))
    for loc, old_parent in created_locations:
        loc.parent_id = location_ids.get(old_parent)
    counts['locations'] = len(created_locations)

    for row in data.get('characters') or []:
        character = Character(
            campaign_id=campaign.id,
            name=row.get('name') or 'Unnamed character',
            type=_choice(row.get('type'), CHARACTER_TYPES, 'NPC'),
            race=row.get('race'),
            character_class=row.get('class'),
            location_id=location_ids.get(row.get('location')),
            description=row.get('description'),
            tags=row.get('tags') or [],
        )
        db.session.add(character)
        db.session.flush()
        character_ids[row.get('id')] = character.id
    counts['characters'] = len(character_ids)

    for row in data.get('items') or []:
        db.session.add(Item(
            campaign_id=campaign.id,
            name=row.get('name') or 'Unnamed item',
            type=_choice(row.get('type'), ITEM_TYPES, 'Treasure'),
            owner_id=character_ids.get(row.get('owner')),
            location_id=location_ids.get(row.get('location')),
            description=row.get('description'),
            tags=row.get('tags') or [],
        ))
    counts['items'] = len(data.get('items') or [])

    for row in data.get('notes') or []:
        db.session.add(Note(
            campaign_id=campaign.id,
            title=row.get('title') or 'Untitled note',
            content=row.get('content') or '',
            tags=row.get('tags') or [],
        ))
    counts['notes'] = len(data.get('notes') or [])

    # A relationship needs both ends; the (from, to) pair must stay unique
    seen_pairs = set()
    for row in data.get('relationships') or []:
        source_id = character_ids.get(row.get('from_character'))
        target_id = character_ids.get(row.get('to_character'))
        if not source_id or not target_id or source_id == target_id:
            continue
        if (source_id, target_id) in seen_pairs:
            continue
        seen_pairs.add((source_id, target_id))
        db.session.add(Relationship(
            campaign_id=campaign.id,
            from_character_id=source_id,
            to_character_id=target_id,
            type=_choice(row.get('type'), RELATIONSHIP_TYPES, 'neutral'),
            description=row.get('description'),
        ))
    counts['relationships'] = len(seen_pairs)

    for row in data.get('timeline_events') or []:
        db.session.add(TimelineEvent(
            campaign_id=campaign.id,
            title=row.get('title') or 'Untitled event',
            description=row.get('description'),
            date=row.get('date') or '',
            session_number=row.get('session_number'),
            type=_choice(row.get('type'), EVENT_TYPES, 'story'),
            tags=row.get('tags') or [],
            related_characters=_remap_list(row.get('related_characters'), character_ids),
            related_locations=_remap_list(row.get('related_locations'), location_ids),
        ))
    counts['timeline_events'] = len(data.get('timeline_events') or [])

    # Quests are optional in the envelope (older exports don't have them)
    for row in data.get('quests') or []:
        db.session.add(Quest(
            campaign_id=campaign.id,
            title=row.get('title') or 'Untitled quest',
            description=row.get('description'),
            status=_choice(row.get('status'), QUEST_STATUSES, 'active'),
            priority=_choice(row.get('priority'), QUEST_PRIORITIES, 'medium'),
            quest_giver_id=character_ids.get(row.get('quest_giver')),
            rewards=row.get('rewards'),
            objectives=row.get('objectives') or [],
            related_characters=_remap_list(row.get('related_characters'), character_ids),
            related_locations=_remap_list(row.get('related_locations'), location_ids),
            tags=row.get('tags') or [],
        ))
    counts['quests'] = len(data.get('quests') or [])

    db.session.commit()
    current_app.logger.info(f'Imported campaign {campaign.id} for user {user.id}: {counts}')
    return campaign, counts
