"""
chronicle/search.py: Campaign-scoped search

Everything here is plain substring matching (ILIKE '%q%') over a few text
columns per entity type. Each type is queried on its own and capped at
RESULT_LIMIT rows; there is no relevance ranking, rows come back in the
database's default order.

Public functions:
  global_search(campaign_id, q, types)       -> {type: [hit, ...]}
  search_by_tags(campaign_id, tags)          -> {tag: {type: [hit, ...]}}
  advanced_search(campaign_id, criteria)     -> combination of the above plus type filters
  search_suggestions(campaign_id, partial)   -> sorted name completions
"""

import json

from sqlalchemy import String, cast, or_

from chronicle.markdown_render import excerpt
from chronicle.models import Character, Location, Item, Note, Relationship, TimelineEvent, Quest

RESULT_LIMIT = 10
SUGGESTION_LIMIT = 10
SUGGESTIONS_PER_TYPE = 5

DEFAULT_TYPES = ('characters', 'locations', 'items', 'notes', 'timeline_events')
ALL_TYPES = DEFAULT_TYPES + ('relationships', 'quests')

# Types whose rows carry a JSON "tags" list
TAGGED_MODELS = {
    'characters': Character,
    'locations': Location,
    'items': Item,
    'notes': Note,
    'timeline_events': TimelineEvent,
    'quests': Quest,
}


def tag_filter(model, tag):
    """SQL clause matching rows whose JSON tags list contains `tag` exactly.

    Tags are stored as a JSON array string. A LIKE on the JSON-encoded tag
    (quotes included, wildcards escaped) narrows the candidates; membership
    is then checked on the decoded list, since LIKE ignores case on SQLite.
    """
    candidates = model.query.with_entities(model.id, model.tags) \
        .filter(cast(model.tags, String).contains(json.dumps(tag), autoescape=True)).all()
    return model.id.in_([row_id for row_id, tags in candidates if tag in (tags or [])])


def _character_hit(c):
    return {
        'id': c.id,
        'type': 'character',
        'name': c.name,
        'description': c.description,
        'meta': {'race': c.race, 'class': c.character_class, 'character_type': c.type},
    }


def _location_hit(loc):
    return {
        'id': loc.id,
        'type': 'location',
        'name': loc.name,
        'description': loc.description,
        'meta': {'location_type': loc.type, 'parent_location': loc.parent_id},
    }


def _item_hit(item):
    return {
        'id': item.id,
        'type': 'item',
        'name': item.name,
        'description': item.description,
        'meta': {
            'item_type': item.type,
            'owner': item.owner.name if item.owner else None,
            'location': item.location.name if item.location else None,
        },
    }


def _note_hit(note):
    return {
        'id': note.id,
        'type': 'note',
        'name': note.title,
        'description': excerpt(note.content),
        'meta': {
            'word_count': len((note.content or '').split()),
            'created_at': note.created_at.isoformat() if note.created_at else None,
        },
    }


def _event_hit(event):
    return {
        'id': event.id,
        'type': 'timeline_event',
        'name': event.title,
        'description': event.description,
        'meta': {
            'event_type': event.type,
            'session_number': event.session_number,
            'date': event.date,
            'related_characters_count': len(event.related_characters or []),
            'related_locations_count': len(event.related_locations or []),
        },
    }


def _relationship_hit(rel):
    source = rel.from_character.name if rel.from_character else None
    target = rel.to_character.name if rel.to_character else None
    return {
        'id': rel.id,
        'type': 'relationship',
        'name': f'{source} -> {target}',
        'description': rel.description,
        'meta': {'relationship_type': rel.type, 'from_character': source, 'to_character': target},
    }


def _quest_hit(quest):
    return {
        'id': quest.id,
        'type': 'quest',
        'name': quest.title,
        'description': quest.description,
        'meta': {'status': quest.status, 'priority': quest.priority,
                 'completion_percentage': quest.completion_percentage},
    }


# type key -> (model, searched columns, hit formatter)
SEARCH_CONFIG = {
    'characters': (Character, ('name', 'description', 'race', 'character_class'), _character_hit),
    'locations': (Location, ('name', 'description'), _location_hit),
    'items': (Item, ('name', 'description'), _item_hit),
    'notes': (Note, ('title', 'content'), _note_hit),
    'timeline_events': (TimelineEvent, ('title', 'description'), _event_hit),
    'relationships': (Relationship, ('description',), _relationship_hit),
    'quests': (Quest, ('title', 'description'), _quest_hit),
}


def parse_types(raw):
    """Turn "characters,notes" (or a list) into a tuple of known type keys."""
    if not raw:
        return DEFAULT_TYPES
    if isinstance(raw, str):
        raw = raw.split(',')
    wanted = [t.strip() for t in raw if t and t.strip()]
    return tuple(t for t in wanted if t in SEARCH_CONFIG) or DEFAULT_TYPES


def search_type(campaign_id, type_key, q, limit=RESULT_LIMIT):
    model, fields, to_hit = SEARCH_CONFIG[type_key]
    pattern = f'%{q}%'
    query = model.query.filter(
        model.campaign_id == campaign_id,
        or_(*[getattr(model, f).ilike(pattern) for f in fields]),
    )
    return [to_hit(row) for row in query.limit(limit).all()]


def global_search(campaign_id, q, types=None):
    q = (q or '').strip()
    if not q:
        return {}
    return {type_key: search_type(campaign_id, type_key, q) for type_key in parse_types(types)}


def search_by_tags(campaign_id, tags):
    """For each tag, the entities carrying it, grouped by type."""
    if isinstance(tags, str):
        tags = tags.split(',')
    results = {}
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        per_type = {}
        for type_key, model in TAGGED_MODELS.items():
            to_hit = SEARCH_CONFIG[type_key][2]
            rows = model.query.filter(model.campaign_id == campaign_id, tag_filter(model, tag)) \
                .limit(RESULT_LIMIT).all()
            per_type[type_key] = [to_hit(row) for row in rows]
        results[tag] = per_type
    return results


def _by_column(model, campaign_id, column, value, to_hit, order_by=None):
    query = model.query.filter(model.campaign_id == campaign_id, getattr(model, column) == value)
    if order_by is not None:
        query = query.order_by(*order_by)
    return [to_hit(row) for row in query.all()]


def _timeline_order():
    return (TimelineEvent.session_number.asc(), TimelineEvent.date.asc(), TimelineEvent.created_at.asc())


def search_timeline_by_date_range(campaign_id, date_from=None, date_to=None):
    # Dates are free text; this compares them as strings, which is right for
    # ISO-style dates and "Year 1042" style calendars with fixed-width years.
    query = TimelineEvent.query.filter(TimelineEvent.campaign_id == campaign_id)
    if date_from:
        query = query.filter(TimelineEvent.date >= date_from)
    if date_to:
        query = query.filter(TimelineEvent.date <= date_to)
    return [_event_hit(e) for e in query.order_by(*_timeline_order()).all()]


def advanced_search(campaign_id, criteria):
    criteria = criteria or {}
    results = {}

    if criteria.get('name'):
        results['by_name'] = global_search(campaign_id, criteria['name'])
    if criteria.get('tags'):
        results['by_tags'] = search_by_tags(campaign_id, criteria['tags'])
    if criteria.get('character_type'):
        results['by_character_type'] = _by_column(
            Character, campaign_id, 'type', criteria['character_type'], _character_hit)
    if criteria.get('location_type'):
        results['by_location_type'] = _by_column(
            Location, campaign_id, 'type', criteria['location_type'], _location_hit)
    if criteria.get('item_type'):
        results['by_item_type'] = _by_column(
            Item, campaign_id, 'type', criteria['item_type'], _item_hit)
    if criteria.get('relationship_type'):
        results['by_relationship_type'] = _by_column(
            Relationship, campaign_id, 'type', criteria['relationship_type'], _relationship_hit)
    if criteria.get('session_number') is not None and criteria.get('session_number') != '':
        try:
            session_number = int(criteria['session_number'])
        except (TypeError, ValueError):
            session_number = None
        if session_number is not None:
            results['by_session'] = _by_column(
                TimelineEvent, campaign_id, 'session_number', session_number, _event_hit,
                order_by=_timeline_order())
    if criteria.get('event_type'):
        results['by_event_type'] = _by_column(
            TimelineEvent, campaign_id, 'type', criteria['event_type'], _event_hit,
            order_by=_timeline_order())
    if criteria.get('date_from') or criteria.get('date_to'):
        results['by_date_range'] = search_timeline_by_date_range(
            campaign_id, criteria.get('date_from'), criteria.get('date_to'))
    if criteria.get('quest_status'):
        results['by_quest_status'] = _by_column(
            Quest, campaign_id, 'status', criteria['quest_status'], _quest_hit)

    return results


def search_suggestions(campaign_id, partial):
    """Names starting with `partial`, for type-ahead. Needs at least 2 characters."""
    partial = (partial or '').strip()
    if len(partial) < 2:
        return []
    names = set()
    for model in (Character, Location, Item):
        rows = model.query.filter(model.campaign_id == campaign_id,
                                  model.name.ilike(f'{partial}%')) \
            .limit(SUGGESTIONS_PER_TYPE).all()
        names.update(row.name for row in rows)
    return sorted(names)[:SUGGESTION_LIMIT]
