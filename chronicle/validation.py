"""Request payload validation.

One function per entity type. Each takes the incoming field dict and returns
a dict of field name -> list of error messages; an empty dict means valid.
Nothing here touches the database: checks that need it (does this character
belong to the campaign?) live in the route helpers.

Pass partial=True when validating an update: only the keys present in the
payload are checked, so required fields may be omitted but not blanked.
"""

from chronicle.models import (
    CHARACTER_TYPES, LOCATION_TYPES, ITEM_TYPES, RELATIONSHIP_TYPES,
    EVENT_TYPES, QUEST_STATUSES, QUEST_PRIORITIES,
)

NAME_MAX = 255
DESCRIPTION_MAX = 10000
NOTE_CONTENT_MAX = 50000
RELATIONSHIP_DESCRIPTION_MAX = 1000
SHORT_TEXT_MAX = 100
TAGS_MAX = 20
TAG_LENGTH_MAX = 50


class _Checker:
    """Collects messages for one payload."""

    def __init__(self, data, partial):
        self.data = data or {}
        self.partial = partial
        self.errors = {}

    def add(self, field, message):
        self.errors.setdefault(field, []).append(message)

    def checks(self, field):
        # On partial updates, absent keys are left alone
        return not self.partial or field in self.data

    def required_text(self, field, label, max_length):
        if not self.checks(field):
            return
        value = self.data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            self.add(field, f'{label} is required')
        elif not isinstance(value, str):
            self.add(field, f'{label} must be text')
        elif len(value) > max_length:
            self.add(field, f'{label} cannot exceed {max_length:,} characters')

    def optional_text(self, field, label, max_length):
        value = self.data.get(field)
        if value is None:
            return
        if not isinstance(value, str):
            self.add(field, f'{label} must be text')
        elif len(value) > max_length:
            self.add(field, f'{label} cannot exceed {max_length:,} characters')

    def required_choice(self, field, label, choices):
        if not self.checks(field):
            return
        value = self.data.get(field)
        if not value:
            self.add(field, f'{label} is required')
        elif value not in choices:
            self.add(field, f'Invalid {label.lower()}. Must be one of: {", ".join(choices)}')

    def optional_choice(self, field, label, choices):
        value = self.data.get(field)
        if value is not None and value not in choices:
            self.add(field, f'Invalid {label.lower()}. Must be one of: {", ".join(choices)}')

    def optional_id(self, field, label):
        value = self.data.get(field)
        if value is not None and (not isinstance(value, str) or not value):
            self.add(field, f'{label} must be an id string')

    def optional_id_list(self, field, label):
        value = self.data.get(field)
        if value is None:
            return
        if not isinstance(value, list):
            self.add(field, f'{label} must be an array')
        elif not all(isinstance(v, str) for v in value):
            self.add(field, f'{label} must be an array of ids')

    def optional_int(self, field, label, minimum=None, maximum=None):
        value = self.data.get(field)
        if value is None:
            return
        # bool is an int subclass; "true" is not a session number
        if isinstance(value, bool) or not isinstance(value, int):
            self.add(field, f'{label} must be a whole number')
        elif minimum is not None and value < minimum:
            self.add(field, f'{label} must be at least {minimum}')
        elif maximum is not None and value > maximum:
            self.add(field, f'{label} cannot exceed {maximum}')

    def tags(self, field='tags'):
        if field not in self.data or self.data.get(field) is None:
            return
        for message in validate_tags(self.data[field]):
            self.add(field, message)


def validate_tags(tags):
    """Return a list of problems with a tag list (empty when fine)."""
    if not isinstance(tags, list):
        return ['Tags must be an array']
    problems = []
    if len(tags) > TAGS_MAX:
        problems.append(f'Maximum {TAGS_MAX} tags allowed')
    if not all(isinstance(tag, str) for tag in tags):
        problems.append('All tags must be strings')
    elif any(len(tag) > TAG_LENGTH_MAX for tag in tags):
        problems.append(f'Each tag cannot exceed {TAG_LENGTH_MAX} characters')
    return problems


def validate_campaign(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('name', 'Campaign name', NAME_MAX)
    c.optional_text('description', 'Campaign description', DESCRIPTION_MAX)
    return c.errors


def validate_character(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('name', 'Character name', NAME_MAX)
    c.required_choice('type', 'Character type', CHARACTER_TYPES)
    c.optional_text('race', 'Race', SHORT_TEXT_MAX)
    c.optional_text('class', 'Class', SHORT_TEXT_MAX)
    c.optional_text('description', 'Character description', DESCRIPTION_MAX)
    c.optional_id('location', 'Location')
    c.tags()
    return c.errors


def validate_location(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('name', 'Location name', NAME_MAX)
    c.required_choice('type', 'Location type', LOCATION_TYPES)
    c.optional_text('description', 'Location description', DESCRIPTION_MAX)
    c.optional_id('parent_location', 'Parent location')
    c.tags()
    return c.errors


def validate_item(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('name', 'Item name', NAME_MAX)
    c.required_choice('type', 'Item type', ITEM_TYPES)
    c.optional_text('description', 'Item description', DESCRIPTION_MAX)
    c.optional_id('owner', 'Owner')
    c.optional_id('location', 'Location')
    c.tags()
    return c.errors


def validate_note(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('title', 'Note title', NAME_MAX)
    c.required_text('content', 'Note content', NOTE_CONTENT_MAX)
    c.tags()
    return c.errors


def validate_relationship(data, partial=False):
    c = _Checker(data, partial)
    for field, label in (('from_character', 'Source character'),
                         ('to_character', 'Target character')):
        if c.checks(field) and not c.data.get(field):
            c.add(field, f'{label} is required')
        else:
            c.optional_id(field, label)
    source, target = c.data.get('from_character'), c.data.get('to_character')
    if source and target and source == target:
        c.add('to_character', 'Characters cannot have relationships with themselves')
    c.required_choice('type', 'Relationship type', RELATIONSHIP_TYPES)
    c.optional_text('description', 'Relationship description', RELATIONSHIP_DESCRIPTION_MAX)
    return c.errors


def validate_timeline_event(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('title', 'Event title', NAME_MAX)
    c.required_text('date', 'Event date', SHORT_TEXT_MAX)
    c.optional_text('description', 'Event description', DESCRIPTION_MAX)
    c.optional_int('session_number', 'Session number', minimum=0)
    c.optional_choice('type', 'Event type', EVENT_TYPES)
    c.optional_id_list('related_characters', 'Related characters')
    c.optional_id_list('related_locations', 'Related locations')
    c.tags()
    return c.errors


def validate_quest(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('title', 'Quest title', NAME_MAX)
    c.optional_text('description', 'Quest description', DESCRIPTION_MAX)
    c.optional_text('rewards', 'Rewards', DESCRIPTION_MAX)
    c.optional_choice('status', 'Quest status', QUEST_STATUSES)
    c.optional_choice('priority', 'Quest priority', QUEST_PRIORITIES)
    c.optional_id('quest_giver', 'Quest giver')
    c.optional_id_list('related_characters', 'Related characters')
    c.optional_id_list('related_locations', 'Related locations')
    c.tags()
    objectives = c.data.get('objectives')
    if objectives is not None:
        if not isinstance(objectives, list):
            c.add('objectives', 'Objectives must be an array')
        else:
            for index, objective in enumerate(objectives):
                if isinstance(objective, str):
                    objective = {'description': objective}
                elif not isinstance(objective, dict):
                    c.add('objectives', f'Objective {index + 1} must be text or an object')
                    continue
                for messages in validate_objective(objective).values():
                    for message in messages:
                        c.add('objectives', f'Objective {index + 1}: {message}')
    return c.errors


def validate_objective(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('description', 'Objective description', DESCRIPTION_MAX)
    completed = c.data.get('completed')
    if completed is not None and not isinstance(completed, bool):
        c.add('completed', 'Completed must be true or false')
    c.optional_id('id', 'Objective id')
    return c.errors


def validate_map(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('name', 'Map name', NAME_MAX)
    c.optional_text('description', 'Map description', DESCRIPTION_MAX)
    c.optional_text('image_url', 'Image URL', 1024)
    c.optional_int('width', 'Width', minimum=1)
    c.optional_int('height', 'Height', minimum=1)
    return c.errors


def validate_map_marker(data, partial=False):
    """Pins and routes share the same light rules: a label and a point list
    or coordinate pair, whatever the front end draws."""
    c = _Checker(data, partial)
    c.optional_text('name', 'Name', NAME_MAX)
    c.optional_text('description', 'Description', DESCRIPTION_MAX)
    c.optional_id('location_id', 'Location')
    for axis in ('x', 'y'):
        value = c.data.get(axis)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            c.add(axis, f'{axis} must be a number')
    points = c.data.get('points')
    if points is not None and not isinstance(points, list):
        c.add('points', 'Points must be an array')
    return c.errors


def validate_dice_roll(data, partial=False):
    c = _Checker(data, partial)
    c.required_text('expression', 'Dice expression', 50)
    c.optional_text('player_name', 'Player name', NAME_MAX)
    c.optional_text('context', 'Context', NAME_MAX)
    for flag in ('advantage', 'disadvantage', 'is_private'):
        value = c.data.get(flag)
        if value is not None and not isinstance(value, bool):
            c.add(flag, f'{flag} must be true or false')
    if c.data.get('advantage') and c.data.get('disadvantage'):
        c.add('advantage', 'Cannot roll with both advantage and disadvantage')
    c.tags()
    return c.errors


SEARCH_TEXT_CRITERIA = ('name', 'character_type', 'location_type', 'item_type', 'relationship_type',
                        'event_type', 'quest_status', 'date_from', 'date_to')


def validate_search_criteria(data):
    """Advanced search body: text criteria, tags as a string or string list,
    and a whole-number session."""
    c = _Checker(data, partial=True)
    for field in SEARCH_TEXT_CRITERIA:
        c.optional_text(field, field.replace('_', ' ').capitalize(), NAME_MAX)
    tags = c.data.get('tags')
    if tags is not None and not isinstance(tags, str) and not (
            isinstance(tags, list) and all(isinstance(tag, str) for tag in tags)):
        c.add('tags', 'Tags must be a comma-separated string or an array of strings')
    session_number = c.data.get('session_number')
    if isinstance(session_number, str):
        # Query-string style "3" is fine; blank means no filter
        if session_number.strip() and not session_number.strip().isdigit():
            c.add('session_number', 'Session number must be a whole number')
    else:
        c.optional_int('session_number', 'Session number', minimum=0)
    return c.errors
