from chronicle.validation import (
    validate_campaign, validate_character, validate_dice_roll, validate_note,
    validate_quest, validate_relationship, validate_search_criteria, validate_tags,
    validate_timeline_event,
)


def test_campaign_name_required_and_bounded():
    assert validate_campaign({'name': 'Storm Coast'}) == {}
    assert validate_campaign({'name': '   '}) == {'name': ['Campaign name is required']}
    errors = validate_campaign({'name': 'x' * 256})
    assert errors['name'] == ['Campaign name cannot exceed 255 characters']


def test_partial_update_skips_absent_fields():
    assert validate_character({'race': 'Dwarf'}, partial=True) == {}
    # Present but blank is still an error
    assert 'name' in validate_character({'name': ''}, partial=True)


def test_character_type_must_be_known():
    errors = validate_character({'name': 'Mira', 'type': 'Wizard'})
    assert errors['type'][0].startswith('Invalid character type. Must be one of: PC, NPC')


def test_tags_limits():
    assert validate_tags(['a', 'b']) == []
    assert validate_tags('a,b') == ['Tags must be an array']
    assert validate_tags(['t'] * 21) == ['Maximum 20 tags allowed']
    assert validate_tags(['x' * 51]) == ['Each tag cannot exceed 50 characters']
    assert validate_tags([1, 2]) == ['All tags must be strings']


def test_note_content_limit():
    errors = validate_note({'title': 'Long', 'content': 'x' * 50001})
    assert errors == {'content': ['Note content cannot exceed 50,000 characters']}


def test_relationship_self_reference():
    errors = validate_relationship({'from_character': 'a', 'to_character': 'a', 'type': 'ally'})
    assert errors == {'to_character': ['Characters cannot have relationships with themselves']}


def test_relationship_requires_both_ends():
    errors = validate_relationship({'type': 'ally'})
    assert set(errors) == {'from_character', 'to_character'}


def test_timeline_session_number():
    base = {'title': 'Ambush', 'date': 'Day 3'}
    assert validate_timeline_event(base) == {}
    assert 'session_number' in validate_timeline_event(dict(base, session_number=-1))
    assert 'session_number' in validate_timeline_event(dict(base, session_number='3'))
    assert 'session_number' in validate_timeline_event(dict(base, session_number=True))


def test_quest_objectives_shape():
    assert validate_quest({'title': 'Q', 'objectives': ['a', {'description': 'b'}]}) == {}
    assert 'objectives' in validate_quest({'title': 'Q', 'objectives': [{'completed': True}]})
    errors = validate_quest({'title': 'Q', 'objectives': [{'description': 5}, 'ok', None]})
    assert errors['objectives'] == ['Objective 1: Objective description must be text',
                                    'Objective 3 must be text or an object']
    assert 'status' in validate_quest({'title': 'Q', 'status': 'abandoned'})


def test_dice_roll_flags():
    assert validate_dice_roll({'expression': '1d20', 'advantage': True}) == {}
    errors = validate_dice_roll({'expression': '1d20', 'advantage': True, 'disadvantage': True})
    assert 'advantage' in errors
    assert 'is_private' in validate_dice_roll({'expression': '1d20', 'is_private': 'yes'})


def test_search_criteria_types():
    assert validate_search_criteria({'name': 'dragon', 'tags': 'party,clue', 'session_number': '3'}) == {}
    assert validate_search_criteria({'tags': ['party'], 'session_number': 2}) == {}
    errors = validate_search_criteria({'name': 5, 'tags': [1], 'quest_status': ['active'],
                                       'session_number': 'three'})
    assert set(errors) == {'name', 'tags', 'quest_status', 'session_number'}
