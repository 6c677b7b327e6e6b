import uuid
from datetime import datetime
from flask import Blueprint, request
from flask_login import login_required
from sqlalchemy.orm.attributes import flag_modified
from chronicle import db
from chronicle.errors import NotFound
from chronicle.export import type_breakdown
from chronicle.models import Quest, Character, Location, QUEST_STATUSES, QUEST_PRIORITIES
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields, resolve_reference, resolve_reference_list,
)
from chronicle.validation import validate_quest, validate_objective

quests_bp = Blueprint('quests', __name__, url_prefix='/api')

QUEST_FIELDS = {
    'title': 'title',
    'description': 'description',
    'status': 'status',
    'priority': 'priority',
    'rewards': 'rewards',
    'tags': 'tags',
}


def _now_iso():
    return datetime.utcnow().isoformat() + 'Z'


def make_objective(description, completed=False):
    return {
        'id': str(uuid.uuid4()),
        'description': description.strip(),
        'completed': bool(completed),
        'completed_at': _now_iso() if completed else None,
    }


def _normalize_objectives(raw):
    """Accept plain strings or {"description", "completed"} dicts."""
    objectives = []
    for entry in raw or []:
        if isinstance(entry, str):
            objectives.append(make_objective(entry))
        else:
            objective = make_objective(entry['description'], entry.get('completed', False))
            if entry.get('id'):
                objective['id'] = entry['id']
            objectives.append(objective)
    return objectives


def _set_status(quest, status):
    """Keep completed_at in step with the status."""
    if status == 'completed' and quest.completed_at is None:
        quest.completed_at = datetime.utcnow()
    elif status != 'completed':
        quest.completed_at = None


def _apply_quest(quest, data):
    apply_fields(quest, data, QUEST_FIELDS)
    if 'status' in data:
        _set_status(quest, quest.status)
    if 'quest_giver' in data:
        quest.quest_giver_id = resolve_reference(Character, data['quest_giver'], quest.campaign_id,
                                                 'quest_giver', 'Quest giver')
    if 'related_characters' in data:
        quest.related_characters = resolve_reference_list(
            Character, data['related_characters'], quest.campaign_id, 'related_characters', 'Character')
    if 'related_locations' in data:
        quest.related_locations = resolve_reference_list(
            Location, data['related_locations'], quest.campaign_id, 'related_locations', 'Location')
    if 'objectives' in data:
        quest.objectives = _normalize_objectives(data['objectives'])


def _find_objective(quest, objective_id):
    for index, objective in enumerate(quest.objectives or []):
        if objective.get('id') == objective_id:
            return index
    raise NotFound('Objective not found')


@quests_bp.route('/campaigns/<campaign_id>/quests', methods=['GET'])
@login_required
def list_quests(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    query = Quest.query.filter_by(campaign_id=campaign.id)
    if request.args.get('status') in QUEST_STATUSES:
        query = query.filter(Quest.status == request.args['status'])
    if request.args.get('priority') in QUEST_PRIORITIES:
        query = query.filter(Quest.priority == request.args['priority'])
    return list_response(query, Quest, search_fields=('title', 'description'),
                         sortable=('created_at', 'updated_at', 'title', 'status', 'priority'))


@quests_bp.route('/campaigns/<campaign_id>/quests/statistics')
@login_required
def quest_statistics(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    by_status = type_breakdown(Quest, campaign.id, column='status')
    by_priority = type_breakdown(Quest, campaign.id, column='priority')
    return ok({
        'total': sum(by_status.values()),
        'by_status': {status: by_status.get(status, 0) for status in QUEST_STATUSES},
        'by_priority': {priority: by_priority.get(priority, 0) for priority in QUEST_PRIORITIES},
    })


@quests_bp.route('/campaigns/<campaign_id>/quests', methods=['POST'])
@login_required
def create_quest(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_quest(data))

    quest = Quest(campaign_id=campaign.id, status='active', priority='medium', tags=[],
                  objectives=[], related_characters=[], related_locations=[])
    _apply_quest(quest, data)
    db.session.add(quest)
    db.session.commit()
    return ok(quest.to_dict(), 'Quest created successfully', 201)


@quests_bp.route('/quests/<quest_id>', methods=['GET'])
@login_required
def get_quest(quest_id):
    return ok(get_owned(Quest, quest_id, 'Quest').to_dict())


@quests_bp.route('/quests/<quest_id>', methods=['PUT'])
@login_required
def update_quest(quest_id):
    quest = get_owned(Quest, quest_id, 'Quest')
    data = get_json_body()
    check_errors(validate_quest(data, partial=True))
    _apply_quest(quest, data)
    db.session.commit()
    return ok(quest.to_dict(), 'Quest updated successfully')


@quests_bp.route('/quests/<quest_id>', methods=['DELETE'])
@login_required
def delete_quest(quest_id):
    quest = get_owned(Quest, quest_id, 'Quest')
    db.session.delete(quest)
    db.session.commit()
    return ok(None, 'Quest deleted successfully')


@quests_bp.route('/quests/<quest_id>/objectives', methods=['POST'])
@login_required
def add_objective(quest_id):
    quest = get_owned(Quest, quest_id, 'Quest')
    data = get_json_body()
    check_errors(validate_objective(data))

    objective = make_objective(data['description'], data.get('completed', False))
    quest.objectives = list(quest.objectives or []) + [objective]
    flag_modified(quest, 'objectives')
    db.session.commit()
    return ok(quest.to_dict(), 'Objective added', 201)


@quests_bp.route('/quests/<quest_id>/objectives/<objective_id>', methods=['PUT'])
@login_required
def update_objective(quest_id, objective_id):
    quest = get_owned(Quest, quest_id, 'Quest')
    data = get_json_body()
    check_errors(validate_objective(data, partial=True))

    objectives = [dict(o) for o in quest.objectives or []]
    objective = objectives[_find_objective(quest, objective_id)]
    if 'description' in data:
        objective['description'] = data['description'].strip()
    if 'completed' in data and data['completed'] != objective.get('completed'):
        objective['completed'] = data['completed']
        objective['completed_at'] = _now_iso() if data['completed'] else None

    quest.objectives = objectives
    flag_modified(quest, 'objectives')
    db.session.commit()
    return ok(quest.to_dict(), 'Objective updated')


@quests_bp.route('/quests/<quest_id>/objectives/<objective_id>', methods=['DELETE'])
@login_required
def remove_objective(quest_id, objective_id):
    quest = get_owned(Quest, quest_id, 'Quest')
    _find_objective(quest, objective_id)
    quest.objectives = [o for o in quest.objectives or [] if o.get('id') != objective_id]
    flag_modified(quest, 'objectives')
    db.session.commit()
    return ok(quest.to_dict(), 'Objective removed')


@quests_bp.route('/quests/<quest_id>/complete', methods=['POST'])
@login_required
def complete_quest(quest_id):
    """Mark the quest and every open objective as completed."""
    quest = get_owned(Quest, quest_id, 'Quest')
    stamp = _now_iso()
    objectives = []
    for objective in quest.objectives or []:
        objective = dict(objective)
        if not objective.get('completed'):
            objective['completed'] = True
            objective['completed_at'] = stamp
        objectives.append(objective)
    quest.objectives = objectives
    flag_modified(quest, 'objectives')
    quest.status = 'completed'
    _set_status(quest, 'completed')
    db.session.commit()
    return ok(quest.to_dict(), 'Quest completed')
