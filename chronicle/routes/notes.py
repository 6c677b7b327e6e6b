from flask import Blueprint
from flask_login import login_required
from chronicle import db
from chronicle.markdown_render import render_markdown
from chronicle.models import Note
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, get_owned, list_response,
    check_errors, apply_fields,
)
from chronicle.validation import validate_note

notes_bp = Blueprint('notes', __name__, url_prefix='/api')

NOTE_FIELDS = {'title': 'title', 'content': 'content', 'tags': 'tags'}


def _note_with_html(note):
    data = note.to_dict()
    data['content_html'] = render_markdown(note.content)
    return data


@notes_bp.route('/campaigns/<campaign_id>/notes', methods=['GET'])
@login_required
def list_notes(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    return list_response(Note.query.filter_by(campaign_id=campaign.id), Note,
                         search_fields=('title', 'content'),
                         sortable=('created_at', 'updated_at', 'title'))


@notes_bp.route('/campaigns/<campaign_id>/notes', methods=['POST'])
@login_required
def create_note(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_note(data))

    note = Note(campaign_id=campaign.id, tags=[])
    apply_fields(note, data, NOTE_FIELDS)
    db.session.add(note)
    db.session.commit()
    return ok(_note_with_html(note), 'Note created successfully', 201)


@notes_bp.route('/notes/<note_id>', methods=['GET'])
@login_required
def get_note(note_id):
    return ok(_note_with_html(get_owned(Note, note_id, 'Note')))


@notes_bp.route('/notes/<note_id>', methods=['PUT'])
@login_required
def update_note(note_id):
    note = get_owned(Note, note_id, 'Note')
    data = get_json_body()
    check_errors(validate_note(data, partial=True))
    apply_fields(note, data, NOTE_FIELDS)
    db.session.commit()
    return ok(_note_with_html(note), 'Note updated successfully')


@notes_bp.route('/notes/<note_id>', methods=['DELETE'])
@login_required
def delete_note(note_id):
    note = get_owned(Note, note_id, 'Note')
    db.session.delete(note)
    db.session.commit()
    return ok(None, 'Note deleted successfully')
