import re
from flask import Blueprint, Response, current_app, request
from flask_login import login_required, current_user
from chronicle import limiter
from chronicle.export import EXPORT_ENTITIES, EXPORT_FORMATS, export_campaign, export_csv, import_campaign
from chronicle.routes.helpers import ok, get_json_body, get_owned_campaign

export_bp = Blueprint('export', __name__, url_prefix='/api')


def _safe_filename(name):
    return re.sub(r'[^A-Za-z0-9_-]+', '_', name).strip('_') or 'campaign'


@export_bp.route('/campaigns/<campaign_id>/export')
@login_required
def export_json(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    entities = request.args.get('entities')
    if entities:
        entities = [e.strip() for e in entities.split(',') if e.strip() in EXPORT_ENTITIES]
    include_stats = request.args.get('include_stats') in ('1', 'true', 'yes')
    data = export_campaign(campaign, entities=entities or None, include_stats=include_stats)
    current_app.logger.info(f'Campaign {campaign.id} exported by {current_user.username}')
    return ok(data, 'Campaign exported successfully')


@export_bp.route('/campaigns/<campaign_id>/export/csv/<entity_type>')
@login_required
def export_entity_csv(campaign_id, entity_type):
    campaign = get_owned_campaign(campaign_id)
    body = export_csv(campaign, entity_type)
    filename = f'{_safe_filename(campaign.name)}_{entity_type}.csv'
    return Response(body, mimetype='text/csv',
                    headers={'Content-Disposition': f'attachment; filename="{filename}"'})


@export_bp.route('/export/formats')
@login_required
def export_formats():
    return ok(EXPORT_FORMATS)


@export_bp.route('/import', methods=['POST'])
@limiter.limit('10 per minute')
@login_required
def import_json():
    data = get_json_body()
    # Accept a saved export response as-is, envelope and all
    if 'meta' not in data and isinstance(data.get('data'), dict):
        data = data['data']
    campaign, counts = import_campaign(current_user, data)
    return ok({'campaign': campaign.to_dict(), 'imported': counts},
              'Campaign imported successfully', 201)
