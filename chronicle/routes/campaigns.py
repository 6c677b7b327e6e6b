from flask import Blueprint, current_app
from flask_login import login_required, current_user
from chronicle import db
from chronicle.export import campaign_statistics, type_breakdown
from chronicle.models import Campaign, Location, Note, TimelineEvent, Quest, Relationship
from chronicle.routes.helpers import (
    ok, get_json_body, get_owned_campaign, list_response, check_errors, apply_fields,
)
from chronicle.routes.maps import remove_map_image
from chronicle.validation import validate_campaign

campaigns_bp = Blueprint('campaigns', __name__, url_prefix='/api/campaigns')

CAMPAIGN_FIELDS = {'name': 'name', 'description': 'description'}


@campaigns_bp.route('', methods=['GET'])
@login_required
def list_campaigns():
    query = Campaign.query.filter_by(user_id=current_user.id)
    return list_response(query, Campaign, search_fields=('name', 'description'),
                         sortable=('created_at', 'updated_at', 'name'))


@campaigns_bp.route('', methods=['POST'])
@login_required
def create_campaign():
    data = get_json_body()
    check_errors(validate_campaign(data))

    campaign = Campaign(user_id=current_user.id)
    apply_fields(campaign, data, CAMPAIGN_FIELDS)
    db.session.add(campaign)
    db.session.commit()
    current_app.logger.info(f'Campaign {campaign.id} created by {current_user.username}')
    return ok(campaign.to_dict(), 'Campaign created successfully', 201)


@campaigns_bp.route('/<campaign_id>', methods=['GET'])
@login_required
def get_campaign(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = campaign.to_dict()
    data['stats'] = campaign_statistics(campaign)
    return ok(data)


@campaigns_bp.route('/<campaign_id>', methods=['PUT'])
@login_required
def update_campaign(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    data = get_json_body()
    check_errors(validate_campaign(data, partial=True))
    apply_fields(campaign, data, CAMPAIGN_FIELDS)
    db.session.commit()
    return ok(campaign.to_dict(), 'Campaign updated successfully')


@campaigns_bp.route('/<campaign_id>', methods=['DELETE'])
@login_required
def delete_campaign(campaign_id):
    campaign = get_owned_campaign(campaign_id)

    # Break the location parent chain first so the cascade doesn't trip over
    # rows pointing at locations that are being deleted in the same flush
    Location.query.filter_by(campaign_id=campaign.id).update({'parent_id': None})
    db.session.flush()

    for campaign_map in campaign.maps:
        remove_map_image(campaign_map)
    db.session.delete(campaign)
    db.session.commit()
    current_app.logger.info(f'Campaign {campaign_id} deleted by {current_user.username}')
    return ok(None, 'Campaign deleted successfully')


@campaigns_bp.route('/<campaign_id>/analytics')
@login_required
def campaign_analytics(campaign_id):
    campaign = get_owned_campaign(campaign_id)

    recent = []
    for model, kind, label_attr in ((Note, 'note', 'title'), (TimelineEvent, 'timeline_event', 'title')):
        rows = model.query.filter_by(campaign_id=campaign.id) \
            .order_by(model.updated_at.desc()).limit(10).all()
        recent.extend({
            'id': row.id,
            'type': kind,
            'name': getattr(row, label_attr),
            'updated_at': row.updated_at.isoformat() if row.updated_at else None,
        } for row in rows)
    recent.sort(key=lambda r: r['updated_at'] or '', reverse=True)

    return ok({
        'campaign': campaign.to_dict(),
        'stats': campaign_statistics(campaign),
        'relationship_breakdown': type_breakdown(Relationship, campaign.id),
        'event_breakdown': type_breakdown(TimelineEvent, campaign.id),
        'quest_status_breakdown': type_breakdown(Quest, campaign.id, column='status'),
        'recent_activity': recent[:10],
    })
