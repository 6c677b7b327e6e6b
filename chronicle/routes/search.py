from flask import Blueprint, request
from flask_login import login_required
from chronicle.errors import BadRequest
from chronicle.routes.helpers import ok, get_json_body, get_owned_campaign, check_errors
from chronicle.search import global_search, search_by_tags, advanced_search, search_suggestions
from chronicle.validation import validate_search_criteria

search_bp = Blueprint('search', __name__, url_prefix='/api/campaigns/<campaign_id>/search')


@search_bp.route('')
@login_required
def campaign_search(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    q = request.args.get('q', '').strip()
    if not q:
        raise BadRequest('Search query (q) is required')
    results = global_search(campaign.id, q, request.args.get('types'))
    return ok({
        'query': q,
        'results': results,
        'total': sum(len(hits) for hits in results.values()),
    })


@search_bp.route('/suggestions')
@login_required
def suggestions(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    return ok(search_suggestions(campaign.id, request.args.get('q', '')))


@search_bp.route('/tags')
@login_required
def tag_search(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    tags = request.args.get('tags', '')
    if not tags.strip():
        raise BadRequest('At least one tag is required')
    return ok(search_by_tags(campaign.id, tags))


@search_bp.route('/advanced', methods=['POST'])
@login_required
def advanced(campaign_id):
    campaign = get_owned_campaign(campaign_id)
    criteria = get_json_body()
    check_errors(validate_search_criteria(criteria))
    return ok(advanced_search(campaign.id, criteria))
