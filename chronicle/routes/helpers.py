"""Shared plumbing for the API blueprints: response envelopes, ownership
lookups, list pagination/filtering, and reference checks."""

from flask import jsonify, request
from flask_login import current_user
from sqlalchemy import or_

from chronicle.errors import BadRequest, NotFound, ValidationFailed
from chronicle.models import Campaign
from chronicle.search import tag_filter

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def ok(data=None, message='Success', status=200):
    """Success envelope: {"success": true, "message": ..., "data": ...}."""
    return jsonify({'success': True, 'message': message, 'data': data}), status


def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    return data


def get_owned_campaign(campaign_id):
    """The caller's campaign, or 404. Another user's campaign is also a 404."""
    campaign = Campaign.query.filter_by(id=campaign_id, user_id=current_user.id).first()
    if campaign is None:
        raise NotFound('Campaign not found')
    return campaign


def get_owned(model, entity_id, label):
    """A campaign child row whose campaign belongs to the caller, or 404."""
    row = model.query.join(Campaign, model.campaign_id == Campaign.id) \
        .filter(model.id == entity_id, Campaign.user_id == current_user.id).first()
    if row is None:
        raise NotFound(f'{label} not found')
    return row


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def page_args():
    page = max(1, _int_arg('page', 1))
    per_page = min(MAX_PER_PAGE, max(1, _int_arg('per_page', DEFAULT_PER_PAGE)))
    return page, per_page


def filter_args(default_order='desc'):
    tags = request.args.get('tags', '')
    return {
        'search': request.args.get('search', '').strip(),
        'type': request.args.get('type', '').strip(),
        'tags': [t.strip() for t in tags.split(',') if t.strip()],
        'sort': request.args.get('sort'),
        'order': 'asc' if request.args.get('order', default_order).lower() == 'asc' else 'desc',
    }


def list_response(query, model, search_fields=(), sortable=('created_at',), default_sort='created_at',
                  default_order='desc', serialize=None):
    """Apply the standard list filters to `query` and return a paginated envelope.

    Query string: page, per_page, search (substring over search_fields),
    type (exact), tags (comma-separated, all must match), sort, order.
    """
    filters = filter_args(default_order)

    if filters['search'] and search_fields:
        pattern = f"%{filters['search']}%"
        query = query.filter(or_(*[getattr(model, f).ilike(pattern) for f in search_fields]))
    if filters['type'] and hasattr(model, 'type'):
        query = query.filter(model.type == filters['type'])
    if filters['tags'] and hasattr(model, 'tags'):
        for tag in filters['tags']:
            query = query.filter(tag_filter(model, tag))

    sort = filters['sort'] if filters['sort'] in sortable else default_sort
    column = getattr(model, sort)
    # Rows without a value for the sort key go last in either direction
    query = query.order_by(column.is_(None),
                           column.asc() if filters['order'] == 'asc' else column.desc())
    if sort != 'created_at':
        # Stable order among equal sort keys
        query = query.order_by(model.created_at.asc())

    page, per_page = page_args()
    pagination = query.paginate(page=page, per_page=per_page, error_out=False)
    serialize = serialize or (lambda row: row.to_dict())
    return ok({
        'data': [serialize(row) for row in pagination.items],
        'pagination': {
            'current_page': page,
            'per_page': per_page,
            'total': pagination.total,
            'total_pages': pagination.pages,
            'has_next': pagination.has_next,
            'has_prev': pagination.has_prev,
        },
    })


def check_errors(errors):
    if errors:
        raise ValidationFailed(errors)


def resolve_reference(model, ref_id, campaign_id, field, label):
    """Check that an optional reference points at a row of the same campaign.

    Returns the id (or None when cleared); raises a 422 naming `field` otherwise.
    """
    if ref_id is None or ref_id == '':
        return None
    row = model.query.filter_by(id=ref_id, campaign_id=campaign_id).first()
    if row is None:
        raise ValidationFailed({field: [f'{label} not found in this campaign']})
    return row.id


def resolve_reference_list(model, ref_ids, campaign_id, field, label):
    if not ref_ids:
        return []
    found = {row.id for row in model.query.filter(model.campaign_id == campaign_id,
                                                   model.id.in_(ref_ids)).all()}
    missing = [ref for ref in ref_ids if ref not in found]
    if missing:
        raise ValidationFailed({field: [f'{label} not found in this campaign: {", ".join(missing)}']})
    # Keep caller order, drop duplicates
    return list(dict.fromkeys(ref_ids))


def apply_fields(obj, data, fields):
    """Copy present keys onto the model. `fields` maps payload key -> attribute.

    Strings are stripped; an explicit null clears the attribute.
    """
    for key, attr in fields.items():
        if key in data:
            value = data[key]
            if isinstance(value, str):
                value = value.strip()
            setattr(obj, attr, value)
