"""Initial schema: users, campaigns and campaign entities

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '3f1c2a9d7e10'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def _campaign_fk():
    return sa.Column('campaign_id', sa.String(length=36),
                     sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False)


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('auth_subject', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('email', sa.String(length=256), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('auth_subject'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )

    op.create_table('campaigns',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_campaigns_user_id', 'campaigns', ['user_id'])

    op.create_table('locations',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('parent_id', sa.String(length=36),
                  sa.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_locations_campaign_id', 'locations', ['campaign_id'])

    op.create_table('characters',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('race', sa.String(length=100), nullable=True),
        sa.Column('class', sa.String(length=100), nullable=True),
        sa.Column('location_id', sa.String(length=36),
                  sa.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_characters_campaign_id', 'characters', ['campaign_id'])

    op.create_table('items',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('owner_id', sa.String(length=36),
                  sa.ForeignKey('characters.id', ondelete='SET NULL'), nullable=True),
        sa.Column('location_id', sa.String(length=36),
                  sa.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_items_campaign_id', 'items', ['campaign_id'])

    op.create_table('notes',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notes_campaign_id', 'notes', ['campaign_id'])

    op.create_table('relationships',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('from_character_id', sa.String(length=36),
                  sa.ForeignKey('characters.id', ondelete='CASCADE'), nullable=False),
        sa.Column('to_character_id', sa.String(length=36),
                  sa.ForeignKey('characters.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('from_character_id', 'to_character_id', name='uq_relationship_pair'),
        sa.CheckConstraint('from_character_id <> to_character_id', name='ck_relationship_not_self'),
    )
    op.create_index('ix_relationships_campaign_id', 'relationships', ['campaign_id'])

    op.create_table('timeline_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.String(length=100), nullable=False),
        sa.Column('session_number', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('related_characters', sa.JSON(), nullable=True),
        sa.Column('related_locations', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_timeline_events_campaign_id', 'timeline_events', ['campaign_id'])

    op.create_table('quests',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('priority', sa.String(length=20), nullable=True),
        sa.Column('quest_giver_id', sa.String(length=36),
                  sa.ForeignKey('characters.id', ondelete='SET NULL'), nullable=True),
        sa.Column('rewards', sa.Text(), nullable=True),
        sa.Column('objectives', sa.JSON(), nullable=True),
        sa.Column('related_characters', sa.JSON(), nullable=True),
        sa.Column('related_locations', sa.JSON(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quests_campaign_id', 'quests', ['campaign_id'])

    op.create_table('campaign_maps',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_filename', sa.String(length=255), nullable=True),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('pins', sa.JSON(), nullable=True),
        sa.Column('routes', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_campaign_maps_campaign_id', 'campaign_maps', ['campaign_id'])

    op.create_table('dice_rolls',
        sa.Column('id', sa.String(length=36), nullable=False),
        _campaign_fk(),
        sa.Column('player_name', sa.String(length=255), nullable=True),
        sa.Column('expression', sa.String(length=50), nullable=False),
        sa.Column('result', sa.Integer(), nullable=False),
        sa.Column('individual_rolls', sa.JSON(), nullable=True),
        sa.Column('modifier', sa.Integer(), nullable=True),
        sa.Column('context', sa.String(length=255), nullable=True),
        sa.Column('advantage', sa.Boolean(), nullable=True),
        sa.Column('disadvantage', sa.Boolean(), nullable=True),
        sa.Column('critical', sa.Boolean(), nullable=True),
        sa.Column('is_private', sa.Boolean(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_dice_rolls_campaign_id', 'dice_rolls', ['campaign_id'])


def downgrade():
    for table in ('dice_rolls', 'campaign_maps', 'quests', 'timeline_events', 'relationships',
                  'notes', 'items', 'characters', 'locations'):
        op.drop_index(f'ix_{table}_campaign_id', table_name=table)
        op.drop_table(table)
    op.drop_index('ix_campaigns_user_id', table_name='campaigns')
    op.drop_table('campaigns')
    op.drop_table('users')
