import pytest

from chronicle.models import (
    Campaign, Character, Location, Item, Note, Relationship, TimelineEvent, Quest, CampaignMap, DiceRoll,
)


def _ondelete(column):
    (fk,) = column.foreign_keys
    return fk.ondelete


@pytest.mark.parametrize('model', [Character, Location, Item, Note, Relationship, TimelineEvent,
                                   Quest, CampaignMap, DiceRoll])
def test_campaign_children_cascade_in_database(model):
    assert _ondelete(model.__table__.c.campaign_id) == 'CASCADE'


@pytest.mark.parametrize('column, expected', [
    (Campaign.__table__.c.user_id, 'CASCADE'),
    (Character.__table__.c.location_id, 'SET NULL'),
    (Location.__table__.c.parent_id, 'SET NULL'),
    (Item.__table__.c.owner_id, 'SET NULL'),
    (Item.__table__.c.location_id, 'SET NULL'),
    (Relationship.__table__.c.from_character_id, 'CASCADE'),
    (Relationship.__table__.c.to_character_id, 'CASCADE'),
    (Quest.__table__.c.quest_giver_id, 'SET NULL'),
])
def test_reference_columns_match_migration(column, expected):
    assert _ondelete(column) == expected
