import uuid
from datetime import datetime
from flask_login import UserMixin
from chronicle import db

# Allowed values for the "type"/"status" style columns. Stored as plain strings
# so new values only need a change here (and in validation), not a migration.
USER_ROLES = ('user', 'admin', 'dm')
CHARACTER_TYPES = ('PC', 'NPC', 'Villain', 'Ally')
LOCATION_TYPES = ('Continent', 'Region', 'City', 'Town', 'Village', 'Building', 'Room', 'Dungeon')
ITEM_TYPES = ('Weapon', 'Armor', 'Magic Item', 'Tool', 'Treasure', 'Document', 'Key Item')
RELATIONSHIP_TYPES = ('ally', 'enemy', 'friend', 'family', 'romantic', 'mentor',
                      'rival', 'acquaintance', 'neutral', 'other')
EVENT_TYPES = ('session', 'story', 'character', 'location', 'combat', 'milestone',
               'roleplay', 'exploration', 'social', 'travel', 'other')
QUEST_STATUSES = ('active', 'completed', 'failed', 'on-hold')
QUEST_PRIORITIES = ('low', 'medium', 'high', 'critical')


def generate_id():
    """Primary keys are random UUID strings, not autoincrement integers."""
    return str(uuid.uuid4())


def isoformat(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    """A person known to the identity provider.

    Rows are created the first time a verified token for a new subject hits
    the API (see chronicle.identity.provision_user). There is no password:
    authentication is entirely delegated to the provider.
    """
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    auth_subject = db.Column(db.String(255), unique=True, nullable=False)  # provider "sub" claim
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(256), unique=True, nullable=True)
    display_name = db.Column(db.String(255))
    role = db.Column(db.String(20), default='user')   # user / admin / dm
    is_verified = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    campaigns = db.relationship('Campaign', backref='owner', lazy=True,
                                cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'auth_subject': self.auth_subject,
            'username': self.username,
            'email': self.email,
            'display_name': self.display_name,
            'role': self.role,
            'is_verified': bool(self.is_verified),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.username}>'


class Campaign(db.Model):
    __tablename__ = 'campaigns'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Every child collection is owned by the campaign: deleting the campaign
    # deletes all of them.
    characters = db.relationship('Character', backref='campaign', cascade='all, delete-orphan')
    locations = db.relationship('Location', backref='campaign', cascade='all, delete-orphan')
    items = db.relationship('Item', backref='campaign', cascade='all, delete-orphan')
    notes = db.relationship('Note', backref='campaign', cascade='all, delete-orphan')
    relationships = db.relationship('Relationship', backref='campaign',
                                    cascade='all, delete-orphan')
    timeline_events = db.relationship('TimelineEvent', backref='campaign',
                                      cascade='all, delete-orphan')
    quests = db.relationship('Quest', backref='campaign', cascade='all, delete-orphan')
    maps = db.relationship('CampaignMap', backref='campaign', cascade='all, delete-orphan')
    dice_rolls = db.relationship('DiceRoll', backref='campaign', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Campaign {self.name}>'


class Character(db.Model):
    __tablename__ = 'characters'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(20), nullable=False)          # PC / NPC / Villain / Ally
    race = db.Column(db.String(100))
    # "class" is a Python keyword, so the attribute is character_class;
    # the column and the JSON key are still "class".
    character_class = db.Column('class', db.String(100))
    location_id = db.Column(db.String(36), db.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True)
    description = db.Column(db.Text)
    tags = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    location = db.relationship('Location', backref='characters', foreign_keys=[location_id])
    relationships_from = db.relationship('Relationship', backref='from_character',
                                         foreign_keys='Relationship.from_character_id',
                                         cascade='all, delete-orphan')
    relationships_to = db.relationship('Relationship', backref='to_character',
                                       foreign_keys='Relationship.to_character_id',
                                       cascade='all, delete-orphan')

    @property
    def all_relationships(self):
        """Relationships in either direction."""
        return list(self.relationships_from) + list(self.relationships_to)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'name': self.name,
            'type': self.type,
            'race': self.race,
            'class': self.character_class,
            'location': self.location_id,
            'location_name': self.location.name if self.location else None,
            'description': self.description,
            'tags': self.tags or [],
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Character {self.name}>'


class Location(db.Model):
    __tablename__ = 'locations'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(20), nullable=False)          # Continent / Region / City / ...
    description = db.Column(db.Text)
    tags = db.Column(db.JSON, default=list)

    # Self-referencing parent (continent > region > city > building > room)
    parent_id = db.Column(db.String(36), db.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    parent = db.relationship(
        'Location',
        remote_side='Location.id',
        backref='children',
        foreign_keys=[parent_id]
    )

    @property
    def ancestors(self):
        """Parents from the direct parent up to the root."""
        chain = []
        seen = {self.id}
        node = self.parent
        while node is not None and node.id not in seen:
            chain.append(node)
            seen.add(node.id)
            node = node.parent
        return chain

    @property
    def hierarchy_path(self):
        names = [loc.name for loc in reversed(self.ancestors)] + [self.name]
        return ' > '.join(names)

    def is_descendant_of(self, other_id):
        return any(loc.id == other_id for loc in self.ancestors)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'name': self.name,
            'type': self.type,
            'parent_location': self.parent_id,
            'parent_name': self.parent.name if self.parent else None,
            'description': self.description,
            'tags': self.tags or [],
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Location {self.name}>'


class Item(db.Model):
    __tablename__ = 'items'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(20), nullable=False)          # Weapon / Armor / Magic Item / ...
    owner_id = db.Column(db.String(36), db.ForeignKey('characters.id', ondelete='SET NULL'), nullable=True)
    location_id = db.Column(db.String(36), db.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True)
    description = db.Column(db.Text)
    tags = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship('Character', backref='items', foreign_keys=[owner_id])
    location = db.relationship('Location', backref='items', foreign_keys=[location_id])

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'name': self.name,
            'type': self.type,
            'owner': self.owner_id,
            'owner_name': self.owner.name if self.owner else None,
            'location': self.location_id,
            'location_name': self.location.name if self.location else None,
            'description': self.description,
            'tags': self.tags or [],
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Item {self.name}>'


class Note(db.Model):
    __tablename__ = 'notes'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)   # Markdown
    tags = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'title': self.title,
            'content': self.content,
            'tags': self.tags or [],
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Note {self.title}>'


class Relationship(db.Model):
    """A directed link between two characters of the same campaign."""
    __tablename__ = 'relationships'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    from_character_id = db.Column(db.String(36), db.ForeignKey('characters.id', ondelete='CASCADE'), nullable=False)
    to_character_id = db.Column(db.String(36), db.ForeignKey('characters.id', ondelete='CASCADE'), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # One relationship per ordered pair, and never a character with itself
    __table_args__ = (
        db.UniqueConstraint('from_character_id', 'to_character_id', name='uq_relationship_pair'),
        db.CheckConstraint('from_character_id <> to_character_id', name='ck_relationship_not_self'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'from_character': self.from_character_id,
            'from_character_name': self.from_character.name if self.from_character else None,
            'to_character': self.to_character_id,
            'to_character_name': self.to_character.name if self.to_character else None,
            'type': self.type,
            'description': self.description,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Relationship {self.from_character_id}->{self.to_character_id} {self.type}>'


class TimelineEvent(db.Model):
    __tablename__ = 'timeline_events'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    date = db.Column(db.String(100), nullable=False)   # free text, in-world calendar
    session_number = db.Column(db.Integer)
    type = db.Column(db.String(20), default='story')
    tags = db.Column(db.JSON, default=list)
    related_characters = db.Column(db.JSON, default=list)   # list of character ids
    related_locations = db.Column(db.JSON, default=list)    # list of location ids
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'title': self.title,
            'description': self.description,
            'date': self.date,
            'session_number': self.session_number,
            'type': self.type,
            'tags': self.tags or [],
            'related_characters': self.related_characters or [],
            'related_locations': self.related_locations or [],
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<TimelineEvent {self.title}>'


class Quest(db.Model):
    __tablename__ = 'quests'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), default='active')      # active / completed / failed / on-hold
    priority = db.Column(db.String(20), default='medium')    # low / medium / high / critical
    quest_giver_id = db.Column(db.String(36), db.ForeignKey('characters.id', ondelete='SET NULL'), nullable=True)
    rewards = db.Column(db.Text)
    # Each objective: {"id", "description", "completed", "completed_at"}
    objectives = db.Column(db.JSON, default=list)
    related_characters = db.Column(db.JSON, default=list)
    related_locations = db.Column(db.JSON, default=list)
    tags = db.Column(db.JSON, default=list)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quest_giver = db.relationship('Character', backref='quests_given', foreign_keys=[quest_giver_id])

    @property
    def completion_percentage(self):
        objectives = self.objectives or []
        if not objectives:
            return 0
        done = sum(1 for obj in objectives if obj.get('completed'))
        return round(done / len(objectives) * 100)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'quest_giver': self.quest_giver_id,
            'quest_giver_name': self.quest_giver.name if self.quest_giver else None,
            'rewards': self.rewards,
            'objectives': self.objectives or [],
            'completion_percentage': self.completion_percentage,
            'related_characters': self.related_characters or [],
            'related_locations': self.related_locations or [],
            'tags': self.tags or [],
            'completed_at': isoformat(self.completed_at),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Quest {self.title}>'


class CampaignMap(db.Model):
    """An uploaded (or linked) map image with pins and routes drawn on it.

    Pins and routes are small JSON dicts with a generated "id"; a pin may carry
    a "location_id" linking it to a Location of the same campaign.
    """
    __tablename__ = 'campaign_maps'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    image_filename = db.Column(db.String(255))   # stored filename in UPLOAD_FOLDER
    image_url = db.Column(db.String(1024))       # or an externally hosted image
    width = db.Column(db.Integer)
    height = db.Column(db.Integer)
    pins = db.Column(db.JSON, default=list)
    routes = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'name': self.name,
            'description': self.description,
            'image_filename': self.image_filename,
            'image_url': self.image_url,
            'width': self.width,
            'height': self.height,
            'pins': self.pins or [],
            'routes': self.routes or [],
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<CampaignMap {self.name}>'


class DiceRoll(db.Model):
    __tablename__ = 'dice_rolls'

    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    campaign_id = db.Column(db.String(36), db.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False, index=True)
    player_name = db.Column(db.String(255), default='Anonymous')
    expression = db.Column(db.String(50), nullable=False)     # e.g. "2d6+3"
    result = db.Column(db.Integer, nullable=False)
    individual_rolls = db.Column(db.JSON, default=list)
    modifier = db.Column(db.Integer, default=0)
    context = db.Column(db.String(255))                       # "Attack on goblin"
    advantage = db.Column(db.Boolean, default=False)
    disadvantage = db.Column(db.Boolean, default=False)
    critical = db.Column(db.Boolean, default=False)
    is_private = db.Column(db.Boolean, default=False)
    tags = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'player_name': self.player_name,
            'expression': self.expression,
            'result': self.result,
            'individual_rolls': self.individual_rolls or [],
            'modifier': self.modifier,
            'context': self.context,
            'advantage': bool(self.advantage),
            'disadvantage': bool(self.disadvantage),
            'critical': bool(self.critical),
            'is_private': bool(self.is_private),
            'tags': self.tags or [],
            'created_at': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<DiceRoll {self.expression}={self.result}>'
