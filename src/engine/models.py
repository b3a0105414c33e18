RED = 'red'
BLUE = 'blue'
SIDES = (RED, BLUE)

UPPER = 'upper'
LOWER = 'lower'

ELIMINATED = 'eliminated'
CHAMPION = 'champion'


def seed_ref(rank):
    """Encode a seed rank as a bracket source (negative integer)."""
    return -rank


def is_seed_ref(source):
    return source < 0


def seed_rank(source):
    return abs(source)


def is_match_target(advancement):
    """True when an advancement points at another match rather than a sentinel."""
    return isinstance(advancement, int) and not isinstance(advancement, bool)


def other_side(side):
    return BLUE if side == RED else RED


class Alliance:
    def __init__(self, id, name, emblem_image_url=None):
        self.id = id
        self.name = name
        self.emblem_image_url = emblem_image_url

    @classmethod
    def from_dict(cls, data):
        return cls(id=data['id'], name=data['name'], emblem_image_url=data.get('emblem_image_url'))

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'emblem_image_url': self.emblem_image_url}

    def __repr__(self):
        return f"Alliance(id={self.id}, name={self.name})"


class BracketMatch:
    def __init__(self, id, bracket, round, match_number, red_from, blue_from,
                 red_advancement, blue_advancement):
        self.id = id
        self.bracket = bracket  # UPPER or LOWER
        self.round = round
        self.match_number = match_number
        self.red_from = red_from  # negative = seed rank, positive = source match id
        self.blue_from = blue_from
        self.red_advancement = red_advancement  # {'win': ..., 'loss': ...}
        self.blue_advancement = blue_advancement

    def source(self, side):
        return self.red_from if side == RED else self.blue_from

    def advancement(self, side):
        return self.red_advancement if side == RED else self.blue_advancement

    def advancement_targets(self):
        """All four advancement edges in red-win, red-loss, blue-win, blue-loss order."""
        return [
            self.red_advancement['win'],
            self.red_advancement['loss'],
            self.blue_advancement['win'],
            self.blue_advancement['loss'],
        ]

    def __repr__(self):
        return (f"BracketMatch(id={self.id}, bracket={self.bracket}, round={self.round}, "
                f"red_from={self.red_from}, blue_from={self.blue_from})")


class MatchState:
    def __init__(self, red_alliance_id=None, blue_alliance_id=None, winner=None, is_completed=False):
        self.red_alliance_id = red_alliance_id
        self.blue_alliance_id = blue_alliance_id
        self.winner = winner  # RED, BLUE or None
        self.is_completed = is_completed

    def alliance_id(self, side):
        return self.red_alliance_id if side == RED else self.blue_alliance_id

    def to_dict(self):
        return {
            'red_alliance_id': self.red_alliance_id,
            'blue_alliance_id': self.blue_alliance_id,
            'winner': self.winner,
            'is_completed': self.is_completed,
        }

    def __repr__(self):
        return (f"MatchState(red={self.red_alliance_id}, blue={self.blue_alliance_id}, "
                f"winner={self.winner}, completed={self.is_completed})")
