from enum import Enum


class SeasonPhase(str, Enum):
    PRE = "PRE"
    REG = "REG"
    POST = "POST"


class ContestStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINAL = "final"


class PickStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ELIMINATED = "eliminated"
    SAFE = "safe"


class Outcome(str, Enum):
    PENDING = "pending"
    SURVIVED = "survived"
    ELIMINATED = "eliminated"


class Confidence(str, Enum):
    """How a side key was matched to a team. Ordered strongest first."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    UNRESOLVED = "unresolved"

    @property
    def rank(self) -> int:
        return list(Confidence).index(self)


class MatchedBy(str, Enum):
    NAME = "name"
    ABBREVIATION = "abbreviation"
    UNDERSCORE_NAME = "underscore_name"
    CASE_INSENSITIVE = "case_insensitive"
    SUBSTRING = "substring"
    NONE = "none"


class GameResult(str, Enum):
    """Result of a game from the picked team's point of view."""

    WON = "won"
    LOST = "lost"
    TIE = "tie"
    PENDING = "pending"


class AdvanceReason(str, Enum):
    ADVANCED = "advanced"
    NO_CONTESTS = "no_contests"
    GAMES_NOT_FINAL = "games_not_final"
    NEXT_PERIOD_NOT_LOADED = "next_period_not_loaded"
    LAST_PERIOD = "last_period"
    CONCURRENT_UPDATE = "concurrent_update"
