import itertools
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict

from survivor_pool.models.enums import Confidence, MatchedBy
from survivor_pool.models.team import Team

# Shortest form that may match by appearing inside a longer side key
MIN_CONTAINED_FORM = 3


class TeamResolution(BaseModel):
    """Result of mapping a loosely formatted side key onto a Team."""

    model_config = ConfigDict(frozen=True)

    raw: str
    team: Optional[Team] = None
    matched_by: MatchedBy = MatchedBy.NONE
    confidence: Confidence = Confidence.UNRESOLVED

    @property
    def resolved(self) -> bool:
        return self.team is not None

    @property
    def display_name(self) -> str:
        return self.team.name if self.team else self.raw


class TeamDirectory:
    """Lookup from every known surface form of a team to the Team record."""

    def __init__(self, teams: Iterable[Team]):
        self.teams: List[Team] = list(teams)
        self._by_name: Dict[str, Team] = {}
        self._by_abbreviation: Dict[str, Team] = {}
        self._by_underscore: Dict[str, Team] = {}
        # (form, team) in insertion order; substring matching is first-hit-wins
        self._forms: List[Tuple[str, Team]] = []

        for team in self.teams:
            self._by_name.setdefault(team.name, team)
            if team.abbreviation:
                self._by_abbreviation.setdefault(team.abbreviation, team)
            if len(team.name.split()) > 1:
                self._by_underscore.setdefault(team.underscore_name, team)

            forms = [team.name, team.abbreviation, team.underscore_name]
            for form in forms:
                if form and (form, team) not in self._forms:
                    self._forms.append((form, team))

        logger.debug(
            f"Team directory built with {len(self.teams)} teams and {len(self._forms)} surface forms."
        )

    def __len__(self) -> int:
        return len(self.teams)

    def resolve(self, side_key: Optional[str]) -> TeamResolution:
        """Maps a side key to a Team, strongest match first.

        Exact name, abbreviation and underscore forms are tried before a
        case-insensitive exact pass and finally two substring passes: the key
        inside a form, then a name form inside the key. Substring hits are
        graded FUZZY so callers can flag them.
        """
        raw = side_key or ""
        key = raw.strip()
        if not key:
            return TeamResolution(raw=raw)

        exact_lookups = (
            (self._by_name, MatchedBy.NAME),
            (self._by_abbreviation, MatchedBy.ABBREVIATION),
            (self._by_underscore, MatchedBy.UNDERSCORE_NAME),
        )
        for table, matched_by in exact_lookups:
            team = table.get(key)
            if team is not None:
                return TeamResolution(
                    raw=raw, team=team, matched_by=matched_by, confidence=Confidence.EXACT
                )

        lowered = key.lower()
        for form, team in self._forms:
            if form.lower() == lowered:
                return TeamResolution(
                    raw=raw,
                    team=team,
                    matched_by=MatchedBy.CASE_INSENSITIVE,
                    confidence=Confidence.EXACT,
                )

        # Key inside a known form first; a form inside the key only after
        # every form was tried, and never for abbreviations ("NE" is inside
        # "Tennessee").
        contained_in_form = (
            (form, team)
            for form, team in self._forms
            if lowered in form.lower()
        )
        form_in_key = (
            (form, team)
            for form, team in self._forms
            if form != team.abbreviation
            and len(form) >= MIN_CONTAINED_FORM
            and form.lower() in lowered
        )
        for form, team in itertools.chain(contained_in_form, form_in_key):
            logger.debug(f"Side key '{raw}' fuzzily matched '{form}' ({team.name}).")
            return TeamResolution(
                raw=raw,
                team=team,
                matched_by=MatchedBy.SUBSTRING,
                confidence=Confidence.FUZZY,
            )

        logger.debug(f"Side key '{raw}' did not match any known team.")
        return TeamResolution(raw=raw)
