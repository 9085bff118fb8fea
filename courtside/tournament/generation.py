"""Match layouts for the two tournament shapes."""

from __future__ import annotations

import itertools
import random
from typing import Any, Optional

from courtside.core.constants import (
    BRACKET_SIZE,
    FINAL_ROUND,
    GROUP_STAGE_ROUND,
    LOSERS,
    PARTITION_SIZE,
    PLAYOFF_ROUND,
    WINNERS,
)
from courtside.errors import ValidationError
from courtside.match.models import new_match


class TournamentGenerator:
    """Utility class for generating tournament matches."""

    @staticmethod
    def seeded_pairings(seeds: list[str]) -> list[tuple[str, str]]:
        """Pair a four-seed partition as 1 v 4 and 2 v 3."""
        if len(seeds) != PARTITION_SIZE:
            raise ValidationError(
                f"Need {PARTITION_SIZE} participants per bracket but found {len(seeds)}."
            )
        return [(seeds[0], seeds[3]), (seeds[1], seeds[2])]

    @staticmethod
    def split_randomly(
        participant_ids: list[str], rng: Optional[random.Random] = None
    ) -> tuple[list[str], list[str]]:
        """Shuffle eight participants into the winners and losers partitions."""
        if len(participant_ids) != BRACKET_SIZE:
            raise ValidationError(
                f"Expected {BRACKET_SIZE} participants but found {len(participant_ids)}."
            )
        ids = list(participant_ids)
        (rng or random.SystemRandom()).shuffle(ids)
        return ids[:PARTITION_SIZE], ids[PARTITION_SIZE:]

    @staticmethod
    def double_bracket(
        tournament_id: str, winners_seeds: list[str], losers_seeds: list[str]
    ) -> list[dict[str, Any]]:
        """Quarterfinals for both partitions plus placeholder semifinal and final.

        Payloads come back ladder by ladder: winners first, then losers, each
        ordered by round.
        """
        matches = []
        for bracket_type, seeds in ((WINNERS, winners_seeds), (LOSERS, losers_seeds)):
            for p1, p2 in TournamentGenerator.seeded_pairings(seeds):
                matches.append(new_match(tournament_id, 1, bracket_type, p1, p2))
            for round_number in range(2, FINAL_ROUND + 1):
                matches.append(new_match(tournament_id, round_number, bracket_type))
        return matches

    @staticmethod
    def round_robin(tournament_id: str, group_a: list[str], group_b: list[str]) -> list[dict[str, Any]]:
        """Every pairing inside each group, then the final and 3rd place match."""
        matches = []
        for bracket_type, group in ((WINNERS, group_a), (LOSERS, group_b)):
            for p1, p2 in itertools.combinations(group, 2):
                matches.append(new_match(tournament_id, GROUP_STAGE_ROUND, bracket_type, p1, p2))

        # Final: 1st of A v 1st of B. 3rd place: 2nd of A v 2nd of B.
        matches.append(new_match(tournament_id, PLAYOFF_ROUND, WINNERS))
        matches.append(new_match(tournament_id, PLAYOFF_ROUND, LOSERS))
        return matches
