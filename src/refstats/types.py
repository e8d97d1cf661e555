"""
Types.

These describe the values passed between the referrer normaliser,
the counter store and the reports.
"""

import enum
import typing


QueryParams: typing.TypeAlias = tuple[tuple[str, str | None], ...]


class RefScheme(str, enum.Enum):
    """
    How a referrer was recorded.

    This is stored in the ``ref_scheme`` column as a single character.
    """

    HTTP = "h"
    OTHER = "o"
    GENERATED = "g"
    CAMPAIGN = "c"

    @property
    def rank(self) -> int:
        """
        Where this scheme sorts when we pick "the highest scheme" for
        a group of counter rows.

        campaign > generated > http > other
        """
        return _SCHEME_RANKS[self]

    @classmethod
    def from_rank(cls, rank: int) -> "RefScheme":
        for scheme, scheme_rank in _SCHEME_RANKS.items():
            if scheme_rank == rank:
                return scheme

        raise ValueError(f"Unrecognised scheme rank: {rank}")


_SCHEME_RANKS = {
    RefScheme.OTHER: 0,
    RefScheme.HTTP: 1,
    RefScheme.GENERATED: 2,
    RefScheme.CAMPAIGN: 3,
}


class Classification(typing.NamedTuple):
    """
    The normalised form of a referrer.

    If ``is_group`` is True, the name is a label for a whole class of
    sources (e.g. "Hacker News"), rather than one specific URL.
    """

    name: str
    is_group: bool


class Referrer(typing.NamedTuple):
    """
    A referrer as it gets written to the counter store.
    """

    name: str
    is_group: bool
    scheme: RefScheme | None


class StatRow(typing.TypedDict):
    """
    Hits from a single normalised referrer within a report window.
    """

    count: int
    count_unique: int
    ref_scheme: RefScheme | None
    name: str


class RefStats(typing.TypedDict):
    """
    One page of a referrer report.

    ``more`` is True if there are more rows after this page.
    """

    stats: list[StatRow]
    more: bool
