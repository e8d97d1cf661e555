"""
Database code.

The ``ref_counts`` table holds a counter per (site, path, hour, referrer).
The referrer is always the normalised name, never the raw Referer header.
This file handles writing those counters, and the two ranked reports
that read them.
"""

import datetime
import pathlib
import sqlite3
import typing

from sqlite_utils import Database
from sqlite_utils.db import Table

from .config import Site
from .date_helpers import format_hour, to_utc, truncate_to_hour
from .types import Referrer, RefScheme, RefStats, StatRow


class StatsQueryError(Exception):
    """
    Thrown if the database fails while building a referrer report.

    The message is the name of the report that failed; the original
    database error is chained as ``__cause__``.
    """

    pass


# SQLite would sort the one-letter scheme codes alphabetically, which
# isn't the order we want, so compare their ranks instead.
def _scheme_rank_sql(column: str) -> str:
    return (
        f"case {column} "
        + " ".join(f"when '{s.value}' then {s.rank}" for s in RefScheme)
        + " end"
    )


_SCHEME_RANK_SQL = _scheme_rank_sql("ref_scheme")


class RefCountsDatabase:
    """
    Wraps a SQLite database and provides methods for recording and
    reporting on referrer counts.
    """

    def __init__(self, path: pathlib.Path | str):
        """
        Create a new instance of RefCountsDatabase.
        """
        self.db = Database(path)
        self.path = pathlib.Path(path)

        self.ref_counts_table.create(
            {
                "site": int,
                "path": str,
                "hour": str,
                "ref": str,
                "ref_scheme": str,
                "total": int,
                "total_unique": int,
            },
            pk=("site", "path", "hour", "ref"),
            not_null={"total", "total_unique"},
            defaults={"total": 0, "total_unique": 0},
            if_not_exists=True,
        )

    def close(self) -> None:
        """
        Close the underlying database connection.
        """
        self.db.close()  # type: ignore

    @property
    def ref_counts_table(self) -> Table:
        """
        The table which stores the referrer counters -- one row per
        site, path, hour and normalised referrer.
        """
        return Table(self.db, "ref_counts")

    def record_ref(
        self,
        site: Site,
        *,
        path: str,
        hour: datetime.datetime,
        referrer: Referrer,
        unique: bool,
    ) -> None:
        """
        Count a single hit from ``referrer`` on ``path``.

        The hit is added to the counter for the hour it happened in.
        """
        ref_scheme = referrer.scheme.value if referrer.scheme is not None else None

        with self.db.conn:
            self.db.execute(
                f"""
                INSERT INTO ref_counts
                    (site, path, hour, ref, ref_scheme, total, total_unique)
                VALUES
                    (?, ?, ?, ?, ?, 1, ?)
                ON CONFLICT (site, path, hour, ref) DO UPDATE SET
                    total = total + excluded.total,
                    total_unique = total_unique + excluded.total_unique,
                    ref_scheme = case
                        when coalesce({_scheme_rank_sql("excluded.ref_scheme")}, -1)
                            > coalesce({_scheme_rank_sql("ref_counts.ref_scheme")}, -1)
                        then excluded.ref_scheme
                        else ref_counts.ref_scheme
                    end
                """,
                [
                    site.id,
                    path,
                    format_hour(truncate_to_hour(to_utc(hour))),
                    referrer.name,
                    ref_scheme,
                    1 if unique else 0,
                ],
            )

    def _select_stats(
        self,
        label: str,
        sql: str,
        params: list[typing.Any],
        *,
        limit: int,
        offset: int,
    ) -> RefStats:
        """
        Run a report query and return one page of results.

        We ask the database for one more row than we show.  If it comes
        back, there's another page, and we know that without having to
        run a second COUNT(*) query.
        """
        try:
            rows = list(self.db.query(sql, params + [limit + 1, offset]))
        except sqlite3.Error as e:
            raise StatsQueryError(label) from e

        stats: list[StatRow] = [
            {
                "count": row["count"],
                "count_unique": row["count_unique"],
                "ref_scheme": (
                    RefScheme.from_rank(row["ref_scheme_rank"])
                    if row["ref_scheme_rank"] is not None
                    else None
                ),
                "name": row["name"],
            }
            for row in rows
        ]

        if len(stats) > limit:
            return {"stats": stats[:limit], "more": True}
        else:
            return {"stats": stats, "more": False}

    def list_refs_by_path(
        self,
        site: Site,
        path: str,
        start: datetime.datetime,
        end: datetime.datetime,
        offset: int = 0,
    ) -> RefStats:
        """
        List the referrers for a single page.

        The path is matched case-insensitively.  Referrers with the same
        number of unique visitors are sorted by name, highest first,
        so the order is stable between pages.
        """
        return self._select_stats(
            "RefCountsDatabase.list_refs_by_path",
            f"""
            SELECT
                coalesce(sum(total), 0) as count,
                coalesce(sum(total_unique), 0) as count_unique,
                max({_SCHEME_RANK_SQL}) as ref_scheme_rank,
                ref as name
            FROM
                ref_counts
            WHERE
                site = ?
                and lower(path) = lower(?)
                and hour >= ?
                and hour <= ?
            GROUP BY
                ref
            ORDER BY
                count_unique desc, ref desc
            LIMIT
                ? OFFSET ?
            """,
            [site.id, path, format_hour(start), format_hour(end)],
            limit=site.ref_limit,
            offset=offset,
        )

    def list_top_refs(
        self,
        site: Site,
        start: datetime.datetime,
        end: datetime.datetime,
        offset: int = 0,
    ) -> RefStats:
        """
        List the referrers for the whole site, excluding any referrers
        from the site's own ``link_domain``.

        The counts leave out those self-referrals, so they can be lower
        than the total number of hits.
        """
        where = "site = ? and hour >= ? and hour <= ?"
        params: list[typing.Any] = [site.id, format_hour(start), format_hour(end)]

        if site.link_domain:
            where += " and substr(ref, 1, length(?)) != ?"
            params.extend([site.link_domain, site.link_domain])

        return self._select_stats(
            "RefCountsDatabase.list_top_refs",
            f"""
            SELECT
                coalesce(sum(total), 0) as count,
                coalesce(sum(total_unique), 0) as count_unique,
                max({_SCHEME_RANK_SQL}) as ref_scheme_rank,
                ref as name
            FROM
                ref_counts
            WHERE
                {where}
            GROUP BY
                ref
            ORDER BY
                count_unique desc
            LIMIT
                ? OFFSET ?
            """,
            params,
            limit=site.hchart_limit,
            offset=offset,
        )
