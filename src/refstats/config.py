"""
Per-site settings used by the referrer reports.
"""

from dataclasses import dataclass, field
import typing


# How many rows to show if the site doesn't set a limit.
DEFAULT_REF_LIMIT = 10
DEFAULT_HCHART_LIMIT = 6


@dataclass(frozen=True)
class Limits:
    """
    Row limits for the reports.  Zero means "use the default".

    Attributes:
        ref: rows in the per-path referrer report
        hchart: rows in the site-wide top referrers report
    """

    ref: int = 0
    hchart: int = 0


@dataclass(frozen=True)
class SiteSettings:
    limits: Limits = field(default_factory=Limits)


@dataclass(frozen=True)
class Site:
    """
    A site whose referrers we count.

    If ``link_domain`` is set, referrers from that domain are the site
    linking to itself, and are left out of the top referrers report.
    """

    id: int
    link_domain: str = ""
    settings: SiteSettings = field(default_factory=SiteSettings)

    @property
    def ref_limit(self) -> int:
        return self.settings.limits.ref or DEFAULT_REF_LIMIT

    @property
    def hchart_limit(self) -> int:
        return self.settings.limits.hchart or DEFAULT_HCHART_LIMIT

    @classmethod
    def from_dict(cls, data: dict[str, typing.Any]) -> "Site":
        """
        Create a ``Site`` from JSON-like data, e.g.

            {"id": 1, "link_domain": "example.com", "limits": {"ref": 20}}

        """
        limits = data.get("limits") or {}

        return cls(
            id=int(data["id"]),
            link_domain=data.get("link_domain") or "",
            settings=SiteSettings(
                limits=Limits(
                    ref=int(limits.get("ref") or 0),
                    hchart=int(limits.get("hchart") or 0),
                )
            ),
        )
