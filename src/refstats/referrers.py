"""
This file does the normalisation of referrer data.

Browsers and apps send all sorts of referrers for what is really the
same source: there are dozens of Hacker News reader apps, and Google has
a domain for every country.  I don't need to see all those broken out
in detail -- it's enough to know the traffic came from "Hacker News"
or "Google".

The normalisation is an ordered list of rules.  Each rule either
returns the final name, or rewrites the URL and passes it on to the
rules below it.
"""

import functools
import sys
import types
import typing
import urllib.parse

import hyperlink

from .types import Classification, QueryParams, Referrer, RefScheme


def invert_dict(d: dict[str, list[str]]) -> dict[str, str]:
    result: dict[str, str] = {}

    for key, values in d.items():
        for v in values:
            result[v] = key

    return result


# Mobile or regional hosts that should be counted as their main host.
HOST_ALIASES: typing.Mapping[str, str] = types.MappingProxyType(
    invert_dict(
        {
            "en.wikipedia.org": ["en.m.wikipedia.org"],
            "www.facebook.com": ["m.facebook.com"],
            "habr.com": ["m.habr.com"],
            "www.reddit.com": [
                "old.reddit.com",
                "i.reddit.com",
                "np.reddit.com",
                "fr.reddit.com",
            ],
        }
    )
)


# Hosts where the individual URL isn't interesting, only the kind of
# source.  A lot of these are Android app IDs, which is all we get
# as a referrer from an app.
GROUPS: typing.Mapping[str, str] = types.MappingProxyType(
    invert_dict(
        {
            # HN has <meta name="referrer" content="origin">, so we only
            # ever get the domain.
            "Hacker News": [
                "news.ycombinator.com",
                "hn.algolia.com",
                "hckrnews.com",
                "hn.premii.com",
                "com.stefandekanski.hackernews.free",
                "io.github.hidroh.materialistic",
                "hackerweb.app",
                "quiethn.com",
                "hnews.xyz",
                "hackernewsmobile.com",
            ],
            "Email": [
                "mail.google.com",
                "com.google.android.gm",
                "mail.yahoo.com",
            ],
            "RSS": [
                "org.fox.ttrss",
                "www.inoreader.com",
                "com.innologica.inoreader",
                "usepanda.com",
                "feedly.com",
            ],
            "Google": ["com.google.android.googlequicksearchbox"],
            "www.reddit.com": [
                "com.andrewshu.android.reddit",
                "com.laurencedawson.reddit_sync",
                "com.laurencedawson.reddit_sync.dev",
                "com.laurencedawson.reddit_sync.pro",
            ],
            "www.facebook.com": ["l.facebook.com", "lm.facebook.com"],
            "Telegram Messenger": ["org.telegram.messenger"],
            "Slack Chat": ["com.Slack"],
        }
    )
)


# On Reddit these are different views of the same listing.
#
#     www.reddit.com/r/programming/top
#     www.reddit.com/r/programming/.compact
#     www.reddit.com/r/programming.compact
#     www.reddit.com/r/webdev/new
#     www.reddit.com/r/vim/search
#
REDDIT_VIEW_SUFFIXES = ("/top", "/new", "/search", ".compact")


# Google Analytics tracking parameters.
TRACKING_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_term")


# Query parameters on the tracked page which name the campaign that
# sent the visitor, in order of preference.
CAMPAIGN_PARAMS = ("utm_source", "ref", "src")


@functools.lru_cache(maxsize=100000)
def parse_url(text: str) -> hyperlink.URL:
    """
    Parse a ``str`` as a ``hyperlink.URL``.

    This uses the encoded form of the URL rather than ``DecodedURL``, so
    the text we give back is the text we were sent.
    """
    return hyperlink.URL.from_text(text)


def get_path(u: hyperlink.URL) -> str:
    """
    Returns the path of a URL as a string, e.g. ``/r/programming/top``.
    """
    if not u.path:
        return ""

    return ("/" if u.rooted else "") + "/".join(u.path)


def to_text(u: hyperlink.URL) -> str:
    """
    Render a URL whose scheme has been removed.

    Without a scheme hyperlink renders the host as ``//host/path``, so
    strip the leading slashes.
    """
    return typing.cast(str, u.to_text()).lstrip("/")


RuleResult: typing.TypeAlias = hyperlink.URL | Classification


class Rule(typing.NamedTuple):
    """
    A single step in referrer normalisation.

    If ``matches`` returns True, ``apply`` either returns the final
    ``Classification``, or a rewritten URL that's passed on to the
    next rule.  Both get the parsed URL and the original referrer.
    """

    name: str
    matches: typing.Callable[[hyperlink.URL, str], bool]
    apply: typing.Callable[[hyperlink.URL, str], RuleResult]


def _remove_scheme(u: hyperlink.URL, referrer: str) -> hyperlink.URL:
    # hyperlink fills in the default port for the scheme, and only leaves
    # it out of the text while the scheme is there.
    default_port = hyperlink.URL(scheme=u.scheme).port

    return u.replace(scheme="", port=None if u.port == default_port else u.port)


def _strip_reddit_view(u: hyperlink.URL, referrer: str) -> hyperlink.URL:
    path = get_path(u)

    for suffix in REDDIT_VIEW_SUFFIXES:
        if path.endswith(suffix):
            path = path[: -len(suffix)]
            break

    return u.replace(path=tuple(path.split("/")[1:]) if path else ())


def _link_to_tweet_search(u: hyperlink.URL, referrer: str) -> Classification:
    # Linking https://t.co/c3MITw38Yq isn't too useful as that will
    # link back to the page, so link to a search for the tweet instead.
    return Classification(
        "twitter.com/search?q=https%3A%2F%2Ft.co"
        + urllib.parse.quote_plus(get_path(u)),
        False,
    )


def _remove_tracking_params(u: hyperlink.URL, referrer: str) -> Classification:
    for param_name in TRACKING_PARAMS:
        u = u.remove(param_name)

    return Classification(to_text(u), False)


RULES: tuple[Rule, ...] = (
    # I'm not sure where these links are generated, but there are
    # *a lot* of them and the path is never useful.
    Rule(
        name="noisy host",
        matches=lambda u, _: u.host == "link.oreilly.com",
        apply=lambda u, _: Classification("link.oreilly.com", False),
    ),
    Rule(
        name="remove scheme",
        matches=lambda u, _: True,
        apply=_remove_scheme,
    ),
    Rule(
        name="host alias",
        matches=lambda u, _: u.host in HOST_ALIASES,
        apply=lambda u, _: u.replace(host=HOST_ALIASES[u.host]),
    ),
    # e.g. www.google.com, www.google.co.nz, www.google.nl
    Rule(
        name="google",
        matches=lambda u, _: u.host.startswith("www.google."),
        apply=lambda u, _: Classification("Google", True),
    ),
    Rule(
        name="group",
        matches=lambda u, _: u.host in GROUPS,
        apply=lambda u, _: Classification(GROUPS[u.host], True),
    ),
    # Useful: https://lobste.rs/s/tslw6k/why_i_m_still_using_jquery_2019
    # Not really: https://lobste.rs/newest/page/8, https://lobste.rs/t/javascript
    Rule(
        name="link aggregator listing",
        matches=lambda u, _: (
            u.host in {"lobste.rs", "gambe.ro"} and not get_path(u).startswith("/s/")
        ),
        apply=lambda u, _: Classification(u.host, False),
    ),
    Rule(
        name="reddit view",
        matches=lambda u, _: u.host == "www.reddit.com",
        apply=_strip_reddit_view,
    ),
    Rule(
        name="twitter short link",
        matches=lambda u, _: u.host == "t.co",
        apply=_link_to_tweet_search,
    ),
    Rule(
        name="no query",
        matches=lambda u, referrer: "?" not in referrer,
        apply=lambda u, _: Classification(to_text(u), False),
    ),
    Rule(
        name="tracking params",
        matches=lambda u, _: True,
        apply=_remove_tracking_params,
    ),
)


@functools.lru_cache(maxsize=100000)
def normalise_referrer(referrer: str) -> Classification:
    """
    Given a raw referrer, return its normalised name, and whether that
    name is a group of sources.

    This never throws: if the referrer can't be handled, you get the
    referrer back as-is.
    """
    if not referrer:
        return Classification("", False)

    try:
        u = parse_url(referrer)
    except Exception as e:
        print(f"Unable to parse {referrer}: {e}", file=sys.stderr)
        return Classification(referrer, False)

    for rule in RULES:
        if not rule.matches(u, referrer):
            continue

        result = rule.apply(u, referrer)

        if isinstance(result, Classification):
            # e.g. "http://" has nothing left once the scheme is gone
            if not result.name:
                return Classification(referrer, False)

            return result

        u = result

    assert 0, "Unreachable"  # pragma: no cover


def classify_referrer(referrer: str, *, query: QueryParams = ()) -> Referrer:
    """
    Work out the referrer to record for a hit.

    ``query`` is the query string of the page that was visited.  If it
    names a campaign, that takes priority over the Referer header.
    """
    query_dict = {k: v for k, v in query}

    for param_name in CAMPAIGN_PARAMS:
        campaign = query_dict.get(param_name)

        if campaign:
            return Referrer(campaign, False, RefScheme.CAMPAIGN)

    if not referrer:
        return Referrer("", False, None)

    name, is_group = normalise_referrer(referrer)

    if is_group:
        return Referrer(name, is_group, RefScheme.GENERATED)

    try:
        scheme = parse_url(referrer).scheme
    except Exception:
        scheme = ""

    if scheme in {"http", "https"}:
        return Referrer(name, is_group, RefScheme.HTTP)
    else:
        return Referrer(name, is_group, RefScheme.OTHER)
