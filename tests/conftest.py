from collections.abc import Iterator
import pathlib

import pytest

from refstats.config import Site
from refstats.database import RefCountsDatabase


@pytest.fixture()
def ref_db(tmp_path: pathlib.Path) -> Iterator[RefCountsDatabase]:
    """
    Create an empty referrer database in a temp directory.
    """
    db = RefCountsDatabase(tmp_path / "refs.sqlite")

    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def site() -> Site:
    return Site(id=1, link_domain="example.com")
