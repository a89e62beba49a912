from __future__ import annotations

import pytest
from pydantic import ValidationError

from game_hangar import schemas


def test_tags_are_capped_at_forty():
    schemas.AssetCreate(name="ok", tags=[f"t{i}" for i in range(40)])
    with pytest.raises(ValidationError):
        schemas.AssetCreate(name="too many", tags=[f"t{i}" for i in range(41)])


def test_tags_must_be_unique():
    with pytest.raises(ValidationError):
        schemas.AssetCreate(name="dupes", tags=["rpg", "rpg"])


def test_link_must_be_a_url():
    with pytest.raises(ValidationError):
        schemas.AssetCreate(name="bad", link="not a url")
    asset = schemas.AssetCreate(name="good", link="https://example.com/a.zip")
    assert asset.link == "https://example.com/a.zip"


def test_title_length():
    with pytest.raises(ValidationError):
        schemas.TopicCreate(name="x" * 90)
    with pytest.raises(ValidationError):
        schemas.ThreadCreate(title="", userID="00000000-0000-0000-0000-000000000001", topicID=1)


def test_counters_are_non_negative():
    with pytest.raises(ValidationError):
        schemas.DemoUpdate(upvotes=-1)


def test_demo_requires_a_link():
    with pytest.raises(ValidationError):
        schemas.DemoCreate(title="t", userID="00000000-0000-0000-0000-000000000001")


@pytest.mark.parametrize("password", ["short1", "has space1", "nøn-ascii1"])
def test_rejected_passwords(password):
    with pytest.raises(ValueError):
        schemas.check_password(password)


def test_accepted_password():
    assert schemas.check_password("Abcdef12") == "Abcdef12"


def test_email_shape():
    schemas.RegisterRequest(username="a", email="a@e", password="abcdefgh")
    with pytest.raises(ValidationError):
        schemas.RegisterRequest(username="a", email="no-at-sign", password="abcdefgh")


def test_versioned_updates_require_a_positive_version():
    with pytest.raises(ValidationError):
        schemas.AssetUpdate(name="x")
    with pytest.raises(ValidationError):
        schemas.TopicUpdate(name="x", version=0)
