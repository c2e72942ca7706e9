"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from spellapi.catalog.service import SpellCatalog
from spellapi.config import Settings
from spellapi.flags import SettingsFeatureFlags
from spellapi.main import create_app
from spellapi.models import parse_spell
from spellapi.storage import InMemorySpellStore


def spell_payload(name, system="D&D", description="Does the big boom", **attributes):
    payload = {
        "name": name,
        "description": description,
        "metadata": {"system": system},
    }
    if attributes:
        payload["attributes"] = attributes
    return payload


@pytest.fixture
def store():
    return InMemorySpellStore()


@pytest.fixture
def catalog(store):
    return SpellCatalog(store)


@pytest.fixture
def seeded_catalog(catalog):
    """Two fireballs in different systems plus a few single-system spells."""
    for payload in [
        spell_payload("Fireball", "D&D", school="evocation", level=3),
        spell_payload("Fireball", "Pathfinder", school="evocation", level=3),
        spell_payload("Magic Missile", "D&D", school="evocation", level=1),
        spell_payload("Animate Dead", "D&D", school="necromancy", level=3),
        spell_payload("Summon Monster", "Pathfinder", school="conjuration", level=1),
    ]:
        catalog.create(parse_spell(payload))
    return catalog


def make_client(store=None, disabled_flags=()):
    app = create_app(
        settings=Settings(store_backend="memory", log_level="WARNING"),
        store=store if store is not None else InMemorySpellStore(),
        flags=SettingsFeatureFlags(disabled_flags),
    )
    return TestClient(app)


@pytest.fixture
def client():
    with make_client() as c:
        yield c
