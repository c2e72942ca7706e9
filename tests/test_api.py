"""Tests for the HTTP endpoints using FastAPI TestClient."""

import json

import pytest

from spellapi.errors import StoreError
from spellapi.storage import InMemorySpellStore

from .conftest import make_client, spell_payload


@pytest.fixture
def seeded_client(client):
    for payload in [
        spell_payload("Fireball", "D&D", school="evocation", level=3),
        spell_payload("Fireball", "Pathfinder", school="evocation", level=3),
        spell_payload("Animate Dead", "D&D", school="necromancy", level=3),
        spell_payload("Summon Monster", "Pathfinder", school="conjuration", level=1),
    ]:
        assert client.post("/spells", json=payload).status_code == 201
    return client


class BrokenStore(InMemorySpellStore):
    def query(self, spell_filter):
        raise StoreError("connection reset")


class TestHealth:
    def test_health(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestGetSpell:
    def test_found(self, client):
        payload = spell_payload("fireball", school="evocation")
        payload["metadata"]["creator"] = "TestUser"
        client.post("/spells", json=payload)

        resp = client.get("/spells/FIREBALL")

        assert resp.status_code == 200
        assert resp.json() == {
            "name": "Fireball",
            "description": "Does the big boom",
            "attributes": {"school": "evocation"},
            "metadata": {"system": "D&D"},
        }

    def test_not_found(self, client):
        assert client.get("/spells/wish").status_code == 404

    def test_ambiguous_without_system(self, seeded_client):
        resp = seeded_client.get("/spells/fireball")

        assert resp.status_code == 400
        assert resp.json()["detail"] == "multiple matching spells found"

    def test_system_query_param(self, seeded_client):
        resp = seeded_client.get("/spells/fireball", params={"system": "Pathfinder"})

        assert resp.status_code == 200
        assert resp.json()["metadata"] == {"system": "Pathfinder"}

    def test_store_error_is_opaque(self):
        with make_client(store=BrokenStore()) as client:
            resp = client.get("/spells/fireball")

        assert resp.status_code == 500
        assert "connection reset" not in resp.text


class TestPostSpell:
    def test_created(self, client):
        resp = client.post("/spells", json=spell_payload("fireball"))

        assert resp.status_code == 201
        assert resp.json() == {"message": "Spell added"}

    def test_conflict(self, client):
        client.post("/spells", json=spell_payload("fireball"))

        resp = client.post("/spells", json=spell_payload("FireBall"))

        assert resp.status_code == 409
        assert resp.json()["detail"] == "spell already exists for this system"

    def test_missing_field(self, client):
        resp = client.post("/spells", json={"name": "fireball", "metadata": {"system": "D&D"}})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "missing required field: description"

    def test_malformed_json(self, client):
        resp = client.post(
            "/spells", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert resp.status_code == 400

    def test_json_string_body_is_rejected(self, client):
        resp = client.post("/spells", json=json.dumps(spell_payload("fireball")))

        assert resp.status_code == 400
        assert client.get("/spells/fireball").status_code == 404

    def test_batch(self, client):
        resp = client.post(
            "/spells",
            json={
                "data": [
                    spell_payload("fireball"),
                    spell_payload("shield", description=""),
                    spell_payload("Fireball"),
                ]
            },
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["count"] == 3
        assert body["succeeded"] is False
        assert [item["status"] for item in body["items"]] == [
            "created",
            "invalid_input",
            "conflict",
        ]

    def test_batch_all_created(self, client):
        resp = client.post(
            "/spells",
            json={"data": [spell_payload("fireball"), spell_payload("shield")]},
        )

        assert resp.status_code == 201
        assert resp.json()["response_message"] == "Spell(s) added"
        assert client.get("/spells/shield").status_code == 200

    def test_batch_data_must_be_a_list(self, client):
        assert client.post("/spells", json={"data": "fireball"}).status_code == 400

    def test_batch_needs_flag(self):
        with make_client(disabled_flags=["multipost-spell"]) as client:
            resp = client.post("/spells", json={"data": [spell_payload("fireball")]})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "missing required field: name"


class TestDeleteSpell:
    def test_deleted(self, seeded_client):
        resp = seeded_client.delete("/spells/fireball", params={"system": "D&D"})

        assert resp.status_code == 202
        assert resp.json() == {"message": "Spell removed"}
        assert seeded_client.get("/spells/fireball").json()["metadata"]["system"] == "Pathfinder"

    def test_not_found(self, client):
        assert client.delete("/spells/wish").status_code == 404

    def test_ambiguous(self, seeded_client):
        resp = seeded_client.delete("/spells/fireball")

        assert resp.status_code == 400
        assert resp.json()["detail"] == "multiple matching spells found"

    def test_forbidden_when_flag_off(self):
        with make_client(disabled_flags=["delete-spell"]) as client:
            client.post("/spells", json=spell_payload("fireball"))

            assert client.delete("/spells/fireball").status_code == 403
            assert client.get("/spells/fireball").status_code == 200


class TestListSpells:
    def test_all(self, seeded_client):
        resp = seeded_client.get("/spells")

        assert resp.status_code == 200
        assert len(resp.json()) == 4
        assert all(spell["name"][0].isupper() for spell in resp.json())

    def test_empty_store(self, client):
        resp = client.get("/spells")

        assert resp.status_code == 200
        assert resp.json() == []

    def test_by_system(self, seeded_client):
        resp = seeded_client.get("/spells", params={"system": "D&D"})

        assert sorted(spell["name"] for spell in resp.json()) == ["Animate Dead", "Fireball"]

    def test_repeated_params(self, seeded_client):
        resp = seeded_client.get(
            "/spells", params=[("school", "necromancy"), ("school", "conjuration")]
        )

        assert sorted(spell["name"] for spell in resp.json()) == [
            "Animate Dead",
            "Summon Monster",
        ]


    @pytest.mark.parametrize("key", ["$where", "metadata.creator"])
    def test_unusable_filter_key(self, seeded_client, key):
        resp = seeded_client.get("/spells", params={key: "x"})

        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("invalid filter field")


class TestSpellMetadata:
    def test_distinct_values(self, seeded_client):
        resp = seeded_client.get("/spellmetadata/system")

        assert resp.status_code == 200
        assert sorted(resp.json()["system"]) == ["D&D", "Pathfinder"]

    def test_distinct_attribute_values(self, seeded_client):
        resp = seeded_client.get("/spellmetadata/level")

        assert sorted(resp.json()["level"]) == ["1", "3"]

    @pytest.mark.parametrize("path", ["/spellmetadata/$where", "/spellmetadata/school.name"])
    def test_unusable_field_name(self, seeded_client, path):
        assert seeded_client.get(path).status_code == 400

    def test_field_names(self, seeded_client):
        resp = seeded_client.get("/spellmetadata")

        assert resp.status_code == 200
        assert resp.json() == ["level", "school"]

    @pytest.mark.parametrize(
        "path,flag",
        [
            ("/spellmetadata/system", "get-spell-metadata"),
            ("/spellmetadata", "get-spell-metadata-names"),
        ],
    )
    def test_forbidden_when_flag_off(self, path, flag):
        with make_client(disabled_flags=[flag]) as client:
            assert client.get(path).status_code == 403
