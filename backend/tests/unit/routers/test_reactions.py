"""Unit tests for reaction router endpoints."""

import pytest
from fastapi.testclient import TestClient

from mintchat.core.identity import WalletUser, require_wallet_from_state

PREFIX = "/api/v1/reactions"
ALICE = "0xa11ce"
BOB = "0xb0b"


@pytest.fixture
def client(ledger):
    """Test client acting as ALICE."""
    from mintchat.main import app
    from mintchat.routers.reactions import get_reaction_ledger

    app.dependency_overrides[require_wallet_from_state] = lambda: WalletUser(address=ALICE)
    app.dependency_overrides[get_reaction_ledger] = lambda: ledger

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


class TestToggleReaction:
    """Tests for POST /."""

    @pytest.mark.unit
    def test_like_then_unlike(self, client):
        body = {"target_type": "post", "target_id": "7", "target_owner": BOB}

        liked = client.post(f"{PREFIX}/", json=body)
        unliked = client.post(f"{PREFIX}/", json=body)

        assert liked.status_code == 200
        assert liked.json() == {"target_type": "post", "target_id": "7", "liked": True, "count": 1}
        assert unliked.json() == {"target_type": "post", "target_id": "7", "liked": False, "count": 0}

    @pytest.mark.unit
    def test_like_notifies_owner(self, client, store):
        client.post(f"{PREFIX}/", json={"target_type": "asset", "target_id": "3", "target_owner": BOB})

        [notification] = store.rows("notifications")
        assert notification["recipient"] == BOB
        assert notification["type"] == "like"
        assert notification["related_asset_id"] == "3"

    @pytest.mark.unit
    def test_unknown_target_type_rejected(self, client):
        response = client.post(f"{PREFIX}/", json={"target_type": "comment", "target_id": "7"})

        assert response.status_code == 422


class TestReactionQueries:
    """Tests for GET /mine and GET /{target_type}/{target_id}."""

    @pytest.mark.unit
    def test_status_reports_count_and_caller_like(self, client, ledger):
        ledger.toggle(BOB, "post", "7")

        before = client.get(f"{PREFIX}/post/7").json()
        client.post(f"{PREFIX}/", json={"target_type": "post", "target_id": "7"})
        after = client.get(f"{PREFIX}/post/7").json()

        assert (before["liked"], before["count"]) == (False, 1)
        assert (after["liked"], after["count"]) == (True, 2)

    @pytest.mark.unit
    def test_mine_lists_only_caller(self, client, ledger):
        ledger.toggle(BOB, "post", "1")
        client.post(f"{PREFIX}/", json={"target_type": "message", "target_id": "m-1"})

        reactions = client.get(f"{PREFIX}/mine").json()["reactions"]

        assert [(r["target_type"], r["target_id"]) for r in reactions] == [("message", "m-1")]

    @pytest.mark.unit
    def test_status_bad_target_type(self, client):
        response = client.get(f"{PREFIX}/comment/7")

        assert response.status_code == 422
