"""End-to-end tests for the realtime WebSocket channel."""

from contextlib import ExitStack
from datetime import timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from src.schemas.events import (
    InvitePending,
    InviteResponded,
    ItemAdded,
    ItemDeleted,
    ItemUpdated,
    ListAccessRemoved,
    ListCreated,
    ListDeleted,
    ListSharedWithYou,
    ListUpdate,
    RoleChanged,
    decode_event,
)
from src.services.auth import create_access_token


def connect(client, token):
    return client.websocket_connect(f"/api/v1/ws?token={token}")


def sync(ws):
    """Round-trip a ping; everything queued for this socket before it has arrived."""
    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


def join(ws, list_id):
    ws.send_json({"type": "joinList", "listId": list_id})
    sync(ws)


def next_event(ws):
    return decode_event(ws.receive_text())


class TestHandshake:
    """Tests for WebSocket authentication."""

    def _refusal(self, client, url):
        with client.websocket_connect(url) as ws:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
        return exc_info.value

    def test_missing_token(self, client):
        exc = self._refusal(client, "/api/v1/ws")
        assert exc.code == 4001
        assert exc.reason == "no_token"

    def test_invalid_token(self, client):
        exc = self._refusal(client, "/api/v1/ws?token=not-a-jwt")
        assert exc.code == 4001
        assert exc.reason == "invalid_token"

    def test_expired_token(self, client, auth_headers):
        token = create_access_token(
            auth_headers.user_id, auth_headers.email, expires_delta=timedelta(seconds=-5)
        )
        exc = self._refusal(client, f"/api/v1/ws?token={token}")
        assert exc.code == 4002
        assert exc.reason == "expired_token"

    def test_valid_token_connects(self, client, auth_headers):
        with connect(client, auth_headers.token) as ws:
            sync(ws)

    def test_bearer_header(self, client, auth_headers):
        with client.websocket_connect("/api/v1/ws", headers=dict(auth_headers)) as ws:
            sync(ws)

    def test_malformed_messages_are_ignored(self, client, auth_headers):
        with connect(client, auth_headers.token) as ws:
            ws.send_text("not json")
            ws.send_json({"type": "somethingElse"})
            ws.send_json({"type": "joinList"})
            sync(ws)


class TestPrivateRoom:
    """Events addressed to a user reach every one of their sockets without joining."""

    def test_list_created(self, client, auth_headers):
        with connect(client, auth_headers.token) as ws:
            sync(ws)
            response = client.post("/api/v1/lists", headers=auth_headers, json={"name": "Trip"})

            event = next_event(ws)
            assert isinstance(event, ListCreated)
            assert event.list_id == response.json()["id"]
            assert event.list.name == "Trip"

    def test_every_socket_of_the_user(self, client, auth_headers):
        with connect(client, auth_headers.token) as first, connect(
            client, auth_headers.token
        ) as second:
            sync(first)
            sync(second)
            client.post("/api/v1/lists", headers=auth_headers, json={"name": "Trip"})

            assert isinstance(next_event(first), ListCreated)
            assert isinstance(next_event(second), ListCreated)

    def test_other_users_hear_nothing(self, client, auth_headers, other_headers):
        with connect(client, other_headers.token) as ws:
            sync(ws)
            client.post("/api/v1/lists", headers=auth_headers, json={"name": "Trip"})
            sync(ws)


class TestListRoom:
    """Tests for joining list rooms and receiving item events."""

    def test_owner_receives_item_events(self, client, auth_headers, make_list):
        list_id = make_list(auth_headers)["id"]
        base = f"/api/v1/lists/{list_id}/items"

        with connect(client, auth_headers.token) as ws:
            join(ws, list_id)

            item = client.post(base, headers=auth_headers, json={"name": "Milk"}).json()
            event = next_event(ws)
            assert isinstance(event, ItemAdded)
            assert event.list_id == list_id
            assert event.item.id == item["id"]

            client.patch(f"{base}/{item['id']}/toggle-bought", headers=auth_headers)
            event = next_event(ws)
            assert isinstance(event, ItemUpdated)
            assert event.item.is_bought is True
            assert event.item.bought_by == [auth_headers.user_id]

            client.delete(f"{base}/{item['id']}", headers=auth_headers)
            event = next_event(ws)
            assert isinstance(event, ItemDeleted)
            assert event.item_id == item["id"]

    def test_wire_format(self, client, auth_headers, make_list):
        list_id = make_list(auth_headers)["id"]
        with connect(client, auth_headers.token) as ws:
            join(ws, list_id)
            client.post(
                f"/api/v1/lists/{list_id}/items", headers=auth_headers, json={"name": "Milk"}
            )

            message = ws.receive_json()
            assert message["type"] == "itemAdded"
            assert message["listId"] == list_id
            assert "timestamp" in message
            assert message["item"]["name"] == "Milk"
            assert message["item"]["is_bought"] is False

    def test_noop_update_emits_nothing(self, client, auth_headers, make_list):
        list_id = make_list(auth_headers)["id"]
        base = f"/api/v1/lists/{list_id}/items"
        item = client.post(base, headers=auth_headers, json={"name": "Milk"}).json()

        with connect(client, auth_headers.token) as ws:
            join(ws, list_id)
            client.patch(f"{base}/{item['id']}", headers=auth_headers, json={"name": "Milk"})
            sync(ws)

    def test_failed_mutation_emits_nothing(
        self, client, auth_headers, other_headers, make_list, share_accepted
    ):
        list_id = make_list(auth_headers)["id"]
        share_accepted(list_id, auth_headers, other_headers, role="viewer")

        with connect(client, auth_headers.token) as ws:
            join(ws, list_id)
            response = client.post(
                f"/api/v1/lists/{list_id}/items", headers=other_headers, json={"name": "Milk"}
            )
            assert response.status_code == 403
            sync(ws)

    def test_join_denied_for_stranger(self, client, auth_headers, other_headers, make_list):
        list_id = make_list(auth_headers)["id"]

        with connect(client, other_headers.token) as ws:
            join(ws, list_id)
            client.post(
                f"/api/v1/lists/{list_id}/items", headers=auth_headers, json={"name": "Milk"}
            )
            sync(ws)

    def test_join_denied_for_pending_invitee(
        self, client, auth_headers, other_headers, make_list
    ):
        list_id = make_list(auth_headers)["id"]
        client.post(
            f"/api/v1/lists/{list_id}/share",
            headers=auth_headers,
            json={"email": other_headers.email},
        )

        with connect(client, other_headers.token) as ws:
            join(ws, list_id)
            client.post(
                f"/api/v1/lists/{list_id}/items", headers=auth_headers, json={"name": "Milk"}
            )
            sync(ws)

    def test_leave_list(self, client, auth_headers, make_list):
        list_id = make_list(auth_headers)["id"]
        with connect(client, auth_headers.token) as ws:
            join(ws, list_id)
            ws.send_json({"type": "leaveList", "listId": list_id})
            # Leaving twice is harmless
            ws.send_json({"type": "leaveList", "listId": list_id})
            sync(ws)

            client.post(
                f"/api/v1/lists/{list_id}/items", headers=auth_headers, json={"name": "Milk"}
            )
            sync(ws)


class TestSharingEvents:
    """Tests for the events of the invitation workflow."""

    def test_invite_accept_then_receive_items(
        self, client, auth_headers, other_headers, make_list
    ):
        """Viewer invited, accepts, joins the room and hears item events."""
        list_id = make_list(auth_headers)["id"]

        with connect(client, auth_headers.token) as owner_ws, connect(
            client, other_headers.token
        ) as member_ws:
            sync(owner_ws)
            sync(member_ws)

            response = client.post(
                f"/api/v1/lists/{list_id}/share",
                headers=auth_headers,
                json={"email": other_headers.email, "role": "viewer"},
            )
            assert response.json()["shared_with"][0]["status"] == "pending"

            event = next_event(member_ws)
            assert isinstance(event, InvitePending)
            assert event.list_id == list_id
            assert event.role == "viewer"

            response = client.put(
                f"/api/v1/lists/{list_id}/invite/{other_headers.user_id}/accept",
                headers=other_headers,
            )
            assert response.json()["shared_with"][0]["status"] == "accepted"

            event = next_event(member_ws)
            assert isinstance(event, InviteResponded)
            assert event.status == "accepted"
            assert isinstance(next_event(member_ws), ListSharedWithYou)

            event = next_event(owner_ws)
            assert isinstance(event, InviteResponded)
            assert event.user_id == other_headers.user_id

            join(member_ws, list_id)
            client.post(
                f"/api/v1/lists/{list_id}/items", headers=auth_headers, json={"name": "Milk"}
            )
            event = next_event(member_ws)
            assert isinstance(event, ItemAdded)
            assert event.item.name == "Milk"

    def test_decline_notifies_owner(self, client, auth_headers, other_headers, make_list):
        list_id = make_list(auth_headers)["id"]
        client.post(
            f"/api/v1/lists/{list_id}/share",
            headers=auth_headers,
            json={"email": other_headers.email},
        )

        with connect(client, auth_headers.token) as owner_ws:
            sync(owner_ws)
            client.put(
                f"/api/v1/lists/{list_id}/invite/{other_headers.user_id}/decline",
                headers=other_headers,
            )
            event = next_event(owner_ws)
            assert isinstance(event, InviteResponded)
            assert event.status == "declined"

    def test_role_change_reaches_member(
        self, client, auth_headers, other_headers, make_list, share_accepted
    ):
        list_id = make_list(auth_headers)["id"]
        share_accepted(list_id, auth_headers, other_headers, role="viewer")

        with connect(client, other_headers.token) as ws:
            join(ws, list_id)
            client.patch(
                f"/api/v1/lists/{list_id}/role/{other_headers.user_id}",
                headers=auth_headers,
                json={"role": "editor"},
            )
            assert isinstance(next_event(ws), ListUpdate)
            event = next_event(ws)
            assert isinstance(event, RoleChanged)
            assert event.role == "editor"

    def test_revoke_evicts_from_room(
        self, client, auth_headers, other_headers, make_list, share_accepted
    ):
        list_id = make_list(auth_headers)["id"]
        share_accepted(list_id, auth_headers, other_headers, role="editor")

        with connect(client, other_headers.token) as ws:
            join(ws, list_id)
            client.delete(
                f"/api/v1/lists/{list_id}/share/{other_headers.user_id}", headers=auth_headers
            )
            assert isinstance(next_event(ws), ListUpdate)
            event = next_event(ws)
            assert isinstance(event, ListAccessRemoved)
            assert event.list_id == list_id

            # No longer in the room, and cannot rejoin
            client.post(
                f"/api/v1/lists/{list_id}/items", headers=auth_headers, json={"name": "Milk"}
            )
            sync(ws)
            join(ws, list_id)
            client.post(
                f"/api/v1/lists/{list_id}/items", headers=auth_headers, json={"name": "Bread"}
            )
            sync(ws)


class TestListDeletion:
    """Deleting a list notifies the room and the owner, then closes the room."""

    def test_delete_list(
        self, client, auth_headers, other_headers, third_headers, make_list, share_accepted
    ):
        list_id = make_list(auth_headers)["id"]
        share_accepted(list_id, auth_headers, other_headers, role="editor")

        with connect(client, auth_headers.token) as owner_ws, connect(
            client, other_headers.token
        ) as member_ws, connect(client, third_headers.token) as stranger_ws:
            join(owner_ws, list_id)
            join(member_ws, list_id)
            sync(stranger_ws)

            response = client.delete(f"/api/v1/lists/{list_id}", headers=auth_headers)
            assert response.status_code == 204

            # Once through the list room, once through the private room
            for ws in (owner_ws, member_ws):
                for _ in range(2):
                    event = next_event(ws)
                    assert isinstance(event, ListDeleted)
                    assert event.list_id == list_id
                sync(ws)
            sync(stranger_ws)

        assert client.get(f"/api/v1/lists/{list_id}", headers=auth_headers).status_code == 404

    def test_owner_private_room_without_join(self, client, auth_headers, make_list):
        list_id = make_list(auth_headers)["id"]

        with connect(client, auth_headers.token) as ws:
            sync(ws)
            client.delete(f"/api/v1/lists/{list_id}", headers=auth_headers)
            event = next_event(ws)
            assert isinstance(event, ListDeleted)
            sync(ws)


class TestDatabaseConnections:
    """Sockets only hold a database connection while checking a join."""

    def test_idle_sockets_hold_no_connection(self, live_client, checked_out_connections):
        response = live_client.post(
            "/api/v1/auth/register",
            json={"email": "dana@example.com", "username": "dana", "password": "testpass123"},
        )
        assert response.status_code == 201, response.text
        token = response.json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}
        response = live_client.post("/api/v1/lists", headers=headers, json={"name": "Groceries"})
        list_id = response.json()["id"]

        with ExitStack() as stack:
            sockets = [stack.enter_context(connect(live_client, token)) for _ in range(3)]
            for ws in sockets:
                join(ws, list_id)

            assert checked_out_connections() == 0

            live_client.post(
                f"/api/v1/lists/{list_id}/items", headers=headers, json={"name": "Milk"}
            )
            for ws in sockets:
                assert isinstance(next_event(ws), ItemAdded)
                sync(ws)

            assert checked_out_connections() == 0
