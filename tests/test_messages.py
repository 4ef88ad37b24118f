"""Tests for WebSocket message parsing and serialization."""

from __future__ import annotations

import json

import pytest

from archsync.exceptions import InvalidMessageError
from archsync.realtime.messages import (
    ConnectedMessage,
    DesignUpdateEvent,
    DesignUpdateRequest,
    ErrorMessage,
    JoinRoomRequest,
    MemberLeftMessage,
    MessageType,
    RoomJoinedMessage,
    UpdateAckMessage,
    parse_message,
)


class TestMessageTypes:
    """Tests for WebSocket message types."""

    def test_message_type_values(self) -> None:
        """Test that message types use the hyphenated wire names."""
        assert MessageType.JOIN_ROOM.value == "join-room"
        assert MessageType.JOIN_PROJECT.value == "join-project"
        assert MessageType.LEAVE_ROOM.value == "leave-room"
        assert MessageType.DESIGN_UPDATE.value == "design-update"
        assert MessageType.ROOM_JOINED.value == "room-joined"
        assert MessageType.MEMBER_JOINED.value == "member-joined"
        assert MessageType.MEMBER_LEFT.value == "member-left"
        assert MessageType.UPDATE_ACK.value == "update-ack"
        assert MessageType.ERROR.value == "error"


class TestParseMessage:
    """Tests for inbound frame parsing."""

    def test_parse_text_frame(self) -> None:
        """Test parsing a JSON text frame."""
        message_type, data = parse_message(json.dumps({"type": "join-room", "roomId": "P1"}))

        assert message_type is MessageType.JOIN_ROOM
        assert data["roomId"] == "P1"

    def test_parse_decoded_mapping(self) -> None:
        """Test that already decoded mappings are accepted."""
        message_type, _ = parse_message({"type": "ping"})
        assert message_type is MessageType.PING

    @pytest.mark.parametrize(
        ("raw", "code"),
        [
            ("not json", "invalid_json"),
            ("[1, 2]", "invalid_json"),
            ("{}", "missing_type"),
            ('{"type": "teleport"}', "unknown_type"),
            ('{"type": "member-joined"}', "unknown_type"),
        ],
    )
    def test_parse_rejects_bad_frames(self, raw: str, code: str) -> None:
        """Test that malformed frames raise with a specific code."""
        with pytest.raises(InvalidMessageError) as exc_info:
            parse_message(raw)
        assert exc_info.value.code == code


class TestRequests:
    """Tests for client request parsing."""

    def test_join_room(self) -> None:
        """Test parsing a join-room request."""
        assert JoinRoomRequest.from_dict({"type": "join-room", "roomId": "P1"}).room_id == "P1"

    def test_join_project_legacy_key(self) -> None:
        """Test that the legacy projectId key is accepted."""
        assert JoinRoomRequest.from_dict({"type": "join-project", "projectId": "P1"}).room_id == "P1"

    def test_join_project_bare_string(self) -> None:
        """Test that a bare project id in data is accepted."""
        assert JoinRoomRequest.from_dict({"type": "join-project", "data": "P7"}).room_id == "P7"

    def test_join_numeric_room_id(self) -> None:
        """Test that numeric project ids are normalized to strings."""
        assert JoinRoomRequest.from_dict({"type": "join-room", "roomId": 42}).room_id == "42"

    def test_join_missing_room_id(self) -> None:
        """Test that a join without a room id is rejected."""
        with pytest.raises(InvalidMessageError) as exc_info:
            JoinRoomRequest.from_dict({"type": "join-room"})
        assert exc_info.value.code == "missing_room_id"

    @pytest.mark.parametrize("room_id", ["", "   ", True, {"id": 1}])
    def test_join_invalid_room_id(self, room_id: object) -> None:
        """Test that empty or non-scalar room ids are rejected."""
        with pytest.raises(InvalidMessageError) as exc_info:
            JoinRoomRequest.from_dict({"type": "join-room", "roomId": room_id})
        assert exc_info.value.code == "invalid_room_id"

    def test_design_update_without_room(self) -> None:
        """Test that the room id is optional on design updates."""
        request = DesignUpdateRequest.from_dict({"type": "design-update", "payload": {"walls": []}})

        assert request.room_id is None
        assert request.payload == {"walls": []}

    def test_design_update_requires_payload(self) -> None:
        """Test that a design update without payload is rejected."""
        with pytest.raises(InvalidMessageError) as exc_info:
            DesignUpdateRequest.from_dict({"type": "design-update", "roomId": "P1"})
        assert exc_info.value.code == "missing_payload"

    def test_design_update_null_payload_is_relayed(self) -> None:
        """Test that an explicit null payload is still a payload."""
        request = DesignUpdateRequest.from_dict({"type": "design-update", "roomId": "P1", "payload": None})
        assert request.payload is None


class TestOutboundMessages:
    """Tests for server message serialization."""

    def test_connected_to_dict(self) -> None:
        """Test ConnectedMessage serialization."""
        data = ConnectedMessage(connection_id="c1", user_id="alice").to_dict()

        assert data["type"] == "connected"
        assert data["connectionId"] == "c1"
        assert data["userId"] == "alice"
        assert "timestamp" in data

    def test_room_joined_to_dict(self) -> None:
        """Test RoomJoinedMessage serialization."""
        data = RoomJoinedMessage(room_id="P1", member_count=2, last_sequence=5).to_dict()

        assert data["type"] == "room-joined"
        assert data["roomId"] == "P1"
        assert data["memberCount"] == 2
        assert data["lastSequence"] == 5
        assert data["members"] == []

    def test_member_left_to_dict(self) -> None:
        """Test MemberLeftMessage serialization."""
        data = MemberLeftMessage(room_id="P1", connection_id="c1", user_id="alice").to_dict()

        assert data == {
            "type": "member-left",
            "timestamp": data["timestamp"],
            "roomId": "P1",
            "connectionId": "c1",
            "userId": "alice",
        }

    def test_design_update_event_to_dict(self) -> None:
        """Test that the relayed event carries the payload untouched."""
        payload = {"op": "move", "id": "wall-3", "dx": 1.5}
        data = DesignUpdateEvent(room_id="P1", sender_connection_id="c1", sequence=1, payload=payload).to_dict()

        assert data["type"] == "design-update"
        assert data["roomId"] == "P1"
        assert data["sequence"] == 1
        assert data["senderConnectionId"] == "c1"
        assert data["payload"] is payload

    def test_update_ack_to_dict(self) -> None:
        """Test UpdateAckMessage serialization."""
        data = UpdateAckMessage(room_id="P1", sequence=3).to_dict()

        assert data["type"] == "update-ack"
        assert data["sequence"] == 3

    def test_error_message_to_dict(self) -> None:
        """Test ErrorMessage serialization."""
        data = ErrorMessage(code="not_in_room", message="nope", details={"roomId": "P2"}).to_dict()

        assert data["type"] == "error"
        assert data["code"] == "not_in_room"
        assert data["details"]["roomId"] == "P2"

    def test_error_message_without_details(self) -> None:
        """Test ErrorMessage without details."""
        data = ErrorMessage(code="error", message="Error").to_dict()
        assert "details" not in data
