"""
Tests for the MessageRouter.

Walks through the broadcaster/viewer negotiation and checks routing of
every message type, lookup failures and malformed input.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import frame


async def register_viewer(router, conn):
    await router.route(conn, frame(type="register-viewer"))
    return conn.viewer_id


class TestNegotiationWalkthrough:
    """One broadcaster, one viewer, full negotiation."""

    @pytest.mark.asyncio
    async def test_walkthrough(self, router, registry, make_conn):
        viewer = make_conn()

        # Viewer registers before anyone broadcasts
        await router.route(viewer, frame(type="register-viewer"))
        assert viewer.websocket.messages == [
            {
                "type": "registered",
                "role": "viewer",
                "viewerId": "v1",
                "broadcastActive": False,
                "viewerCount": 1,
            }
        ]
        viewer.websocket.clear()

        # Broadcaster registers; viewer is told the broadcast started
        broadcaster = make_conn()
        await router.route(broadcaster, frame(type="register-broadcaster"))
        assert broadcaster.websocket.messages == [
            {"type": "registered", "role": "broadcaster", "viewerCount": 1}
        ]
        assert viewer.websocket.messages == [{"type": "broadcast-started", "viewerCount": 1}]
        viewer.websocket.clear()
        broadcaster.websocket.clear()

        # Offer reaches the viewer
        offer_payload = {"type": "offer", "sdp": "v=0\r\na=group:BUNDLE 0\r\n"}
        await router.route(broadcaster, frame(type="offer", viewerId="v1", offer=offer_payload))
        assert viewer.websocket.messages == [{"type": "offer", "offer": offer_payload}]

        # Answer reaches the broadcaster tagged with the viewer id
        answer_payload = {"type": "answer", "sdp": "v=0\r\n"}
        await router.route(viewer, frame(type="answer", viewerId="v1", answer=answer_payload))
        assert broadcaster.websocket.messages == [
            {"type": "answer", "answer": answer_payload, "viewerId": "v1"}
        ]
        broadcaster.websocket.clear()

        # A second broadcaster is rejected
        intruder = make_conn()
        result = await router.route(intruder, frame(type="register-broadcaster"))
        assert intruder.websocket.messages == [
            {"type": "error", "message": "Já existe um transmissor ativo"}
        ]
        assert result.success is False
        assert registry.current_broadcaster is broadcaster
        viewer.websocket.clear()

        # Broadcaster goes away; the slot can be claimed again
        await registry.remove_connection(broadcaster)
        assert viewer.websocket.messages == [{"type": "broadcast-stopped"}]
        replacement = make_conn()
        await router.route(replacement, frame(type="register-broadcaster"))
        assert replacement.websocket.messages[0]["role"] == "broadcaster"
        assert registry.current_broadcaster is replacement


class TestRegistration:
    """register-broadcaster / register-viewer handling."""

    @pytest.mark.asyncio
    async def test_viewer_registration_announced_after_reply(self, router, make_conn):
        broadcaster, viewer = make_conn(), make_conn()
        await router.route(broadcaster, frame(type="register-broadcaster"))
        broadcaster.websocket.clear()

        result = await router.route(viewer, frame(type="register-viewer"))

        assert viewer.websocket.messages[0]["broadcastActive"] is True
        assert broadcaster.websocket.messages == [
            {"type": "viewer-connected", "viewerId": "v1", "viewerCount": 1}
        ]
        assert result.delivered == 2

    @pytest.mark.asyncio
    async def test_conflict_is_counted(self, router, metrics, make_conn):
        await router.route(make_conn(), frame(type="register-broadcaster"))
        await router.route(make_conn(), frame(type="register-broadcaster"))

        assert metrics.get_snapshot()["routing"]["broadcaster_conflicts"] == 1


class TestBroadcastLifecycle:
    """start-broadcast / stop-broadcast handling."""

    @pytest.mark.asyncio
    async def test_start_broadcast_announces_every_viewer(self, router, make_conn):
        broadcaster = make_conn()
        await router.route(broadcaster, frame(type="register-broadcaster"))
        viewers = [make_conn() for _ in range(2)]
        for v in viewers:
            await register_viewer(router, v)
            v.websocket.clear()
        broadcaster.websocket.clear()

        await router.route(broadcaster, frame(type="start-broadcast"))

        for v in viewers:
            assert v.websocket.messages == [{"type": "broadcast-started", "viewerCount": 2}]
        assert broadcaster.websocket.messages == [
            {"type": "viewer-connected", "viewerId": "v1", "viewerCount": 2},
            {"type": "viewer-connected", "viewerId": "v2", "viewerCount": 2},
        ]

    @pytest.mark.asyncio
    async def test_start_broadcast_accepted_from_any_connection(self, router, make_conn):
        viewer = make_conn()
        await register_viewer(router, viewer)
        viewer.websocket.clear()

        result = await router.route(make_conn(), frame(type="start-broadcast"))

        assert result.success
        assert viewer.websocket.messages == [{"type": "broadcast-started", "viewerCount": 1}]

    @pytest.mark.asyncio
    async def test_stop_broadcast_without_broadcaster(self, router, make_conn):
        viewers = [make_conn() for _ in range(2)]
        for v in viewers:
            await register_viewer(router, v)
            v.websocket.clear()

        result = await router.route(make_conn(), frame(type="stop-broadcast"))

        assert result.success
        assert result.delivered == 2
        for v in viewers:
            assert v.websocket.messages == [{"type": "broadcast-stopped"}]

    @pytest.mark.asyncio
    async def test_stop_broadcast_keeps_slot(self, router, registry, make_conn):
        broadcaster = make_conn()
        await router.route(broadcaster, frame(type="register-broadcaster"))

        await router.route(broadcaster, frame(type="stop-broadcast"))
        await router.route(broadcaster, frame(type="stop-broadcast"))

        assert registry.current_broadcaster is broadcaster
        assert broadcaster.websocket.of_type("error") == []


class TestForwarding:
    """offer / answer / ice-candidate routing."""

    @pytest.mark.asyncio
    async def test_offer_only_reaches_target(self, router, make_conn):
        broadcaster = make_conn()
        await router.route(broadcaster, frame(type="register-broadcaster"))
        target, bystander = make_conn(), make_conn()
        await register_viewer(router, target)
        await register_viewer(router, bystander)
        target.websocket.clear()
        bystander.websocket.clear()

        await router.route(broadcaster, frame(type="offer", viewerId="v1", offer={"sdp": "o"}))

        assert target.websocket.messages == [{"type": "offer", "offer": {"sdp": "o"}}]
        assert bystander.websocket.messages == []

    @pytest.mark.asyncio
    async def test_offer_payload_is_forwarded_verbatim(self, router, make_conn):
        viewer = make_conn()
        await register_viewer(router, viewer)
        viewer.websocket.clear()
        raw = '{"type":"offer","viewerId":"v1","offer":{"sdp":"v=0\\r\\nü","n":[1,2.5,null,true]}}'

        await router.route(make_conn(), raw)

        forwarded = json.loads(viewer.websocket.sent[0])
        assert forwarded["offer"] == json.loads(raw)["offer"]

    @pytest.mark.asyncio
    async def test_offer_to_unknown_viewer(self, router, metrics, make_conn):
        broadcaster = make_conn()

        result = await router.route(broadcaster, frame(type="offer", viewerId="ghost", offer={}))

        assert broadcaster.websocket.messages == [
            {"type": "error", "message": "Espectador não encontrado"}
        ]
        assert result.error == "Espectador não encontrado"
        assert metrics.get_snapshot()["routing"]["lookup_misses"] == 1

    @pytest.mark.asyncio
    async def test_answer_without_broadcaster_is_dropped(self, router, make_conn):
        viewer = make_conn()
        await register_viewer(router, viewer)
        viewer.websocket.clear()

        result = await router.route(viewer, frame(type="answer", viewerId="v1", answer={}))

        assert result.dropped
        assert viewer.websocket.messages == []

    @pytest.mark.asyncio
    async def test_answer_without_viewer_id(self, router, make_conn):
        broadcaster = make_conn()
        await router.route(broadcaster, frame(type="register-broadcaster"))
        broadcaster.websocket.clear()

        await router.route(make_conn(), frame(type="answer", answer={"sdp": "a"}))

        assert broadcaster.websocket.messages == [
            {"type": "answer", "answer": {"sdp": "a"}, "viewerId": "unknown"}
        ]

    @pytest.mark.asyncio
    async def test_ice_candidate_to_broadcaster(self, router, make_conn):
        broadcaster = make_conn()
        await router.route(broadcaster, frame(type="register-broadcaster"))
        broadcaster.websocket.clear()
        candidate = {"candidate": "candidate:1 1 udp 2122260223 10.0.0.2 50000 typ host"}

        await router.route(
            make_conn(),
            frame(type="ice-candidate", target="broadcaster", viewerId="v1", candidate=candidate),
        )

        assert broadcaster.websocket.messages == [
            {"type": "ice-candidate", "candidate": candidate, "viewerId": "v1"}
        ]

    @pytest.mark.asyncio
    async def test_ice_candidate_to_missing_broadcaster_is_dropped(self, router, make_conn):
        sender = make_conn()

        result = await router.route(
            sender, frame(type="ice-candidate", target="broadcaster", candidate={})
        )

        assert result.dropped
        assert sender.websocket.messages == []

    @pytest.mark.asyncio
    async def test_ice_candidate_to_viewer(self, router, make_conn):
        viewer = make_conn()
        await register_viewer(router, viewer)
        viewer.websocket.clear()

        await router.route(
            make_conn(),
            frame(type="ice-candidate", target="viewer", viewerId="v1", candidate={"c": 1}),
        )

        assert viewer.websocket.messages == [{"type": "ice-candidate", "candidate": {"c": 1}}]

    @pytest.mark.asyncio
    async def test_ice_candidate_to_unknown_viewer(self, router, make_conn):
        sender = make_conn()

        await router.route(
            sender, frame(type="ice-candidate", target="viewer", viewerId="ghost", candidate={})
        )

        assert sender.websocket.messages == [
            {"type": "error", "message": "Espectador não encontrado para ICE candidate"}
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields",
        [
            {"target": "viewer", "candidate": {}},
            {"target": "sideways", "viewerId": "v1", "candidate": {}},
            {"candidate": {}},
        ],
    )
    async def test_ice_candidate_without_usable_target(self, router, make_conn, fields):
        sender = make_conn()

        result = await router.route(sender, frame(type="ice-candidate", **fields))

        assert result.dropped
        assert sender.websocket.messages == []


class TestKeepAliveAndUnknown:
    """ping / pong and unrecognized messages."""

    @pytest.mark.asyncio
    async def test_json_ping(self, router, make_conn):
        conn = make_conn()
        conn.mark_suspect()

        await router.route(conn, frame(type="ping"))

        assert conn.alive is True
        assert conn.websocket.messages == [{"type": "pong"}]

    @pytest.mark.asyncio
    async def test_json_pong(self, router, make_conn):
        conn = make_conn()
        conn.mark_suspect()

        await router.route(conn, frame(type="pong"))

        assert conn.alive is True
        assert conn.websocket.messages == []

    @pytest.mark.asyncio
    async def test_unknown_type_gets_no_reply(self, router, metrics, make_conn):
        conn = make_conn()

        result = await router.route(conn, frame(type="rename-viewer", viewerId="v1"))

        assert result.dropped
        assert conn.websocket.messages == []
        assert metrics.get_snapshot()["messages"]["unknown_type"] == 1


class TestErrors:
    """Malformed input and handler failures."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            "null",
            b"\xc3\x28",
            '{"type":"answer","viewerId":"v1","answer":' + "1" * 5000 + "}",
            "[" * 30000,
        ],
    )
    async def test_malformed_frame_gets_generic_error(self, router, registry, metrics, make_conn, raw):
        conn = make_conn()
        await register_viewer(router, conn)
        conn.websocket.clear()

        result = await router.route(conn, raw)

        assert conn.websocket.messages == [{"type": "error", "message": "Erro interno do servidor"}]
        assert result.error == "Erro interno do servidor"
        assert registry.lookup_viewer("v1") is conn
        assert metrics.get_snapshot()["messages"]["decode_errors"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["[]", "42", '"offer"'])
    async def test_json_without_type_tag_is_ignored(self, router, metrics, make_conn, raw):
        conn = make_conn()

        result = await router.route(conn, raw)

        assert result.dropped
        assert conn.websocket.messages == []
        assert metrics.get_snapshot()["messages"]["unknown_type"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_decode_failure_is_contained(self, router, metrics, make_conn, monkeypatch):
        monkeypatch.setattr(
            "broadcast_relay.components.events.router.parse_message",
            MagicMock(side_effect=TypeError("unexpected")),
        )
        conn = make_conn()

        result = await router.route(conn, frame(type="register-viewer"))

        assert result.error == "Erro interno do servidor"
        assert conn.websocket.messages == [{"type": "error", "message": "Erro interno do servidor"}]
        assert metrics.get_snapshot()["messages"]["decode_errors"] == 1

    @pytest.mark.asyncio
    async def test_connection_usable_after_malformed_frame(self, router, make_conn):
        conn = make_conn()

        await router.route(conn, "garbage")
        await router.route(conn, frame(type="register-viewer"))

        assert conn.websocket.messages[-1]["type"] == "registered"

    @pytest.mark.asyncio
    async def test_handler_exception_is_contained(self, router, registry, metrics, make_conn):
        registry.register_viewer = AsyncMock(side_effect=ValueError("boom"))
        conn = make_conn()

        result = await router.route(conn, frame(type="register-viewer"))

        assert conn.websocket.messages == [{"type": "error", "message": "Erro interno do servidor"}]
        assert result.message_type == "register-viewer"
        assert metrics.get_snapshot()["messages"]["handler_errors"] == 1

    @pytest.mark.asyncio
    async def test_messages_counted_by_type(self, router, metrics, make_conn):
        conn = make_conn()
        await router.route(conn, frame(type="register-viewer"))
        await router.route(conn, frame(type="ping"))
        await router.route(conn, frame(type="ping"))

        by_type = metrics.get_snapshot()["messages"]["by_type"]
        assert by_type == {"register-viewer": 1, "ping": 2}
