"""
Broadcast Relay.

WebRTC signaling relay: one broadcaster, many viewers, one WebSocket path.
"""
