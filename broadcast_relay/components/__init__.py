"""
Broadcast Relay Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, errors, log sanitizing)
- connection/ - Connection lifecycle (connection, registry, liveness)
- events/     - Signaling messages (types, outbound builders, router)
- endpoints/  - WebSocket endpoint (base, mixins)
- metrics/    - Observability (collector, prometheus)

Import from the specific submodules.
"""
