"""
Gateway components.

- auth/: handshake credential extraction
- connection/: subscription connection lifecycle and keep-alive
- core/: constants, audit context, dependencies
- endpoints/: WebSocket endpoint handlers
- events/: notification value objects
"""
