from ws_gateway.components.auth.strategies import extract_handshake_credential

__all__ = ["extract_handshake_credential"]
