"""
Subscription gateway: pushes game notifications to WebSocket clients.
"""
