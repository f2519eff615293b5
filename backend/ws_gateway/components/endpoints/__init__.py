from ws_gateway.components.endpoints.subscriptions import SubscriptionEndpoint

__all__ = ["SubscriptionEndpoint"]
