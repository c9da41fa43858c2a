from devdeck.client.api_client import DashboardClient

__all__ = ["DashboardClient"]
