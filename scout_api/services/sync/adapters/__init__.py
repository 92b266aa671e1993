"""HTTP clients for the external data providers."""
from scout_api.services.sync.adapters.balldontlie_client import BallDontLieClient
from scout_api.services.sync.adapters.openai_client import OpenAIResponsesClient, ResponsePoller
from scout_api.services.sync.adapters.sportsblaze_client import SportsBlazeClient

__all__ = [
    "BallDontLieClient",
    "OpenAIResponsesClient",
    "ResponsePoller",
    "SportsBlazeClient",
]
