from .api_client import ApiError, SingleFlight, TaskHubClient

__all__ = ["ApiError", "SingleFlight", "TaskHubClient"]
