# Package initializer for the room status service.

"""
The `room_status` package contains all modules for the meeting room status API.

Modules:

- ``config``: application settings loaded from environment variables.
- ``models``: Pydantic data models for API responses.
- ``graph_client``: token acquisition and calendar queries against Microsoft Graph.
- ``occupancy``: current/next meeting classification.
- ``main``: the FastAPI application definition.

"""
