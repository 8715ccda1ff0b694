"""VMware Cloud Director client - async access to the OpenAPI and XML APIs.

This package wraps the VCD REST APIs with an async httpx client, pydantic
models for the entities, generic CRUD helpers, task tracking and API version
negotiation.

Features:
    - Login with username/password, bearer token or API token
    - Automatic API version negotiation per OpenAPI endpoint
    - Paginated OpenAPI listing following ``rel="nextPage"`` links
    - Task polling for asynchronous operations
    - Entity wrappers for edge gateways, NAT and firewall rules, IP Spaces,
      runtime defined entities, Solution Add-Ons and Tenant Manager objects

Example:
    Using as a library::

        from vcd_client import connect, load_config
        from vcd_client.resources import NsxtEdgeGateway

        config = load_config()
        client = await connect(config)
        edge = await NsxtEdgeGateway.get_by_name(client, "edge-1")

Attributes:
    __version__: Package version following semantic versioning.
"""

__version__ = "1.0.0"

# Import public API
from .api_client import VcdAPIClient, connect
from .config import Config, VcdConfig, load_config
from .exceptions import (
    APIResponseError,
    ConfigurationError,
    EntityNotFoundError,
    TaskError,
    ValidationError,
    VcdClientError,
    VcdError,
)
from .task import Task

__all__ = [
    "__version__",
    "APIResponseError",
    "Config",
    "ConfigurationError",
    "EntityNotFoundError",
    "Task",
    "TaskError",
    "ValidationError",
    "VcdAPIClient",
    "VcdClientError",
    "VcdConfig",
    "VcdError",
    "connect",
    "load_config",
]
