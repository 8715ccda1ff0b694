"""Runtime Defined Entity (RDE) types and entities.

An RDE type is identified by vendor, namespace (nss) and version; its URN is
``urn:vcloud:type:<vendor>:<nss>:<version>``. Entities are JSON documents
validated against the type schema. A freshly created entity stays in the
``PRE_CREATED`` state until it is resolved.

Example:
    >>> rde_type = await DefinedEntityType.get(client, "vmware", "solutions_add_on", "1.0.0")
    >>> entities = await rde_type.get_all_rdes()
    >>> result = await entities[0].invoke_behavior(behavior_id, BehaviorInvocation(arguments={}))
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..exceptions import APIResponseError, EntityNotFoundError, TaskError, ValidationError, VcdError
from ..logging_config import get_logger
from ..models import BehaviorInvocation
from ..models import DefinedEntity as DefinedEntityModel
from ..models import DefinedEntityType as DefinedEntityTypeModel

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

logger = get_logger(__name__)

ENTITY_TYPES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.RDE_ENTITY_TYPES
ENTITIES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.RDE_ENTITIES
ENTITIES_TYPES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.RDE_ENTITIES_TYPES
ENTITIES_RESOLVE_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.RDE_ENTITIES_RESOLVE
BEHAVIOR_INVOCATIONS_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.RDE_BEHAVIOR_INVOCATIONS

PRE_CREATED = "PRE_CREATED"
PRE_CREATED_POLL_TRIES = 5
PRE_CREATED_POLL_DELAY = 3.0


def rde_type_urn(vendor: str, nss: str, version: str) -> str:
    return f"urn:vcloud:type:{vendor}:{nss}:{version}"


def _require_sys_admin(client: VcdAPIClient, action: str) -> None:
    if not client.is_sys_admin:
        raise VcdError(f"{action} Runtime Defined Entity types requires System user")


class DefinedEntityType:
    """An RDE type. Managing types requires a System administrator session."""

    inner_type = DefinedEntityTypeModel

    def __init__(self, client: VcdAPIClient, entity_type: DefinedEntityTypeModel | None = None) -> None:
        self.client = client
        self.entity_type = entity_type if entity_type is not None else DefinedEntityTypeModel()

    def wrap(self, inner: DefinedEntityTypeModel) -> DefinedEntityType:
        return DefinedEntityType(self.client, inner)

    def __repr__(self) -> str:
        return f"DefinedEntityType(id={self.entity_type.id!r})"

    @classmethod
    async def create(cls, client: VcdAPIClient, config: DefinedEntityTypeModel) -> DefinedEntityType:
        _require_sys_admin(client, "creating")
        api_version = await client.get_openapi_highest_elevated_version(ENTITY_TYPES_ENDPOINT)
        url = client.openapi_build_endpoint(ENTITY_TYPES_ENDPOINT)
        data = await client.openapi_post_item(api_version, url, None, config)
        return cls(client, DefinedEntityTypeModel.model_validate(data))

    @classmethod
    async def get_all(
        cls,
        client: VcdAPIClient,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[DefinedEntityType]:
        _require_sys_admin(client, "getting")
        api_version = await client.get_openapi_highest_elevated_version(ENTITY_TYPES_ENDPOINT)
        url = client.openapi_build_endpoint(ENTITY_TYPES_ENDPOINT)
        values = await client.openapi_get_all_items(api_version, url, query_parameters)
        return [cls(client, DefinedEntityTypeModel.model_validate(value)) for value in values]

    @classmethod
    async def get(cls, client: VcdAPIClient, vendor: str, nss: str, version: str) -> DefinedEntityType:
        """Retrieve a type by vendor, namespace and version.

        Raises:
            EntityNotFoundError: If no such type exists.
        """
        _require_sys_admin(client, "getting")
        params = {"filter": f"vendor=={vendor};nss=={nss};version=={version}"}
        types = await cls.get_all(client, params)
        if not types:
            raise EntityNotFoundError(
                f"could not find the Runtime Defined Entity type with vendor {vendor}, "
                f"namespace {nss} and version {version}"
            )
        if len(types) > 1:
            raise VcdError(
                f"found more than 1 Runtime Defined Entity type with vendor {vendor}, "
                f"namespace {nss} and version {version}"
            )
        return types[0]

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, type_id: str) -> DefinedEntityType:
        _require_sys_admin(client, "getting")
        api_version = await client.get_openapi_highest_elevated_version(ENTITY_TYPES_ENDPOINT)
        url = client.openapi_build_endpoint(ENTITY_TYPES_ENDPOINT, type_id)
        data = await client.openapi_get_item(api_version, url)
        return cls(client, DefinedEntityTypeModel.model_validate(data))

    async def update(self, config: DefinedEntityTypeModel) -> None:
        """Update the type in place. Missing name and schema are kept from the receiver."""
        _require_sys_admin(self.client, "updating")
        if not self.entity_type.id:
            raise ValidationError("ID of the receiver Runtime Defined Entity type is empty")
        if config.id and config.id != self.entity_type.id:
            raise ValidationError("ID of the receiver Runtime Defined Entity and the input ID don't match")

        config = config.model_copy()
        if not config.name:
            config.name = self.entity_type.name
        if not config.schema_:
            config.schema_ = self.entity_type.schema_

        api_version = await self.client.get_openapi_highest_elevated_version(ENTITY_TYPES_ENDPOINT)
        url = self.client.openapi_build_endpoint(ENTITY_TYPES_ENDPOINT, self.entity_type.id)
        data = await self.client.openapi_put_item(api_version, url, None, config)
        self.entity_type = DefinedEntityTypeModel.model_validate(data or {})

    async def delete(self) -> None:
        _require_sys_admin(self.client, "deleting")
        if not self.entity_type.id:
            raise ValidationError("ID of the receiver Runtime Defined Entity type is empty")
        api_version = await self.client.get_openapi_highest_elevated_version(ENTITY_TYPES_ENDPOINT)
        url = self.client.openapi_build_endpoint(ENTITY_TYPES_ENDPOINT, self.entity_type.id)
        await self.client.openapi_delete_item(api_version, url)
        self.entity_type = DefinedEntityTypeModel()

    async def get_all_rdes(self, query_parameters: Mapping[str, str] | None = None) -> list[DefinedEntity]:
        t = self.entity_type
        return await DefinedEntity.get_all(self.client, t.vendor, t.nss, t.version, query_parameters)

    async def get_rdes_by_name(self, name: str) -> list[DefinedEntity]:
        t = self.entity_type
        return await DefinedEntity.get_by_name(self.client, t.vendor, t.nss, t.version, name)

    async def create_rde(self, entity: DefinedEntityModel) -> DefinedEntity:
        """Create an entity of this type and return it in ``PRE_CREATED`` state."""
        t = self.entity_type
        await _create_rde(self.client, t.id or "", entity)
        return await _poll_pre_created_rde(self.client, t.vendor, t.nss, t.version, entity.name)


async def _create_rde(client: VcdAPIClient, type_id: str, entity: DefinedEntityModel) -> None:
    if not type_id:
        raise ValidationError("ID of the Runtime Defined Entity type is empty")
    if entity.entity_type and entity.entity_type != type_id:
        raise ValidationError(
            f"ID of the Runtime Defined Entity type '{type_id}' doesn't match with the one to create "
            f"'{entity.entity_type}'"
        )
    if not entity.entity:
        raise ValidationError("the entity JSON is empty")

    api_version = await client.get_openapi_highest_elevated_version(ENTITY_TYPES_ENDPOINT)
    url = client.openapi_build_endpoint(ENTITY_TYPES_ENDPOINT, type_id)
    # The task finishes before the entity is visible, see _poll_pre_created_rde
    await client.openapi_post_item_async(api_version, url, None, entity)


async def _poll_pre_created_rde(
    client: VcdAPIClient,
    vendor: str,
    nss: str,
    version: str,
    name: str,
    tries: int = PRE_CREATED_POLL_TRIES,
) -> DefinedEntity:
    last_error: Exception | None = None
    for _ in range(tries):
        try:
            for rde in await DefinedEntity.get_by_name(client, vendor, nss, version, name):
                if rde.defined_entity.state == PRE_CREATED:
                    return rde
        except (VcdError, APIResponseError) as e:
            last_error = e
        await asyncio.sleep(PRE_CREATED_POLL_DELAY)
    raise VcdError(f"could not create RDE, failed during retrieval after creation: {last_error}")


class DefinedEntity:
    """An RDE instance."""

    inner_type = DefinedEntityModel

    def __init__(self, client: VcdAPIClient, defined_entity: DefinedEntityModel | None = None) -> None:
        self.client = client
        self.defined_entity = defined_entity if defined_entity is not None else DefinedEntityModel()

    def wrap(self, inner: DefinedEntityModel) -> DefinedEntity:
        return DefinedEntity(self.client, inner)

    def __repr__(self) -> str:
        return f"DefinedEntity(id={self.defined_entity.id!r}, name={self.defined_entity.name!r})"

    @classmethod
    async def get_all(
        cls,
        client: VcdAPIClient,
        vendor: str,
        nss: str,
        version: str,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[DefinedEntity]:
        api_version = await client.get_openapi_highest_elevated_version(ENTITIES_TYPES_ENDPOINT)
        url = client.openapi_build_endpoint(ENTITIES_TYPES_ENDPOINT, f"{vendor}/{nss}/{version}")
        values = await client.openapi_get_all_items(api_version, url, query_parameters)
        return [cls(client, DefinedEntityModel.model_validate(value)) for value in values]

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, vendor: str, nss: str, version: str, name: str) -> list[DefinedEntity]:
        """Entity names are not unique, so every match is returned.

        Raises:
            EntityNotFoundError: If nothing matches.
        """
        rdes = await cls.get_all(client, vendor, nss, version, {"filter": f"name=={name}"})
        if not rdes:
            raise EntityNotFoundError(f"could not find the Runtime Defined Entity with name '{name}'")
        return rdes

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, entity_id: str) -> DefinedEntity:
        api_version = await client.get_openapi_highest_elevated_version(ENTITIES_ENDPOINT)
        url = client.openapi_build_endpoint(ENTITIES_ENDPOINT, entity_id)
        data = await client.openapi_get_item(api_version, url)
        return cls(client, DefinedEntityModel.model_validate(data))

    @classmethod
    async def create(
        cls,
        client: VcdAPIClient,
        vendor: str,
        nss: str,
        version: str,
        entity: DefinedEntityModel,
    ) -> DefinedEntity:
        """Create an entity of the given type and return it in ``PRE_CREATED`` state."""
        await _create_rde(client, rde_type_urn(vendor, nss, version), entity)
        return await _poll_pre_created_rde(client, vendor, nss, version, entity.name)

    async def resolve(self) -> None:
        """Validate the entity against its type schema, moving it out of ``PRE_CREATED``."""
        api_version = await self.client.get_openapi_highest_elevated_version(ENTITIES_RESOLVE_ENDPOINT)
        url = self.client.openapi_build_endpoint(
            endpoints.OPENAPI_PATH_V1, endpoints.RDE_ENTITIES_RESOLVE % self.defined_entity.id
        )
        data = await self.client.openapi_post_item(api_version, url, None, None)
        self.defined_entity = DefinedEntityModel.model_validate(data or {})

    async def update(self, config: DefinedEntityModel) -> None:
        if not self.defined_entity.id:
            raise ValidationError("ID of the receiver Runtime Defined Entity is empty")
        config = config.model_copy()
        if not config.name:
            config.name = self.defined_entity.name

        api_version = await self.client.get_openapi_highest_elevated_version(ENTITIES_ENDPOINT)
        url = self.client.openapi_build_endpoint(ENTITIES_ENDPOINT, self.defined_entity.id)
        data = await self.client.openapi_put_item(api_version, url, None, config)
        self.defined_entity = DefinedEntityModel.model_validate(data or {})

    async def delete(self) -> None:
        if not self.defined_entity.id:
            raise ValidationError("ID of the receiver Runtime Defined Entity is empty")
        api_version = await self.client.get_openapi_highest_elevated_version(ENTITIES_ENDPOINT)
        url = self.client.openapi_build_endpoint(ENTITIES_ENDPOINT, self.defined_entity.id)
        await self.client.openapi_delete_item(api_version, url)
        self.defined_entity = DefinedEntityModel()

    async def invoke_behavior(self, behavior_id: str, invocation: BehaviorInvocation) -> str:
        """Invoke a behavior on the entity and wait for it.

        Returns:
            The result content reported by the invocation task.
        """
        if not self.defined_entity.id:
            raise ValidationError("ID of the receiver Runtime Defined Entity is empty")
        if not behavior_id:
            raise ValidationError("behavior ID must be specified")

        api_version = await self.client.get_openapi_highest_elevated_version(BEHAVIOR_INVOCATIONS_ENDPOINT)
        url = self.client.openapi_build_endpoint(
            endpoints.OPENAPI_PATH_V1,
            endpoints.RDE_BEHAVIOR_INVOCATIONS % (self.defined_entity.id, behavior_id),
        )
        task = await self.client.openapi_post_item_async(api_version, url, None, invocation)
        try:
            await task.wait_task_completion()
        except TaskError as e:
            raise VcdError(f"error invoking behavior '{behavior_id}': {e}") from e
        logger.debug(f"Behavior {behavior_id} finished on {self.defined_entity.id}")
        return task.task.result
