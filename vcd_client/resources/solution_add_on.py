"""Solution Add-Ons and their instances.

A Solution Add-On is an RDE of type ``vmware:solutions_add_on:1.0.0`` whose
manifest declares the inputs its instances take. Instances are RDEs of
type ``vmware:solutions_add_on_instance:1.0.0`` created and removed by
invoking behaviors on the RDEs.

Example:
    >>> addon = await SolutionAddOn.get_by_name(client, "vmware.ds-1.4.0-23376809")
    >>> addon.validate_inputs(inputs, validate_only_required=True, is_delete_operation=False)
    >>> inputs = addon.convert_input_types(inputs)
    >>> instance, result = await addon.create_instance({"name": "ds-1", **inputs})
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import APIResponseError, ValidationError, VcdError
from ..generic import generic_local_filter_one_or_error, one_or_error
from ..logging_config import get_logger
from ..models import BehaviorInvocation, SolutionAddOnEntity, SolutionAddOnInputField, SolutionAddOnInstanceEntity
from ..query import copy_or_new_url_values, query_parameter_filter_and
from .defined_entity import DefinedEntity

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

logger = get_logger(__name__)

SOLUTION_ADD_ON_RDE_TYPE = ("vmware", "solutions_add_on", "1.0.0")
SOLUTION_ADD_ON_INSTANCE_RDE_TYPE = ("vmware", "solutions_add_on_instance", "1.0.0")

CREATE_INSTANCE_BEHAVIOR_ID = "urn:vcloud:behavior-interface:createInstance:vmware:solutions_add_on:1.0.0"
REMOVE_INSTANCE_BEHAVIOR_ID = "urn:vcloud:behavior-interface:invoke:vmware:solutions_add_on_instance:1.0.0"

INPUT_PREFIX = "input-"

_TRUE_VALUES = ("1", "t", "T", "TRUE", "true", "True")
_FALSE_VALUES = ("0", "f", "F", "FALSE", "false", "False")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def _convert_entity(entity: dict[str, Any] | None, model: type[Any], label: str) -> Any:
    try:
        return model.model_validate(entity or {})
    except PydanticValidationError as e:
        raise VcdError(f"error converting RDE to {label}: {e}") from e


def _matches_input(field_name: str, user_input_key: str) -> bool:
    return user_input_key in (field_name, f"{INPUT_PREFIX}{field_name}")


def parse_bool(value: str) -> bool:
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid syntax: {value!r}")


def format_input_fields(fields: list[SolutionAddOnInputField]) -> str:
    """Human readable description of manifest input fields."""
    lines = ["", "-----------------"]
    for f in fields:
        lines.append(f"Field: {f.name}")
        lines.append(f"Title: {f.title}")
        lines.append(f"Type: {f.type}")
        lines.append(f"Required: {str(f.required).lower()}")
        lines.append(f"IsDelete: {str(f.delete).lower()}")
        lines.append(f"Description: {f.description}")
        if f.default is not None:
            lines.append(f"Default: {f.default}")
        lines.append("-----------------")
    return "\n".join(lines) + "\n"


class SolutionAddOn:
    """A Solution Add-On.

    Attributes:
        entity: The parsed ``entity`` body (manifest, EULA, origin, status).
        defined_entity: The underlying RDE.
    """

    def __init__(self, client: VcdAPIClient, defined_entity: DefinedEntity, entity: SolutionAddOnEntity) -> None:
        self.client = client
        self.defined_entity = defined_entity
        self.entity = entity

    def __repr__(self) -> str:
        return f"SolutionAddOn(id={self.rde_id!r})"

    @classmethod
    def from_rde(cls, client: VcdAPIClient, rde: DefinedEntity) -> SolutionAddOn:
        entity = _convert_entity(rde.defined_entity.entity, SolutionAddOnEntity, "Solution Add-On")
        return cls(client, rde, entity)

    @property
    def rde_id(self) -> str:
        return self.defined_entity.defined_entity.id or ""

    @classmethod
    async def get_all(
        cls,
        client: VcdAPIClient,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[SolutionAddOn]:
        try:
            rdes = await DefinedEntity.get_all(client, *SOLUTION_ADD_ON_RDE_TYPE, query_parameters)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving all Solution Add-ons: {e}") from e
        return [cls.from_rde(client, rde) for rde in rdes]

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, addon_id: str) -> SolutionAddOn:
        if not addon_id:
            raise ValidationError("id must be specified")
        try:
            rde = await DefinedEntity.get_by_id(client, addon_id)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving Solution Add-On by ID: {e}") from e
        return cls.from_rde(client, rde)

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, name: str) -> SolutionAddOn:
        if not name:
            raise ValidationError("name must be specified")
        try:
            results = await cls.get_all(client, {"filter": f"name=={name}"})
        except VcdError as e:
            raise VcdError(f"error retrieving Solution Add-Ons: {e}") from e
        return one_or_error("name", name, results)

    async def update(self, config: SolutionAddOnEntity) -> SolutionAddOn:
        """Replace the ``entity`` body of the Add-On RDE.

        A fresh copy of the RDE is read first so that the receiver stays
        untouched when the update fails.
        """
        try:
            fresh = await SolutionAddOn.get_by_id(self.client, self.rde_id)
        except (VcdError, ValidationError) as e:
            raise VcdError(f"error creating a copy of Solution Add-On: {e}") from e

        rde_config = fresh.defined_entity.defined_entity.model_copy()
        rde_config.entity = config.model_dump(by_alias=True, exclude_none=True)
        await fresh.defined_entity.update(rde_config)
        fresh.entity = _convert_entity(fresh.defined_entity.defined_entity.entity, SolutionAddOnEntity, "Solution Add-On")
        return fresh

    async def delete(self) -> None:
        await self.defined_entity.delete()

    # Inputs

    def extract_inputs(self) -> list[SolutionAddOnInputField]:
        """Input fields declared in the manifest."""
        inputs = self.entity.manifest.get("inputs")
        if not isinstance(inputs, list):
            raise VcdError("error processing Solution Add-On input validation metadata")
        try:
            return [SolutionAddOnInputField.model_validate(field) for field in inputs]
        except PydanticValidationError as e:
            raise VcdError(f"error converting Solution Add-On input validation metadata: {e}") from e

    def validate_inputs(
        self,
        user_inputs: Mapping[str, Any],
        validate_only_required: bool,
        is_delete_operation: bool,
    ) -> None:
        """Check that ``user_inputs`` holds every field the manifest asks for.

        Fields can be given by name or with an ``input-`` prefix. Only fields
        of the matching operation (create or delete) are considered.

        Raises:
            ValidationError: Listing the missing fields and their descriptions.
        """
        schema_inputs = self.extract_inputs()

        wanted = [
            field.name
            for field in schema_inputs
            if field.delete == is_delete_operation and (field.required or not validate_only_required)
        ]
        missing = [name for name in dict.fromkeys(wanted) if not any(_matches_input(name, key) for key in user_inputs)]
        if not missing:
            return

        missing_fields = []
        for name in missing:
            try:
                missing_fields.append(
                    generic_local_filter_one_or_error(schema_inputs, "name", name, "Solution Add-On filter value")
                )
            except VcdError as e:
                raise VcdError(f"error finding field with key '{name}'") from e

        raise ValidationError(
            f"{format_input_fields(missing_fields)}\n\nERROR: Missing fields '{', '.join(missing)}' "
            f"for Solution Add-On '{self.defined_entity.defined_entity.name}'"
        )

    def convert_input_types(self, user_inputs: Mapping[str, Any]) -> dict[str, Any]:
        """Convert string inputs to the Boolean or Integer type the manifest declares.

        Non-string values and inputs unknown to the manifest are left as they are.

        Returns:
            A converted copy of ``user_inputs``.
        """
        schema_inputs = self.extract_inputs()
        result = dict(user_inputs)

        for key, value in user_inputs.items():
            field = next((f for f in schema_inputs if _matches_input(f.name, key)), None)
            if field is None:
                logger.debug(f"Solution Add-On input '{key}' not found in schema")
                continue
            if not isinstance(value, str) or field.type == "String":
                continue

            if field.type == "Boolean":
                try:
                    result[key] = parse_bool(value)
                except ValueError as e:
                    raise ValidationError(f"error converting field '{key}' to boolean: {e}") from e
            elif field.type == "Integer":
                if not _INTEGER_RE.match(value):
                    raise ValidationError(f"error converting field '{key}' to integer: invalid syntax: {value!r}")
                result[key] = int(value)
            else:
                raise ValidationError(f"unknown field type '{field.type}' for field '{key}'")

        return result

    # Instances

    async def create_instance(self, inputs: Mapping[str, Any]) -> tuple[SolutionAddOnInstance, str]:
        """Create an instance through the ``createInstance`` behavior.

        ``inputs`` must hold the instance ``name``.

        Returns:
            The created instance and the behavior result.
        """
        arguments = dict(inputs)
        arguments["operation"] = "create instance"
        name = arguments.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("'name' field must be present in the inputs")

        try:
            result = await self.defined_entity.invoke_behavior(
                CREATE_INSTANCE_BEHAVIOR_ID, BehaviorInvocation(arguments=arguments)
            )
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error invoking RDE behavior: {e}") from e

        try:
            instance = await self.get_instance_by_name(name)
        except VcdError as e:
            raise VcdError(f"error retrieving Solution Add-On instance '{name}' after creation: {e}") from e
        return instance, result

    async def get_all_instances(self) -> list[SolutionAddOnInstance]:
        params = query_parameter_filter_and(f"entity.prototype=={self.rde_id}", copy_or_new_url_values(None))
        return await SolutionAddOnInstance.get_all(self.client, params)

    async def get_instance_by_name(self, name: str) -> SolutionAddOnInstance:
        params = query_parameter_filter_and(
            f"entity.prototype=={self.rde_id};entity.name=={name}", copy_or_new_url_values(None)
        )
        try:
            instances = await SolutionAddOnInstance.get_all(self.client, params)
        except VcdError as e:
            raise VcdError(f"error retrieving Solution Add-On Instance with name '{name}': {e}") from e
        return one_or_error("name", name, instances)


class SolutionAddOnInstance:
    """An instance of a Solution Add-On.

    Attributes:
        entity: The parsed ``entity`` body (name, prototype, properties).
        defined_entity: The underlying RDE.
    """

    def __init__(
        self,
        client: VcdAPIClient,
        defined_entity: DefinedEntity,
        entity: SolutionAddOnInstanceEntity,
    ) -> None:
        self.client = client
        self.defined_entity = defined_entity
        self.entity = entity

    def __repr__(self) -> str:
        return f"SolutionAddOnInstance(id={self.rde_id!r}, name={self.entity.name!r})"

    @classmethod
    def from_rde(cls, client: VcdAPIClient, rde: DefinedEntity) -> SolutionAddOnInstance:
        entity = _convert_entity(rde.defined_entity.entity, SolutionAddOnInstanceEntity, "Solution Add-on Instance")
        return cls(client, rde, entity)

    @property
    def rde_id(self) -> str:
        return self.defined_entity.defined_entity.id or ""

    @classmethod
    async def get_all(
        cls,
        client: VcdAPIClient,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[SolutionAddOnInstance]:
        try:
            rdes = await DefinedEntity.get_all(client, *SOLUTION_ADD_ON_INSTANCE_RDE_TYPE, query_parameters)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving all Solution Add-on Instances: {e}") from e
        return [cls.from_rde(client, rde) for rde in rdes]

    @classmethod
    async def get_all_by_name(cls, client: VcdAPIClient, name: str) -> list[SolutionAddOnInstance]:
        params = query_parameter_filter_and(f"entity.name=={name}", copy_or_new_url_values(None))
        return await cls.get_all(client, params)

    @classmethod
    async def get_by_name(cls, client: VcdAPIClient, name: str) -> SolutionAddOnInstance:
        """Look up an instance by name across every Add-On."""
        try:
            instances = await cls.get_all_by_name(client, name)
        except VcdError as e:
            raise VcdError(f"error retrieving Solution Add-On Instance with name '{name}': {e}") from e
        return one_or_error("name", name, instances)

    @classmethod
    async def get_by_id(cls, client: VcdAPIClient, instance_id: str) -> SolutionAddOnInstance:
        try:
            rde = await DefinedEntity.get_by_id(client, instance_id)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving Solution Add-On Instance RDE: {e}") from e
        return cls.from_rde(client, rde)

    async def delete(self, delete_inputs: Mapping[str, Any]) -> str:
        """Remove the instance through the removal behavior.

        Returns:
            The behavior result.
        """
        arguments = dict(delete_inputs)
        arguments["operation"] = "delete instance"
        try:
            return await self.defined_entity.invoke_behavior(
                REMOVE_INSTANCE_BEHAVIOR_ID, BehaviorInvocation(arguments=arguments)
            )
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error invoking removal of Solution Add-On instance '{self.entity.name}': {e}") from e

    async def get_parent_solution_add_on(self) -> SolutionAddOn:
        if not self.rde_id:
            raise ValidationError("cannot retrieve parent Solution Add-On from empty instance")
        return await SolutionAddOn.get_by_id(self.client, self.entity.prototype)

    async def read_creation_input_values(self, convert_all_to_strings: bool = False) -> dict[str, Any]:
        """Values of the parent's creation inputs as stored in the instance properties.

        Delete-time inputs are skipped.
        """
        if not self.entity.properties:
            raise VcdError("cannot extract properties - they are nil")

        try:
            parent = await self.get_parent_solution_add_on()
        except (VcdError, ValidationError) as e:
            raise VcdError(f"error retrieving parent Solution Add-On: {e}") from e
        try:
            schema_inputs = parent.extract_inputs()
        except VcdError as e:
            raise VcdError(f"error extracting inputs from Solution Add-On manifests: {e}") from e

        result: dict[str, Any] = {}
        for field in schema_inputs:
            if field.delete:
                continue
            if field.name in self.entity.properties:
                result[field.name] = self.entity.properties[field.name]

        if convert_all_to_strings:
            return {name: _to_string(value) for name, value in result.items()}
        return result


def _to_string(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)
