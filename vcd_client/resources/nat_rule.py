"""NSX-T Edge Gateway NAT rules."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from .. import endpoints
from ..exceptions import APIResponseError, EntityNotFoundError, TaskError, ValidationError, VcdError
from ..logging_config import get_logger
from ..models import NsxtNatRule as NsxtNatRuleModel

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient
    from .edge_gateway import NsxtEdgeGateway

logger = get_logger(__name__)

NAT_RULES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.NSXT_NAT_RULES


def _nat_rules_url(client: VcdAPIClient, edge_gateway_id: str, *suffix: str) -> str:
    return client.openapi_build_endpoint(endpoints.OPENAPI_PATH_V1, endpoints.NSXT_NAT_RULES % edge_gateway_id, *suffix)


class NsxtNatRule:
    """A NAT rule of one Edge Gateway.

    Attributes:
        nat_rule: The rule as returned by the API.
        edge_gateway_id: Gateway the rule belongs to.
    """

    def __init__(self, client: VcdAPIClient, edge_gateway_id: str, nat_rule: NsxtNatRuleModel | None = None) -> None:
        self.client = client
        self.edge_gateway_id = edge_gateway_id
        self.nat_rule = nat_rule if nat_rule is not None else NsxtNatRuleModel()

    def __repr__(self) -> str:
        return f"NsxtNatRule(id={self.nat_rule.id!r}, name={self.nat_rule.name!r})"

    def is_equal_to(self, rule: NsxtNatRuleModel) -> bool:
        logger.debug(f"Comparing NAT rule {self.nat_rule!r} against {rule!r}")
        return self.nat_rule.is_equal_to(rule)

    @classmethod
    async def get_all(
        cls,
        edge_gateway: NsxtEdgeGateway,
        query_parameters: Mapping[str, str] | None = None,
    ) -> list[NsxtNatRule]:
        client = edge_gateway.client
        edge_gateway_id = edge_gateway.edge_gateway.id or ""
        api_version = await client.get_openapi_highest_elevated_version(NAT_RULES_ENDPOINT)
        values = await client.openapi_get_all_items(
            api_version, _nat_rules_url(client, edge_gateway_id), query_parameters
        )
        return [cls(client, edge_gateway_id, NsxtNatRuleModel.model_validate(value)) for value in values]

    @classmethod
    async def get_by_name(cls, edge_gateway: NsxtEdgeGateway, name: str) -> NsxtNatRule:
        """Find a rule by name. The API has no name filter, so all rules are read.

        Raises:
            EntityNotFoundError: If no rule has this name.
            VcdError: If more than one rule has this name.
        """
        try:
            rules = await cls.get_all(edge_gateway)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving all NSX-T NAT rules: {e}") from e

        found = [rule for rule in rules if rule.nat_rule.name == name]
        if len(found) > 1:
            raise VcdError(f"error - found {len(found)} NSX-T NAT rules with name '{name}'. Expected 1")
        if not found:
            raise EntityNotFoundError()
        return found[0]

    @classmethod
    async def get_by_id(cls, edge_gateway: NsxtEdgeGateway, rule_id: str) -> NsxtNatRule:
        try:
            rules = await cls.get_all(edge_gateway)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving all NSX-T NAT rules: {e}") from e

        for rule in rules:
            if rule.nat_rule.id == rule_id:
                return rule
        raise EntityNotFoundError()

    @classmethod
    async def create(cls, edge_gateway: NsxtEdgeGateway, config: NsxtNatRuleModel) -> NsxtNatRule:
        """Create a rule and find it again among all rules.

        The creation task does not report the new rule ID, so the rule is
        looked up by comparing its user-settable fields with ``config``.
        """
        client = edge_gateway.client
        edge_gateway_id = edge_gateway.edge_gateway.id or ""
        api_version = await client.get_openapi_highest_elevated_version(NAT_RULES_ENDPOINT)

        try:
            task = await client.openapi_post_item_async(
                api_version, _nat_rules_url(client, edge_gateway_id), None, config
            )
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error creating NSX-T NAT rule: {e}") from e

        try:
            await task.wait_task_completion()
        except (TaskError, VcdError) as e:
            raise VcdError(f"task failed while creating NSX-T NAT rule: {e}") from e

        for rule in await cls.get_all(edge_gateway):
            if rule.is_equal_to(config):
                return rule
        raise VcdError(f"rule '{config.name}' of type '{config.rule_type}' not found after creation")

    async def update(self, config: NsxtNatRuleModel) -> NsxtNatRule:
        api_version = await self.client.get_openapi_highest_elevated_version(NAT_RULES_ENDPOINT)
        if not self.nat_rule.id:
            raise ValidationError("cannot update NSX-T NAT Rule without ID")

        url = _nat_rules_url(self.client, self.edge_gateway_id, self.nat_rule.id)
        try:
            data = await self.client.openapi_put_item(api_version, url, None, config)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error updating NSX-T NAT Rule: {e}") from e
        return NsxtNatRule(self.client, self.edge_gateway_id, NsxtNatRuleModel.model_validate(data or {}))

    async def delete(self) -> None:
        api_version = await self.client.get_openapi_highest_elevated_version(NAT_RULES_ENDPOINT)
        if not self.nat_rule.id:
            raise ValidationError("cannot delete NSX-T NAT rule without ID")

        url = _nat_rules_url(self.client, self.edge_gateway_id, self.nat_rule.id)
        try:
            await self.client.openapi_delete_item(api_version, url)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error deleting NSX-T NAT Rule: {e}") from e
