"""NSX-T Edge Gateway firewall rules.

The firewall endpoint holds three rule lists (system, default and user
defined). Only user defined rules can be changed, and there is no POST:
creating and updating rules are both a PUT of the whole container.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import endpoints
from ..exceptions import APIResponseError, ValidationError, VcdError
from ..models import NsxtFirewallRuleContainer

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient
    from .edge_gateway import NsxtEdgeGateway

FIREWALL_RULES_ENDPOINT = endpoints.OPENAPI_PATH_V1 + endpoints.NSXT_FIREWALL_RULES


class NsxtFirewall:
    """Firewall rules of one Edge Gateway.

    Attributes:
        rules: The rule container as returned by the API.
        edge_gateway_id: Gateway the rules belong to.
    """

    def __init__(
        self,
        client: VcdAPIClient,
        edge_gateway_id: str,
        rules: NsxtFirewallRuleContainer | None = None,
    ) -> None:
        self.client = client
        self.edge_gateway_id = edge_gateway_id
        self.rules = rules if rules is not None else NsxtFirewallRuleContainer()

    def _url(self, *suffix: str) -> str:
        return self.client.openapi_build_endpoint(
            endpoints.OPENAPI_PATH_V1, endpoints.NSXT_FIREWALL_RULES % self.edge_gateway_id, *suffix
        )

    @classmethod
    async def get(cls, edge_gateway: NsxtEdgeGateway) -> NsxtFirewall:
        """Retrieve the system, default and user defined rules of ``edge_gateway``."""
        client = edge_gateway.client
        api_version = await client.check_openapi_endpoint_compatibility(FIREWALL_RULES_ENDPOINT)
        firewall = cls(client, edge_gateway.edge_gateway.id or "")
        try:
            data = await client.openapi_get_item(api_version, firewall._url())
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving NSX-T Firewall rules: {e}") from e
        firewall.rules = NsxtFirewallRuleContainer.model_validate(data)
        return firewall

    @classmethod
    async def update(cls, edge_gateway: NsxtEdgeGateway, rules: NsxtFirewallRuleContainer) -> NsxtFirewall:
        """Replace the user defined rules of ``edge_gateway`` with ``rules``."""
        client = edge_gateway.client
        api_version = await client.check_openapi_endpoint_compatibility(FIREWALL_RULES_ENDPOINT)
        firewall = cls(client, edge_gateway.edge_gateway.id or "")
        try:
            data = await client.openapi_put_item(api_version, firewall._url(), None, rules)
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error setting NSX-T Firewall: {e}") from e
        if data is not None:
            firewall.rules = NsxtFirewallRuleContainer.model_validate(data)
        return firewall

    async def delete_all_rules(self) -> None:
        if not self.edge_gateway_id:
            raise ValidationError("missing Edge Gateway ID")
        api_version = await self.client.check_openapi_endpoint_compatibility(FIREWALL_RULES_ENDPOINT)
        try:
            await self.client.openapi_delete_item(api_version, self._url())
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error deleting all NSX-T Firewall Rules: {e}") from e

    async def delete_rule_by_id(self, rule_id: str) -> None:
        if not rule_id:
            raise ValidationError("empty ID specified")
        api_version = await self.client.check_openapi_endpoint_compatibility(FIREWALL_RULES_ENDPOINT)
        try:
            await self.client.openapi_delete_item(api_version, self._url("/", rule_id))
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error deleting NSX-T Firewall Rule with ID '{rule_id}': {e}") from e
