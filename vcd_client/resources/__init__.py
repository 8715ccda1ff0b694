"""Typed wrappers around VCD entities.

Each wrapper holds the client and the entity model returned by the API, and
exposes async lookups as classmethods and mutations as instance methods.
"""

from .alb_pool import NsxtAlbPool
from .api_filter import ApiFilter
from .defined_entity import DefinedEntity, DefinedEntityType
from .edge_gateway import NsxtEdgeGateway
from .firewall import NsxtFirewall
from .ip_space import IpSpace
from .nat_rule import NsxtNatRule
from .org import TmOrg
from .region_storage_policy import RegionStoragePolicy
from .solution_add_on import SolutionAddOn, SolutionAddOnInstance
from .tm_vdc import TmVdc
from .vapp import VAppV2, create_parallel_vm

__all__ = [
    "ApiFilter",
    "DefinedEntity",
    "DefinedEntityType",
    "IpSpace",
    "NsxtAlbPool",
    "NsxtEdgeGateway",
    "NsxtFirewall",
    "NsxtNatRule",
    "RegionStoragePolicy",
    "SolutionAddOn",
    "SolutionAddOnInstance",
    "TmOrg",
    "TmVdc",
    "VAppV2",
    "create_parallel_vm",
]
