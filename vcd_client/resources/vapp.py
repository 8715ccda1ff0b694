"""vApps through the XML API, including parallel VM creation.

Concurrent callers adding VMs to the same vApp would each trigger a
recompose and conflict with one another. :func:`create_parallel_vm` instead
collects the VM definitions from every caller and sends a single recompose
request with all of them.

Example:
    >>> vapp = await asyncio.gather(*(
    ...     create_parallel_vm(client, vapp_href, f"vm-{i}", VmCreateItem(name=f"vm-{i}"), 3)
    ...     for i in range(3)
    ... ))
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from lxml import etree
from lxml.builder import ElementMaker

from ..exceptions import APIResponseError, TaskError, ValidationError, VcdError
from ..logging_config import get_logger
from ..models import RecomposeVAppParams, VApp, VmCreateItem, VmSourcedItem, XmlReference
from ..parallel import (
    FINAL_OUTCOMES,
    OUTCOME_DONE,
    ParallelInput,
    ParallelScheduler,
    default_scheduler,
)

if TYPE_CHECKING:
    from ..api_client import VcdAPIClient

logger = get_logger(__name__)

XML_NAMESPACE_VCLOUD = "http://www.vmware.com/vcloud/v1.5"
XML_NAMESPACE_OVF = "http://schemas.dmtf.org/ovf/envelope/1"
XML_NAMESPACE_XSI = "http://www.w3.org/2001/XMLSchema-instance"

MIME_RECOMPOSE_VAPP_PARAMS = "application/vnd.vmware.vcloud.recomposeVAppParams+xml"

PARALLEL_COLLECTION_TIMEOUT = 10.0
PARALLEL_RUN_TIMEOUT = 100.0
PARALLEL_POLL_INTERVAL = 0.1

E = ElementMaker(
    namespace=XML_NAMESPACE_VCLOUD,
    nsmap={None: XML_NAMESPACE_VCLOUD, "ovf": XML_NAMESPACE_OVF, "xsi": XML_NAMESPACE_XSI},
)


def _bool_attr(value: bool) -> str:
    return "true" if value else "false"


def _reference_element(tag: str, ref: XmlReference) -> Any:
    attrs = {key: value for key, value in (("href", ref.href), ("id", ref.id), ("type", ref.type), ("name", ref.name)) if value}
    return E(tag, **attrs)


def _create_item_element(item: VmCreateItem) -> Any:
    element = E.CreateItem(name=item.name)
    if item.description:
        element.append(E.Description(item.description))
    for section in item.sections:
        element.append(etree.fromstring(section))
    if item.storage_profile is not None:
        element.append(_reference_element("StorageProfile", item.storage_profile))
    return element


def _sourced_item_element(item: VmSourcedItem) -> Any:
    element = E.SourcedItem(sourceDelete=_bool_attr(item.source_delete))
    element.append(_reference_element("Source", item.source))
    if item.vm_name:
        element.append(E.VmGeneralParams(E.Name(item.vm_name)))
    if item.storage_profile is not None:
        element.append(_reference_element("StorageProfile", item.storage_profile))
    return element


def recompose_params_to_xml(params: RecomposeVAppParams) -> bytes:
    """Render a ``RecomposeVAppParams`` request body."""
    root = E.RecomposeVAppParams(
        name=params.name,
        deploy=_bool_attr(params.deploy),
        powerOn=_bool_attr(params.power_on),
    )
    if params.description:
        root.append(E.Description(params.description))
    for sourced in params.sourced_items:
        root.append(_sourced_item_element(sourced))
    for created in params.create_items:
        root.append(_create_item_element(created))
    root.append(E.AllEULAsAccepted(_bool_attr(params.all_eulas_accepted)))
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


def vapp_from_xml(root: Any) -> VApp:
    status = root.get("status")
    vms = []
    children = root.find("{*}Children")
    if children is not None:
        for vm in children.findall("{*}Vm"):
            vms.append(
                XmlReference(href=vm.get("href", ""), id=vm.get("id", ""), type=vm.get("type", ""), name=vm.get("name", ""))
            )
    return VApp(
        href=root.get("href", ""),
        id=root.get("id", ""),
        name=root.get("name", ""),
        type=root.get("type", ""),
        description=root.findtext("{*}Description") or "",
        status=int(status) if status and status.lstrip("-").isdigit() else None,
        deployed=root.get("deployed", "false").lower() == "true",
        vms=vms,
    )


def add_to_recompose(params: RecomposeVAppParams, items: Mapping[str, Any]) -> RecomposeVAppParams:
    """Sort collected VM definitions into created and sourced items.

    Raises:
        ValidationError: If an item is neither a :class:`VmCreateItem` nor a
            :class:`VmSourcedItem`.
    """
    for key, value in items.items():
        if isinstance(value, VmCreateItem):
            params.create_items.append(value)
        elif isinstance(value, VmSourcedItem):
            params.sourced_items.append(value)
        else:
            raise ValidationError(
                f"wanted only {VmCreateItem.__name__} or {VmSourcedItem.__name__} - "
                f"Found item ({key}) of type '{type(value).__name__}'"
            )
    return params


class VAppV2:
    """A vApp able to receive VMs from several concurrent callers."""

    def __init__(self, client: VcdAPIClient, vapp: VApp | None = None) -> None:
        self.client = client
        self.vapp = vapp if vapp is not None else VApp()

    def __repr__(self) -> str:
        return f"VAppV2(href={self.vapp.href!r}, name={self.vapp.name!r})"

    @classmethod
    async def get_by_href(cls, client: VcdAPIClient, href: str) -> VAppV2:
        if not href:
            raise ValidationError("cannot find VAppV2: HREF is empty")
        try:
            root = await client.execute_xml_request(href, "GET")
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"error retrieving vApp: {e}") from e
        return cls(client, vapp_from_xml(root))

    async def refresh(self) -> None:
        if not self.vapp.href:
            raise ValidationError("cannot refresh, Object is empty")
        root = await self.client.execute_xml_request(self.vapp.href, "GET")
        self.vapp = vapp_from_xml(root)

    async def recompose(self, params: RecomposeVAppParams) -> None:
        """Add VMs to the vApp and wait for the task, then refresh."""
        if not params.name:
            raise ValidationError("empty vApp name provided")
        if not self.vapp.href:
            raise ValidationError("[RecomposeVAppV2] error getting vapp href: HREF is empty")

        href = self.vapp.href.rstrip("/") + "/action/recomposeVApp"
        try:
            task = await self.client.execute_task_request(
                href, "POST", MIME_RECOMPOSE_VAPP_PARAMS, recompose_params_to_xml(params)
            )
        except (VcdError, APIResponseError) as e:
            raise VcdError(f"[RecomposeVAppV2] error executing task request: {e}") from e

        try:
            await task.wait_task_completion()
        except (TaskError, VcdError) as e:
            raise VcdError(f"[RecomposeVAppV2] error performing task: {e}") from e

        await self.refresh()


async def reconfigure_parallel_vapp(client: Any, vapp_href: str, vms: dict[str, Any]) -> VAppV2:
    """Recompose ``vapp_href`` with every collected VM. Runs once per collection."""
    try:
        vapp = await VAppV2.get_by_href(client, vapp_href)
    except (VcdError, ValidationError) as e:
        raise VcdError(f"error retrieving vApp {vapp_href}: {e}") from e

    try:
        params = add_to_recompose(
            RecomposeVAppParams(
                name=vapp.vapp.name,
                description=vapp.vapp.description,
                power_on=False,
                all_eulas_accepted=True,
            ),
            vms,
        )
    except ValidationError as e:
        raise VcdError(f"error building vApp recompose params: {e}") from e

    try:
        await vapp.recompose(params)
    except (VcdError, ValidationError) as e:
        raise VcdError(f"error recomposing vApp: {e}") from e
    return vapp


async def create_parallel_vms(
    parallel_input: ParallelInput,
    scheduler: ParallelScheduler | None = None,
    poll_interval: float = PARALLEL_POLL_INTERVAL,
) -> tuple[str, Any]:
    """Submit ``parallel_input`` and keep polling until the outcome is final."""
    scheduler = scheduler or default_scheduler
    while True:
        try:
            outcome, result = await scheduler.run_when_ready(parallel_input)
        except VcdError as e:
            raise VcdError(f"[CreateParallelVMs] error returned {e}") from e
        if outcome in FINAL_OUTCOMES:
            return outcome, result
        await asyncio.sleep(poll_interval)


async def create_parallel_vm(
    client: VcdAPIClient,
    vapp_href: str,
    vm_name: str,
    creation: VmCreateItem | VmSourcedItem,
    how_many: int,
    scheduler: ParallelScheduler | None = None,
) -> VAppV2:
    """Add one VM to a vApp together with ``how_many - 1`` concurrent callers.

    Returns:
        The recomposed vApp.

    Raises:
        VcdError: If the collection or the recompose times out or fails.
    """
    outcome, result = await create_parallel_vms(
        ParallelInput(
            client=client,
            global_id=vapp_href,
            item_id=vm_name,
            how_many=how_many,
            item=creation,
            run=reconfigure_parallel_vapp,
            collection_timeout=PARALLEL_COLLECTION_TIMEOUT,
            run_timeout=PARALLEL_RUN_TIMEOUT,
        ),
        scheduler,
    )
    if outcome != OUTCOME_DONE:
        raise VcdError(f"received outcome {outcome}")
    if not isinstance(result, VAppV2):
        raise VcdError(f"vapp structure not returned correctly. Received: {type(result).__name__}")
    return result
