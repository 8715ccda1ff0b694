"""Tests for vApps and parallel VM creation."""

import asyncio

import pytest
from lxml import etree

from conftest import BASE_URL, task_xml, xml_response
from vcd_client.exceptions import ValidationError, VcdError
from vcd_client.models import RecomposeVAppParams, VApp, VmCreateItem, VmSourcedItem, XmlReference
from vcd_client.parallel import ParallelScheduler
from vcd_client.resources import VAppV2, create_parallel_vm
from vcd_client.resources.vapp import (
    MIME_RECOMPOSE_VAPP_PARAMS,
    XML_NAMESPACE_VCLOUD,
    add_to_recompose,
    recompose_params_to_xml,
    vapp_from_xml,
)

VAPP_PATH = "/api/vApp/vapp-1"
VAPP_HREF = BASE_URL + VAPP_PATH
RECOMPOSE_PATH = VAPP_PATH + "/action/recomposeVApp"


def ns(tag):
    return f"{{{XML_NAMESPACE_VCLOUD}}}{tag}"


def vapp_xml(*vm_names):
    vms = "".join(
        f'<Vm href="{BASE_URL}/api/vApp/vm-{name}" id="urn:vcloud:vm:{name}" name="{name}" '
        'type="application/vnd.vmware.vcloud.vm+xml"/>'
        for name in vm_names
    )
    children = f"<Children>{vms}</Children>" if vm_names else ""
    return (
        f'<VApp xmlns="{XML_NAMESPACE_VCLOUD}" href="{VAPP_HREF}" id="urn:vcloud:vapp:1" name="web" '
        f'status="8" deployed="false" type="application/vnd.vmware.vcloud.vApp+xml">'
        f"<Description>web tier</Description>{children}</VApp>"
    )


class TestRecomposeXml:
    """Tests for recompose request rendering."""

    def test_render(self):
        """Test the document layout of a recompose request."""
        params = RecomposeVAppParams(
            name="web",
            description="web tier",
            create_items=[VmCreateItem(name="vm-1", description="empty VM")],
            sourced_items=[
                VmSourcedItem(
                    source=XmlReference(href=f"{BASE_URL}/api/vAppTemplate/vm-t", name="tmpl"),
                    vm_name="vm-2",
                )
            ],
        )

        root = etree.fromstring(recompose_params_to_xml(params))

        assert root.tag == ns("RecomposeVAppParams")
        assert root.get("name") == "web"
        assert root.get("powerOn") == "false"
        assert [child.tag for child in root] == [
            ns("Description"),
            ns("SourcedItem"),
            ns("CreateItem"),
            ns("AllEULAsAccepted"),
        ]
        sourced = root.find(ns("SourcedItem"))
        assert sourced.get("sourceDelete") == "false"
        assert sourced.find(ns("Source")).get("href").endswith("vm-t")
        assert sourced.findtext(f"{ns('VmGeneralParams')}/{ns('Name')}") == "vm-2"
        assert root.find(ns("CreateItem")).get("name") == "vm-1"
        assert root.findtext(ns("AllEULAsAccepted")) == "true"

    def test_render_sections(self):
        """Test that pre-rendered sections are embedded."""
        section = f'<VmSpecSection xmlns="{XML_NAMESPACE_VCLOUD}" Modified="true"><NumCpus>2</NumCpus></VmSpecSection>'
        params = RecomposeVAppParams(name="web", create_items=[VmCreateItem(name="vm-1", sections=[section])])

        root = etree.fromstring(recompose_params_to_xml(params))

        assert root.findtext(f"{ns('CreateItem')}/{ns('VmSpecSection')}/{ns('NumCpus')}") == "2"

    def test_vapp_from_xml(self):
        """Test parsing a vApp with its VMs."""
        vapp = vapp_from_xml(etree.fromstring(vapp_xml("a", "b").encode()))

        assert isinstance(vapp, VApp)
        assert vapp.name == "web"
        assert vapp.status == 8
        assert vapp.deployed is False
        assert [vm.name for vm in vapp.vms] == ["a", "b"]


class TestAddToRecompose:
    """Tests for sorting collected VM definitions."""

    def test_sorts_items(self):
        """Test that created and sourced VMs end up in their lists."""
        params = add_to_recompose(
            RecomposeVAppParams(name="web"),
            {
                "vm-1": VmCreateItem(name="vm-1"),
                "vm-2": VmSourcedItem(source=XmlReference(href="x")),
            },
        )
        assert [i.name for i in params.create_items] == ["vm-1"]
        assert len(params.sourced_items) == 1

    def test_rejects_other_types(self):
        """Test that unknown item types are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            add_to_recompose(RecomposeVAppParams(name="web"), {"vm-1": {"name": "vm-1"}})
        assert "vm-1" in str(exc_info.value)


class TestVAppV2:
    """Tests for the vApp wrapper."""

    @pytest.mark.asyncio
    async def test_get_by_href_requires_href(self, vcd_client):
        """Test that an empty HREF is rejected."""
        with pytest.raises(ValidationError):
            await VAppV2.get_by_href(vcd_client, "")

    @pytest.mark.asyncio
    async def test_recompose_requires_name(self, vcd_client):
        """Test that a recompose without vApp name is rejected."""
        vapp = VAppV2(vcd_client, VApp(href=VAPP_HREF, name="web"))
        with pytest.raises(ValidationError):
            await vapp.recompose(RecomposeVAppParams())

    @pytest.mark.asyncio
    async def test_recompose(self, vcd_client, fake_vcd):
        """Test sending a recompose, waiting for it and refreshing."""
        fake_vcd.add("GET", VAPP_PATH, xml_response(vapp_xml("vm-1")))
        fake_vcd.add("POST", RECOMPOSE_PATH, xml_response(task_xml("t9", status="running"), status=202))
        fake_vcd.add_task("t9", task_xml("t9"))
        vapp = VAppV2(vcd_client, VApp(href=VAPP_HREF, name="web"))

        await vapp.recompose(RecomposeVAppParams(name="web", create_items=[VmCreateItem(name="vm-1")]))

        request = fake_vcd.calls("POST", RECOMPOSE_PATH)[0]
        assert request.headers["Content-Type"] == MIME_RECOMPOSE_VAPP_PARAMS
        assert [vm.name for vm in vapp.vapp.vms] == ["vm-1"]

    @pytest.mark.asyncio
    async def test_recompose_failed_task(self, vcd_client, fake_vcd):
        """Test that a failed recompose task raises."""
        fake_vcd.add("POST", RECOMPOSE_PATH, xml_response(task_xml("t9", status="running"), status=202))
        fake_vcd.add_task("t9", task_xml("t9", status="error", error_message="no storage"))
        vapp = VAppV2(vcd_client, VApp(href=VAPP_HREF, name="web"))

        with pytest.raises(VcdError) as exc_info:
            await vapp.recompose(RecomposeVAppParams(name="web"))
        assert "no storage" in str(exc_info.value)


class TestCreateParallelVm:
    """Tests for adding VMs from concurrent callers."""

    @pytest.mark.asyncio
    async def test_one_recompose_for_all_callers(self, vcd_client, fake_vcd):
        """Test that concurrent callers share a single recompose."""
        fake_vcd.add("GET", VAPP_PATH, xml_response(vapp_xml()), xml_response(vapp_xml("vm-0", "vm-1", "vm-2")))
        fake_vcd.add("POST", RECOMPOSE_PATH, xml_response(task_xml("t9", status="running"), status=202))
        fake_vcd.add_task("t9", task_xml("t9"))
        scheduler = ParallelScheduler()

        results = await asyncio.gather(
            *(
                create_parallel_vm(vcd_client, VAPP_HREF, f"vm-{i}", VmCreateItem(name=f"vm-{i}"), 3, scheduler)
                for i in range(3)
            )
        )

        assert len(fake_vcd.calls("POST", RECOMPOSE_PATH)) == 1
        assert results[0] is results[1] is results[2]
        assert [vm.name for vm in results[0].vapp.vms] == ["vm-0", "vm-1", "vm-2"]
        body = etree.fromstring(fake_vcd.calls("POST", RECOMPOSE_PATH)[0].content)
        assert sorted(item.get("name") for item in body.findall(ns("CreateItem"))) == ["vm-0", "vm-1", "vm-2"]
        assert body.get("powerOn") == "false"

    @pytest.mark.asyncio
    async def test_recompose_error_reaches_callers(self, vcd_client, fake_vcd):
        """Test that a failed recompose is reported to every caller."""
        fake_vcd.add("GET", VAPP_PATH, xml_response(vapp_xml()))
        fake_vcd.add("POST", RECOMPOSE_PATH, xml_response(task_xml("t9", status="running"), status=202))
        fake_vcd.add_task("t9", task_xml("t9", status="error", error_message="quota exceeded"))
        scheduler = ParallelScheduler()

        results = await asyncio.gather(
            *(
                create_parallel_vm(vcd_client, VAPP_HREF, f"vm-{i}", VmCreateItem(name=f"vm-{i}"), 2, scheduler)
                for i in range(2)
            ),
            return_exceptions=True,
        )

        assert all(isinstance(r, VcdError) for r in results)
        assert all("quota exceeded" in str(r) for r in results)
