import httpx
import pytest

from src.core.org_directory import HttpOrganizationDirectory, OrganizationDirectory
from src.exceptions import DirectoryUnavailableError


def _directory(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpOrganizationDirectory(base_url="http://directory.test/user/", client=client)


def test_reads_organization_details():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"result": {"id": "org-x", "name": "Org X", "related_orgs": ["org-y", "org-x"]}})

    directory = _directory(handler)
    details = directory.fetch_org_details("org-x")

    assert seen["url"] == "http://directory.test/user/v1/organization/read?organization_id=org-x"
    assert details.name == "Org X"
    assert directory.get_related_orgs("org-x") == ["org-y"]


def test_unknown_organization_has_no_relations():
    directory = _directory(lambda request: httpx.Response(404, json={}))
    assert directory.fetch_org_details("org-q") is None
    assert directory.get_related_orgs("org-q") == []


def test_server_errors_are_transient():
    directory = _directory(lambda request: httpx.Response(503))
    with pytest.raises(DirectoryUnavailableError):
        directory.fetch_org_details("org-x")


def test_connection_errors_are_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DirectoryUnavailableError):
        _directory(handler).get_related_orgs("org-x")


def test_directory_interface_requires_fetch_org_details():
    class Incomplete(OrganizationDirectory):
        pass

    with pytest.raises(TypeError):
        Incomplete()
