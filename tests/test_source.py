import json

import httpx
import pytest

from lbc import source
from lbc.errors import SourceError
from lbc.source import load_desired


DOC = {
    "haproxy": {"template": "global\n", "certs": {"a.pem": "A"}},
    "services": {"web": {"10.0.0.1:80": {"revision": "r1", "availability_zone": "eu-1a"}}},
    "availability_zone": "eu-1a",
}


def test_load_from_file(tmp_path):
    path = tmp_path / "desired.json"
    path.write_text(json.dumps(DOC))

    req = load_desired(str(path))

    conf = req.configuration()
    assert conf.template == "global\n"
    assert conf.certs == {"a.pem": "A"}
    assert conf.files == {}
    desired = req.desired_state()
    assert desired["web"]["10.0.0.1:80"].revision == "r1"
    assert desired["web"]["10.0.0.1:80"].service_configuration == {}
    assert req.availability_zone == "eu-1a"


def test_missing_haproxy_section_means_no_configuration(tmp_path):
    path = tmp_path / "desired.json"
    path.write_text(json.dumps({"services": {}}))
    assert load_desired(str(path)).configuration() is None


def test_invalid_documents_raise_source_error(tmp_path):
    path = tmp_path / "desired.json"
    path.write_text("{not json")
    with pytest.raises(SourceError):
        load_desired(str(path))

    path.write_text(json.dumps({"haproxy": {"certs": {}}}))
    with pytest.raises(SourceError):
        load_desired(str(path))

    with pytest.raises(SourceError):
        load_desired(str(tmp_path / "missing.json"))

    with pytest.raises(SourceError):
        load_desired("")


def test_load_from_url(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/desired"
        return httpx.Response(200, json=DOC)

    real_client = httpx.Client

    def fake_client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(source.httpx, "Client", fake_client)
    req = load_desired("http://config.local/desired")
    assert set(req.services) == {"web"}


def test_url_error_status_raises(monkeypatch):
    real_client = httpx.Client

    def fake_client(**kwargs):
        return real_client(transport=httpx.MockTransport(lambda r: httpx.Response(503)), **kwargs)

    monkeypatch.setattr(source.httpx, "Client", fake_client)
    with pytest.raises(SourceError):
        load_desired("http://config.local/desired")
