import pytest

from lbc.errors import RenderError, TemplateError
from lbc.render import render_config
from lbc.runtime import EndpointInfo


TEMPLATE = """backend web
{%- for b in Endpoints("web") %}
    server {{ b.nickname }} {{ b.host_port }} check # {{ b.revision }}
{%- endfor %}
backend api
{%- for b in LocalEndpoints("api") %}
    server {{ b.nickname }} {{ b.host }}:{{ b.service_configuration.port }}
{%- endfor %}
"""


def _desired():
    return {
        "web": {
            "10.0.0.2:80": EndpointInfo(revision="r2", availability_zone="eu-1a"),
            "10.0.0.1:80": EndpointInfo(revision="r1", availability_zone="eu-1b"),
        },
        "api": {
            "10.0.1.1:8080": EndpointInfo(availability_zone="eu-1a", service_configuration={"port": 9000}),
            "10.0.1.2:8080": EndpointInfo(availability_zone="eu-1b", service_configuration={"port": 9001}),
        },
    }


def test_endpoints_sorted_by_nickname_and_local_filtered():
    result = render_config(TEMPLATE, _desired(), "eu-1a")
    assert result.text == (
        "backend web\n"
        "    server web-10.0.0.1:80 10.0.0.1:80 check # r1\n"
        "    server web-10.0.0.2:80 10.0.0.2:80 check # r2\n"
        "backend api\n"
        "    server api-10.0.1.1:8080 10.0.1.1:9000\n"
    )


def test_required_services_keep_full_unfiltered_mapping():
    desired = _desired()
    result = render_config(TEMPLATE, desired, "eu-1a")
    assert set(result.required_services) == {"web", "api"}
    # LocalEndpoints filters what the template sees, not what must be reconciled.
    assert result.required_services["api"] == desired["api"]


def test_referenced_empty_service_is_recorded_as_empty():
    result = render_config('{% for b in Endpoints("db") %}{{ b.nickname }}{% endfor %}', {}, "")
    assert result.text == ""
    assert result.required_services == {"db": {}}


def test_unreferenced_services_are_not_required():
    result = render_config('{{ Endpoints("web") | length }}', _desired(), "")
    assert result.text == "2"
    assert list(result.required_services) == ["web"]


def test_rendering_is_deterministic():
    first = render_config(TEMPLATE, _desired(), "eu-1b")
    second = render_config(TEMPLATE, _desired(), "eu-1b")
    assert first.text == second.text


def test_syntax_error_raises_template_error():
    with pytest.raises(TemplateError):
        render_config("{% for b in Endpoints('web') %}", {}, "")


def test_selector_misuse_raises_render_error():
    with pytest.raises(RenderError):
        render_config("{{ Endpoints(42) }}", {}, "")


def test_undefined_variable_raises_render_error(journal):
    with pytest.raises(RenderError):
        render_config("maxconn {{ maxconn }}", {}, "")
    assert journal.latest_events(limit=1)[0].level == "ERROR"
