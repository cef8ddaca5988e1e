"""Config Renderer: runs the HAProxy template against the desired state.

The template is Jinja2. Two selectors are exposed as template globals:

    {% for b in Endpoints("web") %}
    server {{ b.nickname }} {{ b.host_port }} check
    {% endfor %}

``LocalEndpoints`` does the same but keeps only endpoints in the local
availability zone. Every selector call records the service's full endpoint
mapping in ``RenderResult.required_services``; drift detection later
reconciles exactly those services against the live proxy.
"""
from __future__ import annotations

from dataclasses import dataclass, field

import jinja2

from .db import log_event
from .errors import RenderError, TemplateError
from .runtime import BackendParameters, DesiredState, EndpointInfo


@dataclass(frozen=True)
class RenderResult:
    text: str
    # service -> raw endpoint mapping, empty for referenced services without endpoints
    required_services: dict[str, dict[str, EndpointInfo]] = field(default_factory=dict)


def nickname_for(service: str, host_port: str) -> str:
    return f"{service}-{host_port}"


def _backend(service: str, host_port: str, info: EndpointInfo) -> BackendParameters:
    return BackendParameters(
        nickname=nickname_for(service, host_port),
        host=host_port.split(":")[0],
        host_port=host_port,
        revision=info.revision,
        service_configuration=info.service_configuration,
    )


def _environment() -> jinja2.Environment:
    # Undefined names fail the render.
    return jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )


def render_config(template: str, desired: DesiredState, availability_zone: str) -> RenderResult:
    """Render the configuration text and collect the locally required services."""
    required: dict[str, dict[str, EndpointInfo]] = {}

    def _select(service: str, local_only: bool) -> list[BackendParameters]:
        if not isinstance(service, str):
            raise TypeError(f"service name must be a string, got {type(service).__name__}")
        servers = desired.get(service, {})
        required[service] = servers
        backends = [
            _backend(service, host_port, info)
            for host_port, info in servers.items()
            if not local_only or info.availability_zone == availability_zone
        ]
        return sorted(backends, key=lambda b: b.nickname)

    def endpoints(service: str) -> list[BackendParameters]:
        return _select(service, local_only=False)

    def local_endpoints(service: str) -> list[BackendParameters]:
        return _select(service, local_only=True)

    env = _environment()
    env.globals["Endpoints"] = endpoints
    env.globals["LocalEndpoints"] = local_endpoints

    try:
        tmpl = env.from_string(template)
    except jinja2.TemplateSyntaxError as e:
        log_event("ERROR", f"Template parse failed at line {e.lineno}: {e.message}")
        raise TemplateError(f"template parse failed at line {e.lineno}: {e.message}") from e

    try:
        text = tmpl.render()
    except Exception as e:
        log_event("ERROR", f"Template execution failed: {type(e).__name__}: {e}")
        raise RenderError(f"template execution failed: {type(e).__name__}: {e}") from e

    return RenderResult(text=text, required_services=required)
