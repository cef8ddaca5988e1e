from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .runtime import DesiredState, EndpointInfo, ProxyConfiguration


class Endpoint(BaseModel):
    revision: str = Field("", description="Deployed revision of the endpoint")
    availability_zone: str = Field("", description="Availability zone tag used by LocalEndpoints")
    service_configuration: dict[str, Any] = Field(default_factory=dict)

    def to_runtime(self) -> EndpointInfo:
        return EndpointInfo(
            revision=self.revision,
            availability_zone=self.availability_zone,
            service_configuration=dict(self.service_configuration),
        )


class HAProxyConfig(BaseModel):
    template: str = Field(..., description="Jinja2 template of haproxy.cfg")
    certs: dict[str, str] = Field(default_factory=dict, description="certs.d/ file name -> contents")
    files: dict[str, str] = Field(default_factory=dict, description="Config dir file name -> contents")

    def to_runtime(self) -> ProxyConfiguration:
        return ProxyConfiguration(template=self.template, certs=dict(self.certs), files=dict(self.files))


class ConvergeRequest(BaseModel):
    haproxy: HAProxyConfig | None = Field(None, description="Absent until the config source has delivered one")
    services: dict[str, dict[str, Endpoint]] = Field(
        default_factory=dict, description="service -> 'host:port' -> endpoint"
    )
    availability_zone: str | None = Field(None, description="Overrides LBC_AVAILABILITY_ZONE")

    def configuration(self) -> ProxyConfiguration | None:
        return self.haproxy.to_runtime() if self.haproxy else None

    def desired_state(self) -> DesiredState:
        return {
            service: {host_port: ep.to_runtime() for host_port, ep in servers.items()}
            for service, servers in self.services.items()
        }


class ConvergeResponse(BaseModel):
    outcome: str
    restart_required: bool | None = None
    commands: str = ""
    reason: str = ""
    backup_path: str | None = None
    first_converge_done: bool
