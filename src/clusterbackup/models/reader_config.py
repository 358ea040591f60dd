from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, PositiveFloat, PositiveInt, model_validator


# -----------------
# Kubernetes API auth
# -----------------


class KubeAuthNoneConfig(BaseModel):
    kind: Literal["none"] = "none"


class KubeAuthBearerConfig(BaseModel):
    kind: Literal["bearer"] = "bearer"

    bearer_token: Optional[str] = None
    token_file: Optional[str] = None

    @model_validator(mode="after")
    def _validate_token_source(self) -> "KubeAuthBearerConfig":
        if not self.bearer_token and not self.token_file:
            raise ValueError("bearer auth requires either bearer_token or token_file")
        if self.bearer_token and self.token_file:
            raise ValueError("set only one of bearer_token or token_file")
        return self


class KubeAuthClientCertConfig(BaseModel):
    kind: Literal["client_cert"] = "client_cert"

    client_cert_file: str
    client_key_file: str


KubeAuthConfig = Annotated[
    Union[KubeAuthNoneConfig, KubeAuthBearerConfig, KubeAuthClientCertConfig],
    Field(discriminator="kind"),
]


class KubeTLSConfig(BaseModel):
    ca_file: Optional[str] = None
    ca_data: Optional[str] = None
    insecure_skip_tls_verify: bool = False


class KubeApiReaderConfig(BaseModel):
    """Reader talking to a live cluster.

    Connection details come from one of three places, in this order:
    an explicit ``server`` (with ``auth``/``tls``), a kubeconfig file
    (``kubeconfig`` or ``$KUBECONFIG`` / ``~/.kube/config``), or the
    in-cluster service account when ``in_cluster`` is true.
    """

    kind: Literal["kube_api"] = "kube_api"

    server: Optional[str] = None
    auth: KubeAuthConfig = Field(default_factory=KubeAuthNoneConfig)
    tls: KubeTLSConfig = Field(default_factory=KubeTLSConfig)

    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    in_cluster: bool = False

    timeout_seconds: PositiveFloat = 30.0
    page_size: PositiveInt = 500
    # Client-side throttling of API calls (token bucket); null disables it.
    qps: Optional[PositiveFloat] = 50.0
    burst: PositiveInt = 100
    headers: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_source(self) -> "KubeApiReaderConfig":
        if self.server and (self.kubeconfig or self.context):
            raise ValueError("Do not set kubeconfig/context together with an explicit server")
        if self.server and self.in_cluster:
            raise ValueError("in_cluster cannot be combined with an explicit server")
        if not self.server and self.auth.kind != "none":
            raise ValueError("auth is only used with an explicit server")
        return self


class MemoryReaderConfig(BaseModel):
    """In-memory objects keyed by resource type (``configmaps``, ``notebooks.kubeflow.org``).

    ``resources_file`` points at a YAML file with the same mapping and is
    merged over ``resources``.
    """

    kind: Literal["memory"] = "memory"

    resources: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    resources_file: Optional[str] = None


ReaderConfig = Annotated[
    Union[KubeApiReaderConfig, MemoryReaderConfig],
    Field(discriminator="kind"),
]
