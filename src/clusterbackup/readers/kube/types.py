from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional


@dataclass(frozen=True)
class KubeAuth:
    kind: Literal["none", "bearer", "client_cert"] = "none"

    bearer_token: Optional[str] = None

    client_cert_file: Optional[str] = None
    client_key_file: Optional[str] = None


@dataclass(frozen=True)
class KubeTLS:
    ca_file: Optional[str] = None
    ca_data: Optional[str] = None  # PEM text
    insecure_skip_verify: bool = False


@dataclass(frozen=True)
class KubeApiConnection:
    server: str
    timeout_seconds: float = 30.0
    page_size: int = 500
    qps: Optional[float] = 50.0
    burst: int = 100
    headers: Dict[str, str] = field(default_factory=dict)
    auth: KubeAuth = field(default_factory=KubeAuth)
    tls: KubeTLS = field(default_factory=KubeTLS)
