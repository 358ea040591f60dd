"""
Builds a KubeApiConnection from a kubeconfig file or the in-cluster service account.

Only the parts of the kubeconfig format a read-only backup needs are
understood: server URL, CA (file or inline data), skip-verify, bearer token
(inline or file) and client certificate files. Exec and auth-provider
plugins are not supported.
"""

from __future__ import annotations

import base64
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from clusterbackup.core.exceptions import ConfigurationError
from clusterbackup.readers.kube.types import KubeApiConnection, KubeAuth, KubeTLS

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


def default_kubeconfig_path() -> Path:
    env = os.environ.get("KUBECONFIG")
    if env:
        # Only the first entry of a KUBECONFIG list is read.
        return Path(env.split(os.pathsep)[0]).expanduser()
    return Path.home() / ".kube" / "config"


def _named(entries: Optional[List[Dict[str, Any]]], name: str, what: str) -> Dict[str, Any]:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry.get(what) or {}
    raise ConfigurationError(f"kubeconfig has no {what} named {name!r}")


def _resolve_path(base_dir: Path, value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    p = Path(value).expanduser()
    if not p.is_absolute():
        p = base_dir / p
    return str(p)


def load_kubeconfig(
    path: Optional[str] = None,
    *,
    context: Optional[str] = None,
    timeout_seconds: float = 30.0,
    page_size: int = 500,
) -> KubeApiConnection:
    cfg_path = Path(path).expanduser() if path else default_kubeconfig_path()
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read kubeconfig {cfg_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid kubeconfig {cfg_path}: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Invalid kubeconfig {cfg_path}: expected a mapping")

    context_name = context or raw.get("current-context")
    if not context_name:
        raise ConfigurationError(f"kubeconfig {cfg_path} has no current-context and none was given")

    ctx = _named(raw.get("contexts"), context_name, "context")
    cluster = _named(raw.get("clusters"), ctx.get("cluster", ""), "cluster")
    user = _named(raw.get("users"), ctx.get("user", ""), "user") if ctx.get("user") else {}

    server = cluster.get("server")
    if not server:
        raise ConfigurationError(f"kubeconfig cluster for context {context_name!r} has no server")

    base_dir = cfg_path.parent

    ca_data = None
    if cluster.get("certificate-authority-data"):
        ca_data = base64.b64decode(cluster["certificate-authority-data"]).decode("ascii")

    tls = KubeTLS(
        ca_file=_resolve_path(base_dir, cluster.get("certificate-authority")),
        ca_data=ca_data,
        insecure_skip_verify=bool(cluster.get("insecure-skip-tls-verify", False)),
    )

    if user.get("client-certificate-data") or user.get("client-key-data"):
        raise ConfigurationError(
            "inline client-certificate-data is not supported; reference certificate files instead"
        )

    token = user.get("token")
    if not token and user.get("tokenFile"):
        token_path = Path(_resolve_path(base_dir, user["tokenFile"]))
        try:
            token = token_path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read tokenFile {token_path}: {exc}") from exc

    if token:
        auth = KubeAuth(kind="bearer", bearer_token=token)
    elif user.get("client-certificate"):
        auth = KubeAuth(
            kind="client_cert",
            client_cert_file=_resolve_path(base_dir, user.get("client-certificate")),
            client_key_file=_resolve_path(base_dir, user.get("client-key")),
        )
    else:
        auth = KubeAuth()

    return KubeApiConnection(
        server=server,
        timeout_seconds=timeout_seconds,
        page_size=page_size,
        auth=auth,
        tls=tls,
    )


def in_cluster_connection(
    *,
    timeout_seconds: float = 30.0,
    page_size: int = 500,
    sa_dir: Path = SERVICE_ACCOUNT_DIR,
) -> Optional[KubeApiConnection]:
    """Connection for the pod's service account, or None when not running in a cluster."""
    host = os.environ.get("KUBERNETES_SERVICE_HOST")
    port = os.environ.get("KUBERNETES_SERVICE_PORT", "443")
    token_path = sa_dir / "token"
    if not host or not token_path.exists():
        return None

    if ":" in host:
        host = f"[{host}]"
    ca_path = sa_dir / "ca.crt"
    return KubeApiConnection(
        server=f"https://{host}:{port}",
        timeout_seconds=timeout_seconds,
        page_size=page_size,
        auth=KubeAuth(kind="bearer", bearer_token=token_path.read_text(encoding="utf-8").strip()),
        tls=KubeTLS(ca_file=str(ca_path) if ca_path.exists() else None),
    )
