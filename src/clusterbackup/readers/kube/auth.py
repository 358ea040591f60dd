from __future__ import annotations

import ssl
from typing import Dict

from clusterbackup.readers.kube.types import KubeAuth, KubeTLS


def build_auth_headers(auth: KubeAuth) -> Dict[str, str]:
    if auth.kind in ("none", "client_cert"):
        return {}

    if auth.kind == "bearer":
        if not auth.bearer_token:
            raise ValueError("bearer auth requires bearer_token")
        return {"Authorization": f"Bearer {auth.bearer_token}"}

    raise ValueError(f"Unsupported auth kind: {auth.kind!r}")


def build_ssl_context(tls: KubeTLS, auth: KubeAuth) -> ssl.SSLContext:
    """TLS context trusting the cluster CA and presenting the client certificate, if any."""
    if tls.ca_file or tls.ca_data:
        ctx = ssl.create_default_context(cafile=tls.ca_file, cadata=tls.ca_data)
    else:
        ctx = ssl.create_default_context()

    if tls.insecure_skip_verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE

    if auth.kind == "client_cert":
        if not auth.client_cert_file or not auth.client_key_file:
            raise ValueError("client_cert auth requires client_cert_file and client_key_file")
        ctx.load_cert_chain(certfile=auth.client_cert_file, keyfile=auth.client_key_file)

    return ctx
