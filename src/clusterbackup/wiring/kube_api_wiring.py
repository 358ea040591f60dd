from __future__ import annotations

import dataclasses
from pathlib import Path

from clusterbackup.core.exceptions import ConfigurationError
from clusterbackup.models.reader_config import KubeApiReaderConfig
from clusterbackup.readers.kube.kubeconfig import in_cluster_connection, load_kubeconfig
from clusterbackup.readers.kube.types import KubeApiConnection, KubeAuth, KubeTLS
from clusterbackup.wiring.reader_registry import BuiltReaderArgs, register_reader_wiring


def _auth_from_config(cfg: KubeApiReaderConfig) -> KubeAuth:
    auth = cfg.auth

    if auth.kind == "none":
        return KubeAuth(kind="none")

    if auth.kind == "bearer":
        token = auth.bearer_token
        if token is None:
            try:
                token = Path(auth.token_file).expanduser().read_text(encoding="utf-8").strip()
            except OSError as exc:
                raise ConfigurationError(f"Cannot read token_file {auth.token_file!r}: {exc}") from exc
        return KubeAuth(kind="bearer", bearer_token=token)

    if auth.kind == "client_cert":
        return KubeAuth(
            kind="client_cert",
            client_cert_file=auth.client_cert_file,
            client_key_file=auth.client_key_file,
        )

    raise ValueError(f"Unsupported kube auth kind: {auth.kind!r}")


def build_kube_api_connection(cfg: KubeApiReaderConfig) -> KubeApiConnection:
    # This wiring module is the only layer that reads the pydantic reader config.
    if cfg.server:
        connection = KubeApiConnection(
            server=cfg.server,
            auth=_auth_from_config(cfg),
            tls=KubeTLS(
                ca_file=cfg.tls.ca_file,
                ca_data=cfg.tls.ca_data,
                insecure_skip_verify=cfg.tls.insecure_skip_tls_verify,
            ),
        )
    elif cfg.in_cluster:
        connection = in_cluster_connection()
        if connection is None:
            raise ConfigurationError("in_cluster is set but no service account is mounted")
    else:
        connection = load_kubeconfig(cfg.kubeconfig, context=cfg.context)
        if cfg.tls.insecure_skip_tls_verify:
            connection = dataclasses.replace(
                connection,
                tls=dataclasses.replace(connection.tls, insecure_skip_verify=True),
            )

    return dataclasses.replace(
        connection,
        timeout_seconds=float(cfg.timeout_seconds),
        page_size=int(cfg.page_size),
        qps=float(cfg.qps) if cfg.qps is not None else None,
        burst=int(cfg.burst),
        headers=dict(cfg.headers),
    )


@register_reader_wiring(kind="kube_api")
def build_kube_api_reader_args(*, reader: KubeApiReaderConfig) -> BuiltReaderArgs:
    connection = build_kube_api_connection(reader)

    # Let the reader construct its own HTTP client (base_url + headers + TLS).
    return BuiltReaderArgs(args=(connection,), kwargs={})
