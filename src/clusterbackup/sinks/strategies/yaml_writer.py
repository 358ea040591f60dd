from __future__ import annotations

import yaml

from clusterbackup.core.contracts import Instance
from clusterbackup.core.exceptions import SinkError
from clusterbackup.sinks.strategies.base import WriterStrategy


class _BlockDumper(yaml.SafeDumper):
    """SafeDumper that indents sequences under their parent key, like kubectl."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def _str_presenter(dumper: yaml.SafeDumper, data: str):
    # Multi-line strings (scripts, certificates) stay readable as literal blocks.
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_BlockDumper.add_representer(str, _str_presenter)


class YamlWriterStrategy(WriterStrategy):
    """Block-style YAML, keys in the order the API returned them."""

    file_extension = ".yaml"

    def dumps(self, obj: Instance) -> str:
        try:
            return yaml.dump(
                obj,
                Dumper=_BlockDumper,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
        except yaml.YAMLError as exc:
            raise SinkError(f"Cannot serialise object to YAML: {exc}") from exc
