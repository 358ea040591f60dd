import pytest

from clusterbackup.bootstrap import load_builtin_plugins
from clusterbackup.readers.registry import ReaderRegistry, ReaderRegistryError, register_reader
from clusterbackup.sinks.registry import SinkRegistry, SinkRegistryError
from clusterbackup.wiring.reader_registry import (
    BuiltReaderArgs,
    ReaderWiringRegistry,
    ReaderWiringRegistryError,
    register_reader_wiring,
)
from clusterbackup.wiring.sink_registry import SinkWiringRegistry, SinkWiringRegistryError


def setup_function() -> None:
    ReaderRegistry.clear()
    ReaderWiringRegistry.clear()
    SinkRegistry.clear()
    SinkWiringRegistry.clear()


def teardown_function() -> None:
    # leave the built-ins registered for the other test modules
    load_builtin_plugins(reload=True)


def test_register_and_get_reader_wiring():
    def builder(**_kwargs):
        return BuiltReaderArgs(args=(1,), kwargs={"x": 2})

    ReaderWiringRegistry.register(kind="memory", builder=builder)
    built = ReaderWiringRegistry.get("memory")()

    assert built.args == (1,)
    assert built.kwargs == {"x": 2}


def test_missing_wiring_raises():
    with pytest.raises(ReaderWiringRegistryError, match="No wiring registered"):
        ReaderWiringRegistry.get("kube_api")
    with pytest.raises(SinkWiringRegistryError, match="No sink wiring registered"):
        SinkWiringRegistry.get("directory")


def test_register_reader_wiring_decorator():
    @register_reader_wiring(kind="memory")
    def builder(**_kwargs):
        return BuiltReaderArgs(args=(), kwargs={})

    assert ReaderWiringRegistry.get("memory") is builder
    with pytest.raises(ReaderWiringRegistryError, match="already registered"):
        ReaderWiringRegistry.register(kind="memory", builder=builder)


def test_reader_registry_rejects_duplicates_unless_overwrite():
    @register_reader(kind="fake")
    class FakeReader:
        pass

    with pytest.raises(ReaderRegistryError, match="already registered"):
        ReaderRegistry.register(kind="fake", reader_class=object)

    ReaderRegistry.register(kind="fake", reader_class=object, overwrite=True)
    assert ReaderRegistry.get("fake") is object
    assert ReaderRegistry.try_get("missing") is None


def test_missing_sink_raises():
    with pytest.raises(SinkRegistryError, match="No sink registered"):
        SinkRegistry.get("directory")


def test_load_builtin_plugins_registers_everything():
    load_builtin_plugins(reload=True)

    assert ReaderRegistry.get("kube_api").__name__ == "KubeApiReader"
    assert ReaderRegistry.get("memory").__name__ == "MemoryReader"
    assert SinkRegistry.get("directory").__name__ == "DirectorySink"
    assert SinkRegistry.get("stream").__name__ == "StreamSink"
    assert callable(ReaderWiringRegistry.get("kube_api"))
    assert callable(ReaderWiringRegistry.get("memory"))
    assert callable(SinkWiringRegistry.get("directory"))
    assert callable(SinkWiringRegistry.get("stream"))
