"""clusterbackup.

Backs up cluster workloads (Kubeflow Notebooks, DataSciencePipelinesApplications)
together with the ConfigMaps, Secrets and PersistentVolumeClaims they reference,
as clean YAML ready to re-apply.

Public API for running backups from Python.
"""

from clusterbackup.orchestrator import BackupOrchestrator, BackupReport
from clusterbackup.models.backup_config import BackupConfig
from clusterbackup.cli import main, validate_config

__version__ = "0.1.0"

__all__ = [
    "BackupOrchestrator",
    "BackupReport",
    "BackupConfig",
    "main",
    "validate_config",
]
