"""
Example: running a backup from Python against in-memory objects.

The memory reader serves the objects in dry_run_objects.yaml instead of a
live cluster, which is handy for checking strip_fields and the output layout
before pointing the same config at a real cluster.
"""

from clusterbackup import BackupOrchestrator

config = {
    "backup_name": "dry-run",
    "reader": {"kind": "memory", "resources_file": "examples/dry_run_objects.yaml"},
    "sink": {"system_type": "directory", "output_dir": "./backups/{{backup_name}}/{{run_id}}"},
    "includes": ["notebooks.kubeflow.org"],
    "verbose": True,
}

report = BackupOrchestrator(run_id="example-1").run(config)

print(f"Backup written to: {report.output_location}")
for result in report.results:
    stats = result.stats.snapshot()
    print(
        f"   {result.ref.kind_key}: {result.status} "
        f"({stats['workloads_written']} workloads, {stats['dependencies_written']} dependencies)"
    )

# The notebook's secretRef (aws-connection) is never backed up, and the
# platform CA bundle is skipped, so this prints 1 workload and 2 dependencies.
