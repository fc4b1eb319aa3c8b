"""Build, tear down and collect logs from Kubernetes test clusters on GCE."""

__version__ = "0.1.0"