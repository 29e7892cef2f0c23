"""Shared utilities for handlers."""

from __future__ import annotations

from dataclasses import dataclass

from kubernetes import client, config


@dataclass
class ClusterClients:
    """Kubernetes API clients used by one reconcile pass."""

    custom: client.CustomObjectsApi
    core: client.CoreV1Api
    apps: client.AppsV1Api


def load_cluster_config() -> None:
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def get_cluster_clients() -> ClusterClients:
    """Get every Kubernetes API client the reconcilers need."""
    load_cluster_config()
    return ClusterClients(
        custom=client.CustomObjectsApi(),
        core=client.CoreV1Api(),
        apps=client.AppsV1Api(),
    )
