"""Builders for generated documents."""

from .kubeconfig import ClusterEndpoint, KubeconfigRequest, build_kubeconfig_request

__all__ = ["ClusterEndpoint", "KubeconfigRequest", "build_kubeconfig_request"]
