"""
Thin wrapper around the Kubernetes API used to discover which images are in use.
"""

from typing import Any, List, Optional

from ecr_cleaner.logging_utils import get_logger

logger = get_logger(__name__)


def _load_kubernetes_config():
    """Helper function to load Kubernetes configuration.

    Tries in-cluster config first, then falls back to local kubeconfig.

    Raises:
        Exception if both methods fail
    """
    try:
        from kubernetes.config import load_incluster_config

        load_incluster_config()
        logger.debug("Kubernetes client initialized with in-cluster config")
    except Exception:
        from kubernetes.config import load_kube_config

        load_kube_config()
        logger.debug("Kubernetes client initialized from local kubeconfig")


def _get_kubernetes_core_client():
    """Helper function to get a Kubernetes CoreV1Api client.

    Returns:
        CoreV1Api instance
    """
    from kubernetes import client as k8s_client

    _load_kubernetes_config()
    return k8s_client.CoreV1Api()


class KubernetesClusterClient:
    """Lists namespaces and the container images referenced by their pods"""

    def __init__(self, core_v1_client: Optional[Any] = None):
        self._core_v1 = core_v1_client

    @property
    def core_v1(self):
        # Loaded lazily so that building the pipeline never touches the cluster
        if self._core_v1 is None:
            self._core_v1 = _get_kubernetes_core_client()
        return self._core_v1

    def list_namespaces(self) -> List[str]:
        """Return the names of every namespace in the cluster"""
        namespaces = self.core_v1.list_namespace()
        return [ns.metadata.name for ns in namespaces.items]

    def list_pod_images(self, namespace: str) -> List[str]:
        """Return the image of every container of every pod in a namespace.

        Duplicates are kept; callers treat the result as a multiset.
        """
        pods = self.core_v1.list_namespaced_pod(namespace=namespace)
        images = []
        for pod in pods.items:
            containers = (pod.spec.containers if pod.spec else None) or []
            images.extend(container.image for container in containers if container.image)
        return images
