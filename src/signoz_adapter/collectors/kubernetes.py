from typing import List, Optional
import logging

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from signoz_adapter.core.errors import ObjectListingError

logger = logging.getLogger(__name__)


class KubernetesObjectLister:
    """Resolve a namespace and label selector to the pod names currently matching it."""

    def __init__(self, core_api: Optional[client.CoreV1Api] = None, kubeconfig: Optional[str] = None):
        self.core_api = core_api or self._init_core_api(kubeconfig)

    @staticmethod
    def _init_core_api(kubeconfig: Optional[str]) -> client.CoreV1Api:
        if kubeconfig:
            config.load_kube_config(config_file=kubeconfig)
            logger.info(f"Loaded kubeconfig from {kubeconfig}")
            return client.CoreV1Api()

        # in-cluster first, local kubeconfig for development
        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Loaded kubeconfig")
        return client.CoreV1Api()

    def list_object_names(self, namespace: str, label_selector: str = "") -> List[str]:
        """List pod names in ``namespace`` matching ``label_selector``.

        Raises:
            ObjectListingError: If the Kubernetes API call fails
        """
        try:
            pods = self.core_api.list_namespaced_pod(namespace, label_selector=label_selector or "")
        except ApiException as e:
            raise ObjectListingError(
                f"unable to list pods in namespace {namespace} with selector {label_selector!r}: "
                f"{e.status} {e.reason}"
            ) from e
        except HTTPError as e:
            raise ObjectListingError(f"unable to reach the Kubernetes API: {e}") from e

        names = [pod.metadata.name for pod in pods.items]
        logger.debug(f"Selector {label_selector!r} in {namespace} matched {len(names)} pods")
        return names
