"""
Synthesizer for the StatefulSet that runs the server
"""

# Local
from .. import constants
from .base import ResourceSynthesizer

# The server is a single writer on its volume, so it always runs one replica
REPLICAS = 1

CONTAINER_NAME = "minecraft"
DATA_MOUNT_PATH = "/data"
HEALTH_COMMAND = ["mc-monitor", "status"]


class WorkloadSynthesizer(ResourceSynthesizer):
    """Builds a single replica StatefulSet running the server image with the
    config map as its environment and the claim mounted at /data
    """

    kind = "StatefulSet"
    api_version = "apps/v1"

    def build(self, cr_manifest: dict) -> dict:
        name = cr_manifest["metadata"]["name"]
        labels = self.labels(cr_manifest)
        manifest = self.header(
            cr_manifest,
            annotations={constants.RELOADER_ANNOTATION_NAME: "true"},
        )
        manifest["spec"] = {
            "replicas": REPLICAS,
            "selector": {"matchLabels": labels},
            "serviceName": name,
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "containers": [self._container(name)],
                    "volumes": [
                        {
                            "name": name,
                            "persistentVolumeClaim": {
                                "claimName": name,
                                "readOnly": False,
                            },
                        }
                    ],
                },
            },
        }
        return manifest

    def _container(self, name: str) -> dict:
        return {
            "name": CONTAINER_NAME,
            "image": self.synthesizer_config.image,
            "imagePullPolicy": "IfNotPresent",
            "envFrom": [{"configMapRef": {"name": name}}],
            "livenessProbe": _exec_probe(initial_delay_seconds=90, period_seconds=15),
            "readinessProbe": _exec_probe(initial_delay_seconds=30, period_seconds=5),
            "volumeMounts": [{"name": name, "mountPath": DATA_MOUNT_PATH}],
        }


def _exec_probe(initial_delay_seconds: int, period_seconds: int) -> dict:
    return {
        "initialDelaySeconds": initial_delay_seconds,
        "periodSeconds": period_seconds,
        "exec": {"command": list(HEALTH_COMMAND)},
    }
