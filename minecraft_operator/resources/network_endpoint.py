"""
Synthesizer for the Service that exposes the server
"""

# Local
from .. import constants
from .base import ResourceSynthesizer

PORT_NAME = "minecraft"


class NetworkEndpointSynthesizer(ResourceSynthesizer):
    """Builds a Service selecting the server pods on the game port. The
    external server name annotation routes <name>.<domain> to it.
    """

    kind = "Service"
    api_version = "v1"

    def build(self, cr_manifest: dict) -> dict:
        name = cr_manifest["metadata"]["name"]
        external_name = f"{name}.{self.synthesizer_config.external_domain}"
        manifest = self.header(
            cr_manifest,
            annotations={constants.EXTERNAL_SERVER_NAME_ANNOTATION_NAME: external_name},
        )
        manifest["spec"] = {
            "selector": self.labels(cr_manifest),
            "ports": [
                {
                    "name": PORT_NAME,
                    "protocol": "TCP",
                    "port": self.synthesizer_config.server_port,
                }
            ],
        }
        return manifest
