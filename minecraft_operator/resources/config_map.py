"""
Synthesizer for the ConfigMap that holds the server environment
"""

# Local
from .base import ResourceSynthesizer


class ConfigSynthesizer(ResourceSynthesizer):
    """Builds the config map that accepts the server EULA"""

    kind = "ConfigMap"
    api_version = "v1"

    def build(self, cr_manifest: dict) -> dict:
        manifest = self.header(cr_manifest)
        manifest["data"] = {"EULA": "TRUE"}
        return manifest
