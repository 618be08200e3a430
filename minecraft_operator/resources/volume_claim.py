"""
Synthesizer for the PersistentVolumeClaim that holds the world data
"""

# Local
from .base import ResourceSynthesizer


class VolumeClaimSynthesizer(ResourceSynthesizer):
    """Builds a ReadWriteOnce claim for the world data"""

    kind = "PersistentVolumeClaim"
    api_version = "v1"

    def build(self, cr_manifest: dict) -> dict:
        manifest = self.header(cr_manifest)
        manifest["spec"] = {
            "accessModes": ["ReadWriteOnce"],
            "resources": {
                "requests": {"storage": self.synthesizer_config.storage_size},
            },
        }
        return manifest
