"""
The ordered table of dependent resources that make up a Minecraft server
"""

# Standard
from dataclasses import dataclass
from typing import List, Optional

# Local
from .base import ResourceSynthesizer, SynthesizerConfig
from .config_map import ConfigSynthesizer
from .network_endpoint import NetworkEndpointSynthesizer
from .volume_claim import VolumeClaimSynthesizer
from .workload import WorkloadSynthesizer


@dataclass(frozen=True)
class DependentResource:
    """One row of the dependent table. Dependents that settle asynchronously
    are revisited after a delay once created, the rest immediately.
    """

    kind: str
    api_version: str
    synthesizer: ResourceSynthesizer
    settles_async: bool


def default_synthesizers(
    synthesizer_config: Optional[SynthesizerConfig] = None,
) -> List[DependentResource]:
    """Build the dependent table in creation order

    Args:
        synthesizer_config:  Optional[SynthesizerConfig]
            The resolved external configuration. Defaults to the one resolved
            from the library config and environment.

    Returns:
        dependents:  List[DependentResource]
            The volume claim, config, workload and network endpoint, in order
    """
    synthesizer_config = synthesizer_config or SynthesizerConfig.from_config()
    return [
        DependentResource(
            kind=synth_class.kind,
            api_version=synth_class.api_version,
            synthesizer=synth_class(synthesizer_config),
            settles_async=settles_async,
        )
        for synth_class, settles_async in [
            (VolumeClaimSynthesizer, True),
            (ConfigSynthesizer, False),
            (WorkloadSynthesizer, True),
            (NetworkEndpointSynthesizer, False),
        ]
    ]
