"""
Base types shared by the synthesizers that build the dependent resources of a
Minecraft resource
"""

# Standard
from dataclasses import dataclass
from typing import Mapping, Optional
import abc
import copy
import os

# First Party
import alog

# Local
from .. import config, constants
from ..deploy_manager.owner_references import set_owner_reference
from ..exceptions import SynthesisError, assert_synthesized

log = alog.use_channel("SYNTH")


@dataclass(frozen=True)
class SynthesizerConfig:
    """The external configuration every synthesizer is constructed with. It is
    resolved once when the operator starts so that synthesis stays pure.
    """

    image: str
    storage_size: str
    server_port: int
    external_domain: str

    @classmethod
    def from_config(
        cls,
        library_config: Optional[Mapping] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "SynthesizerConfig":
        """Resolve the synthesizer config from the library config and the
        process environment

        Args:
            library_config:  Optional[Mapping]
                The config to read from. Defaults to the library config.
            environ:  Optional[Mapping[str, str]]
                The environment to read the image override from. Defaults to
                os.environ.

        Returns:
            synthesizer_config:  SynthesizerConfig
                The resolved values
        """
        library_config = (
            library_config if library_config is not None else config.library_config
        )
        environ = environ if environ is not None else os.environ
        image_config = library_config["image"]
        resources_config = library_config["resources"]
        image = environ.get(image_config["env_var"])
        if image is None:
            image = image_config["default"]
            log.info(
                "%s environment variable not found, using default image: %s",
                image_config["env_var"],
                image,
            )
        return cls(
            image=image,
            storage_size=str(resources_config["storage_size"]),
            server_port=int(resources_config["server_port"]),
            external_domain=resources_config["external_domain"],
        )

    @property
    def image_tag(self) -> str:
        """The tag portion of the image reference

        Raises:
            SynthesisError: If the image carries no tag
        """
        _, _, last_segment = self.image.rpartition("/")
        _, sep, tag = last_segment.rpartition(":")
        assert_synthesized(
            sep and tag and "@" not in last_segment,
            f"Could not determine the tag of image [{self.image}]",
        )
        return tag


class ResourceSynthesizer(abc.ABC):
    """A ResourceSynthesizer builds the desired manifest of one dependent kind
    from the parent manifest. Synthesis is pure and deterministic: it never
    reads the store and never mutates its input.
    """

    kind: str = None
    api_version: str = None

    def __init__(self, synthesizer_config: SynthesizerConfig):
        self.synthesizer_config = synthesizer_config

    def synthesize(self, cr_manifest: dict) -> dict:
        """Build the dependent manifest with an owner reference back to the
        parent

        Args:
            cr_manifest:  dict
                The manifest of the parent resource

        Returns:
            manifest:  dict
                The full manifest of the dependent

        Raises:
            SynthesisError: If the external configuration cannot be resolved
                or the owner reference cannot be built
        """
        manifest = self.build(copy.deepcopy(cr_manifest))
        try:
            set_owner_reference(cr_manifest, manifest)
        except ValueError as err:
            raise SynthesisError(
                f"Failed to set the owner reference on {self.kind}: {err}"
            ) from err
        log.debug4("Synthesized %s: %s", self.kind, manifest)
        return manifest

    @abc.abstractmethod
    def build(self, cr_manifest: dict) -> dict:
        """Build the manifest of the dependent without its owner reference"""

    ## Shared Helpers ##########################################################

    def labels(self, cr_manifest: dict) -> dict:
        """The common labels used to select the dependents of a resource"""
        return {
            constants.LABEL_APP_NAME: constants.APP_NAME,
            constants.LABEL_APP_VERSION: self.synthesizer_config.image_tag,
            constants.LABEL_MANAGED_BY: constants.MANAGED_BY,
            constants.LABEL_INSTANCE_NAME: cr_manifest["metadata"]["name"],
            constants.LABEL_CONTAINER_TYPE: constants.CONTAINER_TYPE,
        }

    def metadata(self, cr_manifest: dict, annotations: Optional[dict] = None) -> dict:
        """The metadata shared by all dependents: the parent's name and
        namespace plus the common labels
        """
        metadata = {
            "name": cr_manifest["metadata"]["name"],
            "namespace": cr_manifest["metadata"].get("namespace"),
            "labels": self.labels(cr_manifest),
        }
        if annotations:
            metadata["annotations"] = annotations
        return metadata

    def header(self, cr_manifest: dict, annotations: Optional[dict] = None) -> dict:
        """The apiVersion, kind and metadata of the dependent"""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata(cr_manifest, annotations),
        }
