"""
The DeployManager is the abstraction in charge of interacting with the
store to create, look up, update, and delete resources.
"""

# Local
from .base import DeployManagerBase, KubeEventType, KubeWatchEvent
from .dry_run_deploy_manager import DryRunDeployManager
from .openshift_deploy_manager import OpenshiftDeployManager
from .owner_references import OwnerReference
