"""
Package exports
"""

# Local
from . import config, reconcile, status, watch_manager
from .deploy_manager import DeployManagerBase
from .exceptions import assert_cluster, assert_config, assert_synthesized
from .reconcile import ReconcileManager, ReconciliationResult
from .session import Session
