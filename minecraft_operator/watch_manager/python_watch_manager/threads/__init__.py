"""
Import the threads used by the PythonWatchManager
"""
# Local
from .reconcile import ReconcileThread
from .watch import WatchThread
