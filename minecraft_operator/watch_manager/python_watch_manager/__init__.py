"""
Top level imports for the PythonWatchManager
"""
# Local
from .python_watch_manager import PythonWatchManager
