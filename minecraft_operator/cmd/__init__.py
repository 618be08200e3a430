"""
Commands exposed by the operator entrypoint
"""
# Local
from .run_operator_cmd import RunOperatorCmd
