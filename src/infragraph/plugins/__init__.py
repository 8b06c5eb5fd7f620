"""Extension layer -- mutation hooks via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints.
INVARIANT: Plugin failures are warnings, never errors.
"""

from infragraph.plugins.hookspecs import hookimpl
from infragraph.plugins.manager import PluginManager

__all__ = ["PluginManager", "hookimpl"]
