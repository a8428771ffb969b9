from .base import ExecuteContext, Plugin, PluginResult
from .executor import EXECUTOR, Executor
from .loader import PluginLoader, PluginRecord

__all__ = ["EXECUTOR", "ExecuteContext", "Executor", "Plugin", "PluginLoader", "PluginRecord", "PluginResult"]
