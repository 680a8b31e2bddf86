"""Interception: the per-operation hooks and how they get installed.

HookManager.on_intercept() is the decision point. installers.py binds it
to the interpreter: an audit hook for open, wrappers for os.read/os.write.
"""
from syscall_monitor.interceptor.hooks import HookManager
from syscall_monitor.interceptor.installers import MonitoredFile, active_manager

__all__ = [
    "HookManager",
    "MonitoredFile",
    "active_manager",
]
