"""Core functionality"""
from .ssh_manager import SSHManager, probe_connection
from .scheduler import SyncScheduler, SyncSession, InitialSyncError, StopSignal

__all__ = ["SSHManager", "probe_connection", "SyncScheduler", "SyncSession", "InitialSyncError",
           "StopSignal"]
