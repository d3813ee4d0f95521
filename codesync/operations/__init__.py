"""Operations (fingerprint, transfer)"""
from .snapshot import TreeFingerprint, SnapshotError, compute_fingerprint, list_files
from .transfer import RsyncTransfer, TransferOptions, TransferOutcome, build_command

__all__ = [
    "TreeFingerprint", "SnapshotError", "compute_fingerprint", "list_files",
    "RsyncTransfer", "TransferOptions", "TransferOutcome", "build_command",
]
