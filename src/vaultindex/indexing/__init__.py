"""Incremental indexing pipeline."""

from vaultindex.indexing.progress import FolderProgress, IndexProgress
from vaultindex.indexing.vault import FileSystemVault, Vault, VaultFile
from vaultindex.indexing.vector_manager import IndexOptions, IndexResult, VectorManager

__all__ = [
    "FileSystemVault",
    "FolderProgress",
    "IndexOptions",
    "IndexProgress",
    "IndexResult",
    "Vault",
    "VaultFile",
    "VectorManager",
]
