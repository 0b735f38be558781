from .snapshot import SnapshotStore, backup_path_for

__all__ = ['SnapshotStore', 'backup_path_for']
