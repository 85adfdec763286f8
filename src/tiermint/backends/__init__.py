from tiermint.backends.filesystem import FileStateBackend

__all__ = ["FileStateBackend"]
