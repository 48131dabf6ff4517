"""Infrastructure adapters: subprocesses, archives, desktop and icons."""
