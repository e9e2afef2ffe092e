"""Core tensor model, algebra and text codec for celltensor."""

__all__ = [
    "address",
    "builder",
    "codec",
    "composites",
    "exceptions",
    "functions",
    "storage",
    "tensor",
    "types",
]
