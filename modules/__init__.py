"""Capture-side modules.

Consumers should import submodules directly."""

__all__: list[str] = []
