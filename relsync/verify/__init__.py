"""Optional verification of the patched app with the Umbrel linter."""
