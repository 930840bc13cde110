"""Release inputs: which version to promote and which image digest to pin."""
