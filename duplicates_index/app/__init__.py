"""Application layer: collaborator contracts and the duplicates index service."""
