"""Concrete collaborators: graph store clients and source readers."""
