"""Mutators for every object the operator manages, and the passes driving them."""
