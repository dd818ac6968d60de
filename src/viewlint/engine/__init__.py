"""Engine: matcher traversal, suppression directives, and diagnostic aggregation."""

# viewlint:domain=engine
