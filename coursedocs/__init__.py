"""
coursedocs – curriculum plans + course repositories -> hierarchical docs pages.
"""
