"""
Frontend Sync Layer
===================

Client-side state for the DPDA editor: resource cache, bindings,
invalidation graph, and the visualization lifecycle.
"""
