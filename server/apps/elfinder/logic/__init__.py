"""Business logic layer for elFinder app.

This package turns a flat bucket into a file tree:
- Response cache for listing and metadata probes
- Path aware adapter over the object storage
- Node descriptors for the protocol
- The command connector (request/response cycle)
"""
