"""
Test suite for the loadgen engine and its demo target.

This package contains:
- unit/: Engine components in isolation (scripted transport, no sockets)
- integration/: The demo Flask target and full runs against it
- helpers.py: Transport test doubles shared by both
"""
