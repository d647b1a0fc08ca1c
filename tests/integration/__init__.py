"""
Integration tests against the demo target service.

Tests use the Flask test client and demonstrate:
- Endpoint contract and authentication testing
- Full scheduler runs driven through an in-process transport
- Statistical assertions on the workload mix
"""
