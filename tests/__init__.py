"""
Test suite for the import notification load-test harness.

This package contains:
- performance/: the Locust harness itself (journey, pages, tooling)
- stubs/: a Flask stand-in for the trade application and identity stub
- unit/: fast tests over fake HTTP sessions
- integration/: the real journey against the live stub server
"""
