"""
Integration test package for the load-test harness.

These tests drive the real journey over HTTP against the stub trade
application in :mod:`tests.stubs.trade_app` and demonstrate:
- Live-server testing with a background Werkzeug server
- Token rotation and per-user isolation checks
- Failure injection and failure accounting
"""
