"""Test suite for the formstate form-state engine.

This package contains tests for:
- Field lenses, the field registry and the dependency graph
- Sync, schema and async validation (tickets, debounce, stale results)
- The submit state machine and submit_in outcomes
- Event emission, draft persistence and widget bindings
- Integration scenarios (signup flow, password confirmation, draft resume)

Async tests use pytest-asyncio (``@pytest.mark.asyncio``).
"""
