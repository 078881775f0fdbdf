"""
installkeeper Test Suite
=========================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/          → Tests for installkeeper.core (config, models, exceptions)
    ├── test_resolution/    → Tests for installkeeper.resolution (versions, indexes, sessions)
    ├── test_installation/  → Tests for installkeeper.installation (metadata stores)
    ├── test_updates/       → Tests for installkeeper.updates (overrides, finder)
    ├── test_provisioning/  → Tests for installkeeper.provisioning (executor boundary)
    ├── test_cache/         → Tests for installkeeper.cache (cache exporter)
    ├── test_orchestration/ → Tests for installkeeper.orchestration (UpdateAction)
    ├── test_integration/   → End-to-end tests against an installation on disk
    └── conftest.py         → Shared pytest fixtures

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_updates/      # Run only update discovery tests
    pytest --cov=installkeeper      # Run with coverage report
"""
