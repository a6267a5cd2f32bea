"""
Test suite for the ServeRest load-test package.

This package contains:
- unit/: fast tests of helpers, metrics, thresholds, stages and the
  scenario flow, run against mocked HTTP clients
"""
