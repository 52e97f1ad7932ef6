"""Tests for the agent-coordination protocol: store, workflow engine, API surfaces."""
