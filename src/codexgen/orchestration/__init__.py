"""Orchestration: dependency resolution, execution modes, section batches, queue."""
