"""
Orchestration Layer - Workflow Coordination

This layer coordinates a single report run.
- Ingest loop state machine (pagination, throttling, retries)
- Progress reporting while the loop runs
- Composes extract, transform, and load operations
"""
