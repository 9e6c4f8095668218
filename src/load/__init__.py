"""
Load Layer - Data Persistence

This layer handles writing the finished report.
- CSV rendering of daily statistics
- Output directory and filename conventions
- No business logic, just I/O operations
"""
