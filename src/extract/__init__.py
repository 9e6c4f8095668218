"""
Extract Layer - Pure I/O to External APIs

This layer handles all external data fetching with no business logic.
- No imports from transform or load layers
- Builds the events query and fetches one page at a time
- Classifies responses (page, throttle, failure) for the ingest loop
"""
