"""Core tailing, storage, aggregation and alerting."""
