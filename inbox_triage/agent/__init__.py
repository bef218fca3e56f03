"""Long-running agent: event bus and pipeline workers."""
