"""StoreSync assistant command orchestrator."""
