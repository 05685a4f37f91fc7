"""Pure domain types for the approval engine.  No I/O."""
