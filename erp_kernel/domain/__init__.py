"""Pure domain layer: clock, value objects, workflow definitions."""
