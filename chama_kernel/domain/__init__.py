"""Pure domain logic: clock, money math, configuration snapshots."""
