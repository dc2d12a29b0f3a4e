"""Core run lifecycle: store contract, log stream, state machine, driver."""
