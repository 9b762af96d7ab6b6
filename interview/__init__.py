"""Interview domain: types, normalization and the session state machine."""
