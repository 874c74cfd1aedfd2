"""HTTP cross-cutting concerns: problem+json handlers and request ids."""
