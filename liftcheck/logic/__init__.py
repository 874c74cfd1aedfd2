"""Framework-free business logic: visibility, template resolution, document generation."""
