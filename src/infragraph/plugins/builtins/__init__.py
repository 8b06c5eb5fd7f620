"""Built-in plugins shipped with infragraph."""
