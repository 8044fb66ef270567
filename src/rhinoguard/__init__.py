"""RhinoGuard ranger alert lifecycle and synchronization engine."""
