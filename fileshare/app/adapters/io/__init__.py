"""I/O adapter package.

This package contains backend boundary code for:
  - reading the service configuration from the environment
  - mapping user-provided relative paths onto the file root safely
  - walking the file root for visible files

Keep this package free of HTTP concerns; it should remain an interface layer.
"""
