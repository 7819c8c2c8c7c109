"""CLI frontend for llmp.

Example:
    $ llmp                  # uses ./config.yaml
    $ llmp /etc/llmp.yaml
"""
