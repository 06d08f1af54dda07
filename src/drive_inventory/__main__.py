"""
Entry point for running the drive_inventory package as a module.

This allows running: python -m drive_inventory
"""

from drive_inventory.cli.commands import main

if __name__ == "__main__":
    main()
