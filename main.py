"""
Entry point for the WordPress WXR import tool.
"""

from wxr_importer.cli import main

if __name__ == "__main__":
    main()
