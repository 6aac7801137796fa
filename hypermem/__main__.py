"""
Entry point for running hypermem as a module: python -m hypermem
"""

from hypermem.cli.main import app

if __name__ == "__main__":
    app()
