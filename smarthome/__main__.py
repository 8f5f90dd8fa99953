"""
Entry point for running smarthome as a module: python -m smarthome
"""

from smarthome.cli.commands import app

if __name__ == "__main__":
    app()
