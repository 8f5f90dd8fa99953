"""
smarthome - smart-home fulfillment backend with a device command engine
"""

__version__ = "0.1.0"
__logo__ = "🏠"
