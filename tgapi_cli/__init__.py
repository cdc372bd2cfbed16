"""Command-line application around :mod:`tgapi`: environment config, JSON logging, sub-commands.

The :mod:`tgapi` library never imports from this package.
"""
