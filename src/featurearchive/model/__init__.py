"""
Feature model types for featurearchive.

A feature is a named, versioned manifest of bundles and extensions. The types
here are plain dataclasses; the archive writer consumes them read-only and
never re-orders their bundle or extension lists.
"""
