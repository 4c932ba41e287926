"""
Feature archive reading and writing.

A feature archive (``.far``) is a JAR file whose manifest carries
``Feature-Archive-Version``, holding the feature model under
``models/feature.json`` and every referenced artifact under ``artifacts/``.
"""
